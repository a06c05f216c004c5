"""
Optimization Job Handlers

Queued entry points for long-running optimization runs. The HTTP layer
and the scheduler both call the same services; a queued run only differs
in where the session comes from.

Architecture:
- Handlers are registered with the @optimization_job decorator
- run_optimization_job() opens a session, runs the handler and commits
- Payloads without a tenant_id are skipped, never guessed

Usage:
    @optimization_job("calculate_slotting")
    async def calculate_slotting_job(session, tenant_id, payload):
        ...
"""

import uuid
import logging
from typing import Callable, Dict, Any, Optional
from datetime import datetime, timezone
from functools import wraps

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.schemas.wave import GenerateWavesRequest
from app.services.slotting import SlottingService
from app.services.wave_service import WaveService

logger = logging.getLogger(__name__)

# Registry of optimization jobs
_optimization_jobs: Dict[str, Callable] = {}


def optimization_job(name: str):
    """
    Decorator to register a queued optimization job.

    The decorated function receives:
    - session: AsyncSession for the run
    - tenant_id: UUID of the tenant the payload belongs to
    - payload: the remaining job payload
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(session: AsyncSession, tenant_id: uuid.UUID, payload: Dict[str, Any]):
            return await func(session, tenant_id, payload)

        _optimization_jobs[name] = wrapper
        logger.debug(f"Registered optimization job: {name}")
        return wrapper
    return decorator


def get_registered_jobs() -> list[str]:
    return list(_optimization_jobs.keys())


async def run_optimization_job(
    job_name: str,
    payload: Dict[str, Any],
    session_factory: Optional[async_sessionmaker] = None,
) -> dict:
    """
    Execute a registered job for one payload.

    Returns:
        Result dictionary with status, error and duration_ms
    """
    if job_name not in _optimization_jobs:
        raise ValueError(f"Unknown job: {job_name}. Registered: {get_registered_jobs()}")

    start_time = datetime.now(timezone.utc)
    result = {
        "job": job_name,
        "status": "pending",
        "started_at": start_time.isoformat(),
        "error": None,
        "duration_ms": 0,
    }

    data = dict(payload or {})
    tenant_id = data.pop("tenant_id", None)
    if not tenant_id:
        logger.warning(f"Job '{job_name}' skipped: payload has no tenant_id")
        result["status"] = "skipped"
        return result

    if session_factory is None:
        from app.database import async_session_factory
        session_factory = async_session_factory

    try:
        async with session_factory() as session:
            try:
                output = await _optimization_jobs[job_name](session, uuid.UUID(str(tenant_id)), data)
                await session.commit()
                result["status"] = "success"
                result["output"] = output
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        result["status"] = "failed"
        result["error"] = str(e)
        logger.error(f"Job '{job_name}' failed for tenant '{tenant_id}': {e}")

    end_time = datetime.now(timezone.utc)
    result["duration_ms"] = int((end_time - start_time).total_seconds() * 1000)
    result["completed_at"] = end_time.isoformat()
    return result


# ============================================================
# JOB IMPLEMENTATIONS
# ============================================================

@optimization_job("calculate_slotting")
async def calculate_slotting_job(session: AsyncSession, tenant_id: uuid.UUID, payload: Dict[str, Any]):
    """Run a slotting calculation for a warehouse."""
    service = SlottingService(session)
    product_id = payload.get("product_id")
    recommendations = await service.calculate(
        tenant_id,
        uuid.UUID(str(payload["warehouse_id"])),
        product_id=uuid.UUID(str(product_id)) if product_id else None,
        limit_results=payload.get("limit_results"),
        force=bool(payload.get("force", False)),
    )
    return {"recommendations": len(recommendations)}


@optimization_job("generate_waves")
async def generate_waves_job(session: AsyncSession, tenant_id: uuid.UUID, payload: Dict[str, Any]):
    """Group eligible outbound orders of a warehouse into waves."""
    request = GenerateWavesRequest.model_validate(payload)
    waves = await WaveService(session).generate_waves(tenant_id, request)
    return {"waves": len(waves)}
