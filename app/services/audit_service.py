from typing import Optional, Dict, Any
import uuid
import logging

from fastapi.encoders import jsonable_encoder
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """
    Audit service for optimization runs and lifecycle changes.

    Audit writes are best-effort: call record() after the primary operation
    has committed. A failing audit write is logged, never propagated.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        tenant_id: uuid.UUID,
        resource: str,
        action: str,
        entity_id: Optional[uuid.UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """
        Append an audit event.

        Args:
            tenant_id: Tenant the event belongs to
            resource: Resource type (SLOTTING, WAVE_PICKING)
            action: The action performed (CALCULATE, EXECUTE, RELEASE, etc.)
            entity_id: ID of the affected entity
            metadata: Structured event details
            user_id: ID of the user performing the action, if any
            description: Human-readable description

        Returns:
            The created AuditLog entry, or None when the write failed
        """
        audit_log = AuditLog(
            tenant_id=tenant_id,
            entity_type=resource,
            action=action,
            entity_id=entity_id,
            user_id=user_id,
            new_values=jsonable_encoder(metadata) if metadata is not None else None,
            description=description,
        )
        try:
            # Own session so a failed write cannot touch the caller's state
            async with AsyncSession(bind=self.db.bind, expire_on_commit=False) as audit_db:
                audit_db.add(audit_log)
                await audit_db.commit()
            return audit_log
        except Exception as e:
            logger.warning(f"Audit write failed for {resource}/{action} ({entity_id}): {e}")
            return None

    async def get_events(
        self,
        tenant_id: uuid.UUID,
        resource: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        """Get audit events for a tenant, newest first."""
        query = select(AuditLog).where(AuditLog.tenant_id == tenant_id)
        if resource:
            query = query.where(AuditLog.entity_type == resource)
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        query = query.order_by(AuditLog.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
