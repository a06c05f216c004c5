"""
Slotting API Endpoints

- Slotting configuration per warehouse
- Calculation runs (inline or queued)
- Recommendation approval and execution
"""
from typing import Optional, List, Union
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from app.api.deps import DB, TenantId, Cache
from app.jobs.scheduler import enqueue_job
from app.models.slotting import SlottingStatus
from app.schemas.slotting import (
    SlottingConfigCreate,
    SlottingConfigUpdate,
    SlottingConfigResponse,
    CalculateSlottingRequest,
    ApproveRecommendationRequest,
    SlottingRecommendationResponse,
    SlottingRecommendationListResponse,
    QueuedJobResponse,
)
from app.services.slotting import (
    SlottingService,
    SlottingError,
    SlottingNotFoundError,
    SlottingStateError,
)


router = APIRouter()


def _raise_http(e: SlottingError):
    if isinstance(e, SlottingNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, SlottingStateError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ==================== CONFIG ====================

@router.post(
    "/configs",
    response_model=SlottingConfigResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_config(
    data: SlottingConfigCreate,
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
):
    """Create a slotting configuration for a warehouse."""
    config = await SlottingService(db, cache).create_config(tenant_id, data)
    return SlottingConfigResponse.model_validate(config)


@router.get("/configs", response_model=List[SlottingConfigResponse])
async def list_configs(
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
    warehouse_id: Optional[uuid.UUID] = Query(None),
):
    configs = await SlottingService(db, cache).list_configs(tenant_id, warehouse_id)
    return [SlottingConfigResponse.model_validate(c) for c in configs]


@router.patch("/configs/{config_id}", response_model=SlottingConfigResponse)
async def update_config(
    config_id: uuid.UUID,
    data: SlottingConfigUpdate,
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
):
    try:
        config = await SlottingService(db, cache).update_config(tenant_id, config_id, data)
    except SlottingError as e:
        _raise_http(e)
    return SlottingConfigResponse.model_validate(config)


# ==================== CALCULATION ====================

@router.post(
    "/calculate",
    response_model=Union[List[SlottingRecommendationResponse], QueuedJobResponse],
)
async def calculate_slotting(
    data: CalculateSlottingRequest,
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
):
    """
    Run a slotting calculation.

    Returns the new PENDING recommendations, ranked by score. With
    `run_async=true` the run is queued and a job reference is returned.
    """
    if data.run_async:
        payload = data.model_dump(mode="json", exclude={"run_async"})
        payload["tenant_id"] = str(tenant_id)
        job_id = enqueue_job("calculate_slotting", payload)
        return QueuedJobResponse(job_id=job_id, job_name="calculate_slotting")

    try:
        recommendations = await SlottingService(db, cache).calculate(
            tenant_id,
            data.warehouse_id,
            product_id=data.product_id,
            limit_results=data.limit_results,
            force=data.force,
        )
    except SlottingError as e:
        _raise_http(e)
    return [SlottingRecommendationResponse.model_validate(r) for r in recommendations]


# ==================== RECOMMENDATIONS ====================

@router.get("/recommendations", response_model=SlottingRecommendationListResponse)
async def list_recommendations(
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
    warehouse_id: Optional[uuid.UUID] = Query(None),
    status_filter: Optional[SlottingStatus] = Query(None, alias="status"),
):
    """Recommendations newest first."""
    recommendations = await SlottingService(db, cache).list_recommendations(
        tenant_id, warehouse_id, status_filter
    )
    return SlottingRecommendationListResponse(
        items=[SlottingRecommendationResponse.model_validate(r) for r in recommendations],
        total=len(recommendations),
    )


@router.post(
    "/recommendations/{recommendation_id}/approve",
    response_model=SlottingRecommendationResponse,
)
async def approve_recommendation(
    recommendation_id: uuid.UUID,
    data: ApproveRecommendationRequest,
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
):
    """Approve (or reject with `approve=false`) a recommendation."""
    try:
        recommendation = await SlottingService(db, cache).approve_recommendation(
            tenant_id, recommendation_id, data.approve
        )
    except SlottingError as e:
        _raise_http(e)
    return SlottingRecommendationResponse.model_validate(recommendation)


@router.post(
    "/recommendations/{recommendation_id}/execute",
    response_model=SlottingRecommendationResponse,
)
async def execute_recommendation(
    recommendation_id: uuid.UUID,
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
):
    """Move the product's stock to the recommended location."""
    try:
        recommendation = await SlottingService(db, cache).execute_recommendation(
            tenant_id, recommendation_id
        )
    except SlottingError as e:
        _raise_http(e)
    return SlottingRecommendationResponse.model_validate(recommendation)
