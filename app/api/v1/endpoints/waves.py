"""
Wave Picking API Endpoints

- Wave generation by strategy (inline or queued)
- Wave lifecycle: release, start, complete, cancel, assign
- Consolidated picking tasks and picker path per wave
"""
from typing import Optional, List, Union
from datetime import datetime
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from app.api.deps import DB, TenantId, Cache
from app.jobs.scheduler import enqueue_job
from app.models.wave import WaveStatus
from app.schemas.slotting import QueuedJobResponse
from app.schemas.wave import (
    GenerateWavesRequest,
    WaveFilters,
    AssignWaveRequest,
    WaveResponse,
    WaveListResponse,
    PickingTaskResponse,
    WavePickingPathResponse,
)
from app.services.picking_task_service import PickingTaskService
from app.services.route_planner import RoutePlanner
from app.services.wave_service import WaveService, WaveNotFoundError


router = APIRouter()


def _not_found(e: WaveNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ==================== GENERATION ====================

@router.post(
    "/generate",
    response_model=Union[List[WaveResponse], QueuedJobResponse],
)
async def generate_waves(
    data: GenerateWavesRequest,
    db: DB,
    tenant_id: TenantId,
):
    """
    Group eligible outbound orders into waves.

    Strategies:
    - BY_ROUTE / BY_CARRIER / BY_ZONE: group by the order's code
    - BY_TIMEWINDOW: group by requested ship hour
    - BY_PRIORITY: group by priority

    Each group is split into waves of at most `max_orders_per_wave` orders.
    """
    if data.run_async:
        payload = data.model_dump(mode="json", exclude={"run_async"})
        payload["tenant_id"] = str(tenant_id)
        job_id = enqueue_job("generate_waves", payload)
        return QueuedJobResponse(job_id=job_id, job_name="generate_waves")

    waves = await WaveService(db).generate_waves(tenant_id, data)
    return [WaveResponse.model_validate(w) for w in waves]


# ==================== QUERIES ====================

@router.get("", response_model=WaveListResponse)
async def list_waves(
    db: DB,
    tenant_id: TenantId,
    warehouse_id: Optional[uuid.UUID] = Query(None),
    status_filter: Optional[WaveStatus] = Query(None, alias="status"),
    picker_user_id: Optional[uuid.UUID] = Query(None),
    time_window_from: Optional[datetime] = Query(None),
    time_window_to: Optional[datetime] = Query(None),
):
    filters = WaveFilters(
        warehouse_id=warehouse_id,
        status=status_filter,
        picker_user_id=picker_user_id,
        time_window_from=time_window_from,
        time_window_to=time_window_to,
    )
    waves = await WaveService(db).list_waves(tenant_id, filters)
    return WaveListResponse(
        items=[WaveResponse.model_validate(w) for w in waves],
        total=len(waves),
    )


@router.get("/{wave_id}", response_model=WaveResponse)
async def get_wave(
    wave_id: uuid.UUID,
    db: DB,
    tenant_id: TenantId,
):
    try:
        wave = await WaveService(db).get_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WaveResponse.model_validate(wave)


# ==================== LIFECYCLE ====================

@router.post("/{wave_id}/release", response_model=WaveResponse)
async def release_wave(wave_id: uuid.UUID, db: DB, tenant_id: TenantId):
    try:
        wave = await WaveService(db).release_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WaveResponse.model_validate(wave)


@router.post("/{wave_id}/start", response_model=WaveResponse)
async def start_wave(wave_id: uuid.UUID, db: DB, tenant_id: TenantId):
    try:
        wave = await WaveService(db).start_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WaveResponse.model_validate(wave)


@router.post("/{wave_id}/complete", response_model=WaveResponse)
async def complete_wave(wave_id: uuid.UUID, db: DB, tenant_id: TenantId):
    try:
        wave = await WaveService(db).complete_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WaveResponse.model_validate(wave)


@router.post("/{wave_id}/cancel", response_model=WaveResponse)
async def cancel_wave(wave_id: uuid.UUID, db: DB, tenant_id: TenantId):
    try:
        wave = await WaveService(db).cancel_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WaveResponse.model_validate(wave)


@router.post("/{wave_id}/assign", response_model=WaveResponse)
async def assign_wave(
    wave_id: uuid.UUID,
    data: AssignWaveRequest,
    db: DB,
    tenant_id: TenantId,
):
    try:
        wave = await WaveService(db).assign_wave(tenant_id, wave_id, data.picker_user_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WaveResponse.model_validate(wave)


# ==================== PICKING ====================

@router.post(
    "/{wave_id}/picking-tasks",
    response_model=List[PickingTaskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_picking_tasks(wave_id: uuid.UUID, db: DB, tenant_id: TenantId):
    """Create the consolidated picking task for a wave."""
    try:
        tasks = await PickingTaskService(db).create_picking_tasks_for_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return [PickingTaskResponse.model_validate(t) for t in tasks]


@router.post("/{wave_id}/picking-path", response_model=WavePickingPathResponse)
async def generate_picking_path(
    wave_id: uuid.UUID,
    db: DB,
    tenant_id: TenantId,
    cache: Cache,
):
    """Plan the picker path through the wave's picking locations."""
    try:
        path = await RoutePlanner(db, cache).generate_picking_path_for_wave(tenant_id, wave_id)
    except WaveNotFoundError as e:
        raise _not_found(e)
    return WavePickingPathResponse.model_validate(path)
