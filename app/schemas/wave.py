"""
Pydantic schemas for Wave & Route Planning.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, model_validator

from app.models.wave import WavePickingStrategy, WaveStatus, PickingTaskStatus
from app.schemas.base import BaseCreateSchema, BaseResponseSchema


# ============================================================================
# WAVE GENERATION
# ============================================================================

class GenerateWavesRequest(BaseCreateSchema):
    """Group eligible outbound orders of a warehouse into waves."""
    warehouse_id: uuid.UUID
    strategy: WavePickingStrategy
    time_window_from: Optional[datetime] = None
    time_window_to: Optional[datetime] = None
    carrier_code: Optional[str] = None
    route_code: Optional[str] = None
    zone_code: Optional[str] = None
    priority_min: Optional[int] = Field(None, description="Only orders with priority >= this value")
    max_orders_per_wave: Optional[int] = Field(
        None,
        ge=1,
        le=5000,
        description="Chunk size per group; default is the whole group"
    )
    run_async: bool = Field(
        False,
        description="Queue generation as a background job instead of running it inline"
    )

    @model_validator(mode="after")
    def check_time_window(self):
        if self.time_window_from and self.time_window_to and self.time_window_from > self.time_window_to:
            raise ValueError("time_window_from must not be after time_window_to")
        return self


class WaveFilters(BaseModel):
    warehouse_id: Optional[uuid.UUID] = None
    status: Optional[WaveStatus] = None
    picker_user_id: Optional[uuid.UUID] = None
    time_window_from: Optional[datetime] = None
    time_window_to: Optional[datetime] = None


class AssignWaveRequest(BaseModel):
    picker_user_id: uuid.UUID


# ============================================================================
# RESPONSES
# ============================================================================

class WaveResponse(BaseResponseSchema):
    """Wave with totals and lifecycle timestamps."""
    id: uuid.UUID
    wave_number: str
    warehouse_id: uuid.UUID
    strategy: WavePickingStrategy
    status: WaveStatus
    route_code: Optional[str] = None
    carrier_code: Optional[str] = None
    zone_code: Optional[str] = None
    time_window_from: Optional[datetime] = None
    time_window_to: Optional[datetime] = None

    # Metrics
    total_orders: int
    total_lines: int
    total_units: Decimal

    picker_user_id: Optional[uuid.UUID] = None

    # Timestamps
    created_at: datetime
    released_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class WaveListResponse(BaseModel):
    items: List[WaveResponse]
    total: int


class PickingTaskLineResponse(BaseResponseSchema):
    id: uuid.UUID
    outbound_order_line_id: Optional[uuid.UUID] = None
    product_id: uuid.UUID
    lot_id: Optional[uuid.UUID] = None
    from_location_id: uuid.UUID
    quantity_to_pick: Decimal
    uom: str


class PickingTaskResponse(BaseResponseSchema):
    id: uuid.UUID
    wave_id: uuid.UUID
    warehouse_id: uuid.UUID
    outbound_order_id: Optional[uuid.UUID] = None
    status: PickingTaskStatus
    picker_id: Optional[uuid.UUID] = None
    created_at: datetime
    lines: List[PickingTaskLineResponse] = []


class PathStop(BaseModel):
    """One stop of a picker path. The first stop is the START node."""
    seq: int
    location_id: str
    location_code: Optional[str] = None
    est_distance: float
    est_time: float
    line_ids: List[str] = []


class WavePickingPathResponse(BaseResponseSchema):
    id: uuid.UUID
    wave_id: uuid.UUID
    path_json: List[PathStop]
    total_distance: Decimal
    total_time: Decimal
    picker_user_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
