"""
Pydantic schemas for the Slotting Engine.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from app.models.slotting import SlottingStatus
from app.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


# ============================================================================
# CONFIG
# ============================================================================

class SlottingConfigCreate(BaseCreateSchema):
    """Create a slotting configuration for a warehouse."""
    warehouse_id: uuid.UUID
    abc_period_days: int = Field(90, ge=1)
    xyz_period_days: int = Field(90, ge=1)
    golden_zone_location_count: Optional[int] = Field(
        None,
        ge=1,
        description="Closest-to-origin locations forming the golden zone (default min(5, #locations))"
    )
    heavy_products_zone_enabled: bool = False
    fragile_products_zone_enabled: bool = False
    is_active: bool = True


class SlottingConfigUpdate(BaseUpdateSchema):
    """Partial update of a slotting configuration."""
    warehouse_id: Optional[uuid.UUID] = None
    abc_period_days: Optional[int] = Field(None, ge=1)
    xyz_period_days: Optional[int] = Field(None, ge=1)
    golden_zone_location_count: Optional[int] = Field(None, ge=1)
    heavy_products_zone_enabled: Optional[bool] = None
    fragile_products_zone_enabled: Optional[bool] = None
    is_active: Optional[bool] = None


class SlottingConfigResponse(BaseResponseSchema):
    id: uuid.UUID
    warehouse_id: uuid.UUID
    abc_period_days: int
    xyz_period_days: int
    golden_zone_location_count: Optional[int] = None
    heavy_products_zone_enabled: bool
    fragile_products_zone_enabled: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# CALCULATION & RECOMMENDATIONS
# ============================================================================

class CalculateSlottingRequest(BaseCreateSchema):
    """Run a slotting calculation for a warehouse."""
    warehouse_id: uuid.UUID
    product_id: Optional[uuid.UUID] = Field(
        None,
        description="Restrict the run to one product; default is every product stocked in the warehouse"
    )
    limit_results: Optional[int] = Field(None, ge=1)
    force: bool = Field(
        False,
        description="Keep recommendations whose best score is not positive"
    )
    run_async: bool = Field(
        False,
        description="Queue the calculation as a background job instead of running it inline"
    )


class ApproveRecommendationRequest(BaseModel):
    approve: bool = True


class SlottingRecommendationResponse(BaseResponseSchema):
    id: uuid.UUID
    warehouse_id: uuid.UUID
    product_id: uuid.UUID
    current_location_id: Optional[uuid.UUID] = None
    recommended_location_id: uuid.UUID
    score: Decimal
    reason: Optional[str] = None
    status: SlottingStatus
    created_at: datetime
    updated_at: datetime


class SlottingRecommendationListResponse(BaseModel):
    items: List[SlottingRecommendationResponse]
    total: int


class QueuedJobResponse(BaseModel):
    """Acknowledgement for a job handed to the scheduler."""
    job_id: str
    job_name: str
    status: str = "queued"
