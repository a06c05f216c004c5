"""
Slotting models.

- SlottingConfig: per-warehouse tunables for the classification and scoring pass
- SlottingRecommendation: a ranked proposal to move a product to a better location
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, ScoreType, utcnow

if TYPE_CHECKING:
    from app.models.product import Product
    from app.models.warehouse import Location


class SlottingStatus(str, Enum):
    """Recommendation lifecycle. REJECTED and EXECUTED are terminal."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXECUTED = "EXECUTED"


class AbcClass(str, Enum):
    """Value-concentration class."""
    A = "A"                             # Top 80% of volume
    B = "B"                             # Next 15%
    C = "C"                             # Remainder


class XyzClass(str, Enum):
    """Demand-variability class."""
    X = "X"                             # Stable (CV <= 0.5)
    Y = "Y"                             # Moderate (CV <= 1.0)
    Z = "Z"                             # Erratic


class SlottingConfig(Base):
    """Operator-maintained slotting parameters for one warehouse."""
    __tablename__ = "slotting_configs"
    __table_args__ = (
        Index('ix_slotting_configs_wh_active', 'tenant_id', 'warehouse_id', 'is_active'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    abc_period_days: Mapped[int] = mapped_column(
        Integer,
        default=90,
        nullable=False,
        comment="Lookback window for ABC volume"
    )
    xyz_period_days: Mapped[int] = mapped_column(
        Integer,
        default=90,
        nullable=False,
        comment="Lookback window for the daily demand series"
    )
    golden_zone_location_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Number of closest-to-origin locations forming the golden zone"
    )
    heavy_products_zone_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fragile_products_zone_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class SlottingRecommendation(Base):
    """
    Proposed relocation of a product.

    Calculations only ever append PENDING rows, so the same product can
    carry several recommendations across runs.
    """
    __tablename__ = "slotting_recommendations"
    __table_args__ = (
        Index('ix_slotting_recs_wh_status', 'tenant_id', 'warehouse_id', 'status'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    current_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
        comment="Location holding the largest quantity at calculation time"
    )
    recommended_location_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False
    )

    score: Mapped[Decimal] = mapped_column(ScoreType, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50),
        default=SlottingStatus.PENDING.value,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    product: Mapped["Product"] = relationship("Product")
    recommended_location: Mapped["Location"] = relationship(
        "Location",
        foreign_keys=[recommended_location_id]
    )
    current_location: Mapped[Optional["Location"]] = relationship(
        "Location",
        foreign_keys=[current_location_id]
    )
