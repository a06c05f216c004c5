"""
Warehouse layout models used by the optimization engine.

- Location: a physical storage slot with grid coordinates
- LocationCompatibilityRule: ALLOW/BLOCK rules restricting what may be slotted where
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, utcnow

if TYPE_CHECKING:
    from app.models.product import Product


class CompatibilityType(str, Enum):
    """Compatibility rule types. BLOCK always wins over ALLOW."""
    ALLOW = "ALLOW"
    BLOCK = "BLOCK"


class Location(Base):
    """
    Storage location (bin/slot) inside a warehouse.

    Coordinates (aisle, row, level) are integers on a grid whose origin is
    the pick-path start (usually the pack station).
    """
    __tablename__ = "locations"
    __table_args__ = (
        Index('ix_locations_tenant_warehouse', 'tenant_id', 'warehouse_id'),
        UniqueConstraint('tenant_id', 'warehouse_id', 'code', name='uq_locations_tenant_wh_code'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Location code e.g., PICK-A01-R02-L1"
    )
    zone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Zone name; PICK/HEAVY/FRAGILE substrings drive slotting bonuses"
    )

    # Grid coordinates
    aisle: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    row: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    @property
    def coordinates(self) -> tuple[int, int, int]:
        """(aisle, row, level) with missing values treated as 0."""
        return (self.aisle or 0, self.row or 0, self.level or 0)

    def __repr__(self) -> str:
        return f"<Location(code='{self.code}', zone='{self.zone}')>"


class LocationCompatibilityRule(Base):
    """
    Restricts which products may be slotted into a location.

    A rule with neither product_id nor product_class set applies to every
    product for that location.
    """
    __tablename__ = "location_compatibility_rules"
    __table_args__ = (
        Index('ix_compat_rules_tenant_warehouse', 'tenant_id', 'warehouse_id'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    location_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=True
    )
    product_class: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rule_type: Mapped[str] = mapped_column(
        String(50),
        default=CompatibilityType.ALLOW.value,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    location: Mapped["Location"] = relationship("Location")
    product: Mapped[Optional["Product"]] = relationship("Product")
