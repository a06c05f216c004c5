"""
Inventory models.

- InventoryPosition: quantity of a product (and optional lot) at a location in a given stock state
- MovementHeader / MovementLine: append-only record of physical stock movements
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, QuantityType, utcnow

if TYPE_CHECKING:
    from app.models.product import Product, Lot
    from app.models.warehouse import Location


class StockStatus(str, Enum):
    """Stock state of an inventory position."""
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    QUARANTINE = "QUARANTINE"


class MovementType(str, Enum):
    INBOUND_RECEIPT = "INBOUND_RECEIPT"
    OUTBOUND_SHIPMENT = "OUTBOUND_SHIPMENT"
    INTERNAL_TRANSFER = "INTERNAL_TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"


class MovementStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InventoryPosition(Base):
    """
    Quantity of a product at a location.

    Mutated by slotting execution as well as by receiving and shipping
    flows outside this engine.
    """
    __tablename__ = "inventory_positions"
    __table_args__ = (
        Index('ix_inventory_positions_product_wh', 'tenant_id', 'warehouse_id', 'product_id'),
        Index('ix_inventory_positions_location', 'location_id', 'product_id'),
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
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False
    )
    lot_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("lots.id", ondelete="SET NULL"),
        nullable=True
    )

    quantity: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)
    uom: Mapped[str] = mapped_column(String(20), default="EA", nullable=False)
    stock_status: Mapped[str] = mapped_column(
        String(50),
        default=StockStatus.AVAILABLE.value,
        nullable=False,
        index=True
    )

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

    product: Mapped["Product"] = relationship("Product")
    location: Mapped["Location"] = relationship("Location")
    lot: Mapped[Optional["Lot"]] = relationship("Lot")


class MovementHeader(Base):
    """Stock movement document."""
    __tablename__ = "movement_headers"
    __table_args__ = (
        Index('ix_movement_headers_wh_type_created', 'warehouse_id', 'movement_type', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=MovementStatus.PENDING.value,
        nullable=False
    )
    reference: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Source document e.g., SLOTTING-<recommendation id>"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    lines: Mapped[List["MovementLine"]] = relationship(
        "MovementLine",
        back_populates="header",
        cascade="all, delete-orphan"
    )


class MovementLine(Base):
    __tablename__ = "movement_lines"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    movement_header_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("movement_headers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    from_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True
    )
    to_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True
    )
    quantity: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    uom: Mapped[str] = mapped_column(String(20), default="EA", nullable=False)

    header: Mapped["MovementHeader"] = relationship("MovementHeader", back_populates="lines")
