import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, QuantityType, utcnow


class OutboundOrderStatus(str, Enum):
    """Outbound order lifecycle status."""
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    PARTIALLY_ALLOCATED = "PARTIALLY_ALLOCATED"
    FULLY_ALLOCATED = "FULLY_ALLOCATED"
    RELEASED = "RELEASED"
    PICKING = "PICKING"
    SHIPPED = "SHIPPED"
    CANCELLED = "CANCELLED"


# Orders in these statuses may be pulled into a wave
WAVE_ELIGIBLE_STATUSES = (
    OutboundOrderStatus.PARTIALLY_ALLOCATED.value,
    OutboundOrderStatus.FULLY_ALLOCATED.value,
    OutboundOrderStatus.RELEASED.value,
)


class OutboundOrder(Base):
    """Customer shipment order as seen by the warehouse."""
    __tablename__ = "outbound_orders"
    __table_args__ = (
        Index('ix_outbound_orders_wh_status', 'tenant_id', 'warehouse_id', 'status'),
        UniqueConstraint('tenant_id', 'order_number', name='uq_outbound_orders_tenant_number'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=OutboundOrderStatus.DRAFT.value,
        nullable=False
    )

    # Wave grouping attributes
    carrier_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    route_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    zone_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    requested_ship_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    lines: Mapped[List["OutboundOrderLine"]] = relationship(
        "OutboundOrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OutboundOrderLine.line_number"
    )

    def __repr__(self) -> str:
        return f"<OutboundOrder(number='{self.order_number}', status='{self.status}')>"


class OutboundOrderLine(Base):
    __tablename__ = "outbound_order_lines"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    outbound_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("outbound_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    requested_qty: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    picked_qty: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)
    uom: Mapped[str] = mapped_column(String(20), default="EA", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    order: Mapped["OutboundOrder"] = relationship("OutboundOrder", back_populates="lines")
