"""
Wave picking models.

- Wave: a batch of outbound orders released together
- WaveOrder: wave membership (immutable)
- PickingTask / PickingTaskLine: consolidated picking instructions for a wave
- WavePickingPath: the planned visiting order for a wave (one per wave)
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List, Dict, Any

from sqlalchemy import String, DateTime, ForeignKey, Integer, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, JSONType, QuantityType, utcnow

if TYPE_CHECKING:
    from app.models.order import OutboundOrder
    from app.models.warehouse import Location


class WavePickingStrategy(str, Enum):
    """Order grouping strategies for wave generation."""
    BY_ROUTE = "BY_ROUTE"               # Group by delivery route
    BY_CARRIER = "BY_CARRIER"           # Group by carrier
    BY_ZONE = "BY_ZONE"                 # Group by warehouse zone
    BY_TIMEWINDOW = "BY_TIMEWINDOW"     # Group by requested ship hour
    BY_PRIORITY = "BY_PRIORITY"         # Group by order priority


class WaveStatus(str, Enum):
    """Wave lifecycle status."""
    CREATED = "CREATED"                 # Orders assigned, not released
    RELEASED = "RELEASED"               # Released to floor
    IN_PROGRESS = "IN_PROGRESS"         # Picking started
    COMPLETED = "COMPLETED"             # All picking done
    CANCELLED = "CANCELLED"             # Wave cancelled


class PickingTaskStatus(str, Enum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Wave(Base):
    """
    Wave picking batch.

    Created by wave generation, mutated only by lifecycle transitions,
    never deleted.
    """
    __tablename__ = "waves"
    __table_args__ = (
        Index('ix_waves_warehouse_status', 'tenant_id', 'warehouse_id', 'status'),
        UniqueConstraint('tenant_id', 'wave_number', name='uq_waves_tenant_number'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    wave_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Wave number e.g., WV-20260205-0001"
    )
    strategy: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=WaveStatus.CREATED.value,
        nullable=False
    )

    # Grouping attributes
    route_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    carrier_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    zone_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    time_window_from: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_window_to: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Metrics
    total_orders: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_lines: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_units: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)

    picker_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)

    # Lifecycle timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    wave_orders: Mapped[List["WaveOrder"]] = relationship(
        "WaveOrder",
        back_populates="wave",
        cascade="all, delete-orphan"
    )
    picking_tasks: Mapped[List["PickingTask"]] = relationship(
        "PickingTask",
        back_populates="wave"
    )
    picking_path: Mapped[Optional["WavePickingPath"]] = relationship(
        "WavePickingPath",
        back_populates="wave",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<Wave(number='{self.wave_number}', status='{self.status}')>"


class WaveOrder(Base):
    __tablename__ = "wave_orders"
    __table_args__ = (
        UniqueConstraint('wave_id', 'outbound_order_id', name='uq_wave_orders_wave_order'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    wave_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("waves.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    outbound_order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("outbound_orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    wave: Mapped["Wave"] = relationship("Wave", back_populates="wave_orders")
    outbound_order: Mapped["OutboundOrder"] = relationship("OutboundOrder")


class PickingTask(Base):
    """One consolidated picking task per wave."""
    __tablename__ = "picking_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)
    wave_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("waves.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    outbound_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("outbound_orders.id", ondelete="SET NULL"),
        nullable=True,
        comment="First member order of the wave"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default=PickingTaskStatus.CREATED.value,
        nullable=False
    )
    picker_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    wave: Mapped["Wave"] = relationship("Wave", back_populates="picking_tasks")
    lines: Mapped[List["PickingTaskLine"]] = relationship(
        "PickingTaskLine",
        back_populates="picking_task",
        cascade="all, delete-orphan"
    )


class PickingTaskLine(Base):
    """Pick a quantity of a product (and lot) from one location."""
    __tablename__ = "picking_task_lines"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    picking_task_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("picking_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    outbound_order_line_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("outbound_order_lines.id", ondelete="SET NULL"),
        nullable=True,
        comment="First order line that drew on this location"
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    lot_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("lots.id", ondelete="SET NULL"),
        nullable=True
    )
    from_location_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity_to_pick: Mapped[Decimal] = mapped_column(QuantityType, nullable=False)
    uom: Mapped[str] = mapped_column(String(20), default="EA", nullable=False)

    picking_task: Mapped["PickingTask"] = relationship("PickingTask", back_populates="lines")
    from_location: Mapped["Location"] = relationship("Location")


class WavePickingPath(Base):
    """Planned picker route for a wave. Regenerating replaces it."""
    __tablename__ = "wave_picking_paths"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False, index=True)
    wave_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("waves.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    path_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    total_distance: Mapped[Decimal] = mapped_column(QuantityType, default=Decimal("0"), nullable=False)
    total_time: Mapped[Decimal] = mapped_column(
        QuantityType,
        default=Decimal("0"),
        nullable=False,
        comment="Estimated minutes"
    )
    picker_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)

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

    wave: Mapped["Wave"] = relationship("Wave", back_populates="picking_path")
