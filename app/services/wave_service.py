"""
Wave Grouping Service.

Groups eligible outbound orders of a warehouse into waves by a single
strategy attribute and manages the wave lifecycle:

    CREATED -> RELEASED -> IN_PROGRESS -> COMPLETED
    any non-terminal -> CANCELLED

Lifecycle calls are direct status updates; transitions are not validated.
"""
import uuid
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, List, Dict

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.unit_of_work import UnitOfWork
from app.models.order import OutboundOrder, WAVE_ELIGIBLE_STATUSES
from app.models.wave import Wave, WaveOrder, WavePickingStrategy, WaveStatus
from app.schemas.wave import GenerateWavesRequest, WaveFilters
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

AUDIT_RESOURCE = "WAVE_PICKING"

UNASSIGNED_KEY = "UNASSIGNED"
NO_WINDOW_KEY = "NO_WINDOW"

# Generation attempts when a concurrent run claims the same wave numbers
WAVE_NUMBER_ATTEMPTS = 3


class WaveError(Exception):
    """Base error for wave operations."""
    pass


class WaveNotFoundError(WaveError):
    pass


def grouping_key(strategy: WavePickingStrategy, order: OutboundOrder) -> str:
    """Value of the strategy's grouping attribute for an order."""
    if strategy == WavePickingStrategy.BY_ROUTE:
        return order.route_code or UNASSIGNED_KEY
    if strategy == WavePickingStrategy.BY_CARRIER:
        return order.carrier_code or UNASSIGNED_KEY
    if strategy == WavePickingStrategy.BY_ZONE:
        return order.zone_code or UNASSIGNED_KEY
    if strategy == WavePickingStrategy.BY_TIMEWINDOW:
        ship_date = order.requested_ship_date
        if ship_date is None:
            return NO_WINDOW_KEY
        if ship_date.tzinfo is not None:
            ship_date = ship_date.astimezone(timezone.utc)
        # Truncated to the hour, e.g. 2026-02-05T14
        return ship_date.strftime("%Y-%m-%dT%H")
    if strategy == WavePickingStrategy.BY_PRIORITY:
        return str(order.priority or 0)
    return "DEFAULT"


def chunk(items: List, size: Optional[int]) -> List[List]:
    """Split into consecutive batches of at most `size`. No size means one batch."""
    if not size or size <= 0:
        return [items] if items else []
    return [items[i:i + size] for i in range(0, len(items), size)]


class WaveService:
    """Wave generation and lifecycle."""

    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.audit = audit or AuditService(db)

    # ========================================================================
    # WAVE GENERATION
    # ========================================================================

    async def generate_waves(
        self,
        tenant_id: uuid.UUID,
        request: GenerateWavesRequest,
    ) -> List[Wave]:
        """
        Create one wave per batch of each strategy group.

        All waves and memberships are written in one transaction.
        """
        orders = await self._select_eligible_orders(tenant_id, request)

        groups: Dict[str, List[OutboundOrder]] = {}
        for order in orders:
            groups.setdefault(grouping_key(request.strategy, order), []).append(order)

        # Plain values only: a rolled back attempt expires the loaded orders
        wave_fields = []
        for group_orders in groups.values():
            for batch in chunk(group_orders, request.max_orders_per_wave):
                wave_fields.append(self._wave_fields(request, batch))

        async def _create(session: AsyncSession) -> List[Wave]:
            next_sequence = await self._next_wave_sequence(session, tenant_id)
            prefix = self._wave_number_prefix()
            waves = [
                self._build_wave(tenant_id, fields, f"{prefix}{next_sequence + offset:04d}")
                for offset, fields in enumerate(wave_fields)
            ]
            session.add_all(waves)
            await session.flush()
            return waves

        # A concurrent run may take the same numbers first
        for attempt in range(1, WAVE_NUMBER_ATTEMPTS + 1):
            try:
                waves = await UnitOfWork(self.db).run_atomic(_create)
                break
            except IntegrityError:
                if attempt == WAVE_NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    f"Wave number collision for tenant {tenant_id}, "
                    f"retrying generation (attempt {attempt + 1}/{WAVE_NUMBER_ATTEMPTS})"
                )

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="GENERATE",
            metadata={
                "strategy": request.strategy.value,
                "warehouseId": request.warehouse_id,
                "totalWaves": len(waves),
            },
        )

        logger.info(
            f"Generated {len(waves)} waves from {len(orders)} orders "
            f"({request.strategy.value}) for warehouse {request.warehouse_id}"
        )
        return waves

    async def _select_eligible_orders(
        self,
        tenant_id: uuid.UUID,
        request: GenerateWavesRequest,
    ) -> List[OutboundOrder]:
        query = (
            select(OutboundOrder)
            .options(selectinload(OutboundOrder.lines))
            .where(
                and_(
                    OutboundOrder.tenant_id == tenant_id,
                    OutboundOrder.warehouse_id == request.warehouse_id,
                    OutboundOrder.status.in_(WAVE_ELIGIBLE_STATUSES),
                )
            )
        )

        if request.time_window_from:
            query = query.where(OutboundOrder.requested_ship_date >= request.time_window_from)
        if request.time_window_to:
            query = query.where(OutboundOrder.requested_ship_date <= request.time_window_to)
        if request.carrier_code:
            query = query.where(OutboundOrder.carrier_code == request.carrier_code)
        if request.route_code:
            query = query.where(OutboundOrder.route_code == request.route_code)
        if request.zone_code:
            query = query.where(OutboundOrder.zone_code == request.zone_code)
        if request.priority_min is not None:
            query = query.where(OutboundOrder.priority >= request.priority_min)

        query = query.order_by(OutboundOrder.created_at, OutboundOrder.order_number)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _wave_fields(request: GenerateWavesRequest, batch: List[OutboundOrder]) -> Dict[str, Any]:
        """Column values and member order ids of one wave."""
        sample = batch[0]
        strategy = request.strategy
        return {
            "warehouse_id": request.warehouse_id,
            "strategy": strategy.value,
            "route_code": sample.route_code if strategy == WavePickingStrategy.BY_ROUTE else request.route_code,
            "carrier_code": sample.carrier_code if strategy == WavePickingStrategy.BY_CARRIER else request.carrier_code,
            "zone_code": sample.zone_code if strategy == WavePickingStrategy.BY_ZONE else request.zone_code,
            "time_window_from": request.time_window_from or sample.requested_ship_date,
            "time_window_to": request.time_window_to,
            "total_orders": len(batch),
            "total_lines": sum(len(order.lines) for order in batch),
            "total_units": sum(
                (line.requested_qty or Decimal("0") for order in batch for line in order.lines),
                Decimal("0"),
            ),
            "order_ids": [order.id for order in batch],
        }

    @staticmethod
    def _build_wave(tenant_id: uuid.UUID, fields: Dict[str, Any], wave_number: str) -> Wave:
        columns = {key: value for key, value in fields.items() if key != "order_ids"}
        wave = Wave(
            tenant_id=tenant_id,
            wave_number=wave_number,
            status=WaveStatus.CREATED.value,
            **columns,
        )
        wave.wave_orders = [
            WaveOrder(tenant_id=tenant_id, outbound_order_id=order_id)
            for order_id in fields["order_ids"]
        ]
        return wave

    @staticmethod
    def _wave_number_prefix() -> str:
        return f"WV-{datetime.now(timezone.utc).strftime('%Y%m%d')}-"

    async def _next_wave_sequence(self, session: AsyncSession, tenant_id: uuid.UUID) -> int:
        """Next daily sequence for wave numbers (WV-YYYYMMDD-NNNN)."""
        prefix = self._wave_number_prefix()
        result = await session.execute(
            select(func.max(Wave.wave_number))
            .where(
                and_(
                    Wave.tenant_id == tenant_id,
                    Wave.wave_number.like(f"{prefix}%")
                )
            )
        )
        last_number = result.scalar()
        if not last_number:
            return 1
        return int(last_number[len(prefix):]) + 1

    # ========================================================================
    # QUERIES
    # ========================================================================

    async def get_wave(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> Wave:
        """Get wave by ID with members and path."""
        result = await self.db.execute(
            select(Wave)
            .options(
                selectinload(Wave.wave_orders).selectinload(WaveOrder.outbound_order),
                selectinload(Wave.picking_path),
            )
            .where(and_(Wave.id == wave_id, Wave.tenant_id == tenant_id))
            .execution_options(populate_existing=True)
        )
        wave = result.scalar_one_or_none()
        if not wave:
            raise WaveNotFoundError("Wave not found")
        return wave

    async def list_waves(
        self,
        tenant_id: uuid.UUID,
        filters: Optional[WaveFilters] = None,
    ) -> List[Wave]:
        """List waves, newest first. The time-window range applies to time_window_from."""
        filters = filters or WaveFilters()
        query = select(Wave).where(Wave.tenant_id == tenant_id)

        if filters.warehouse_id:
            query = query.where(Wave.warehouse_id == filters.warehouse_id)
        if filters.status:
            query = query.where(Wave.status == filters.status.value)
        if filters.picker_user_id:
            query = query.where(Wave.picker_user_id == filters.picker_user_id)
        if filters.time_window_from:
            query = query.where(Wave.time_window_from >= filters.time_window_from)
        if filters.time_window_to:
            query = query.where(Wave.time_window_from <= filters.time_window_to)

        query = query.order_by(Wave.created_at.desc(), Wave.wave_number.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def release_wave(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> Wave:
        return await self._transition(tenant_id, wave_id, WaveStatus.RELEASED, "released_at", "RELEASE")

    async def start_wave(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> Wave:
        return await self._transition(tenant_id, wave_id, WaveStatus.IN_PROGRESS, "started_at", "START")

    async def complete_wave(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> Wave:
        return await self._transition(tenant_id, wave_id, WaveStatus.COMPLETED, "completed_at", "COMPLETE")

    async def cancel_wave(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> Wave:
        return await self._transition(tenant_id, wave_id, WaveStatus.CANCELLED, "cancelled_at", "CANCEL")

    async def assign_wave(
        self,
        tenant_id: uuid.UUID,
        wave_id: uuid.UUID,
        picker_user_id: uuid.UUID,
    ) -> Wave:
        wave = await self._get_wave_row(tenant_id, wave_id)
        wave.picker_user_id = picker_user_id
        await self.db.commit()
        await self.db.refresh(wave)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="ASSIGN",
            entity_id=wave.id,
            metadata={"pickerUserId": picker_user_id},
        )
        return wave

    async def _transition(
        self,
        tenant_id: uuid.UUID,
        wave_id: uuid.UUID,
        status: WaveStatus,
        timestamp_field: str,
        action: str,
    ) -> Wave:
        wave = await self._get_wave_row(tenant_id, wave_id)
        wave.status = status.value
        setattr(wave, timestamp_field, datetime.now(timezone.utc))
        await self.db.commit()
        await self.db.refresh(wave)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action=action,
            entity_id=wave.id,
        )
        logger.info(f"Wave {wave.wave_number} -> {status.value}")
        return wave

    async def _get_wave_row(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> Wave:
        result = await self.db.execute(
            select(Wave).where(and_(Wave.id == wave_id, Wave.tenant_id == tenant_id))
        )
        wave = result.scalar_one_or_none()
        if not wave:
            raise WaveNotFoundError("Wave not found")
        return wave
