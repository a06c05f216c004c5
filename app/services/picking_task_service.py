"""
Picking Task Consolidator.

Turns a wave's member order lines into a single picking task whose lines
are consolidated per (location, product, lot) from RESERVED stock.
"""
import uuid
import logging
from decimal import Decimal
from typing import Optional, List, Dict, Tuple

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.unit_of_work import UnitOfWork
from app.models.inventory import InventoryPosition, StockStatus
from app.models.order import OutboundOrder
from app.models.wave import Wave, WaveOrder, PickingTask, PickingTaskLine, PickingTaskStatus
from app.services.audit_service import AuditService
from app.services.wave_service import WaveNotFoundError, AUDIT_RESOURCE

logger = logging.getLogger(__name__)

ConsolidationKey = Tuple[uuid.UUID, uuid.UUID, Optional[uuid.UUID]]


class PickingTaskService:
    """Creates consolidated picking tasks for waves."""

    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.audit = audit or AuditService(db)

    async def create_picking_tasks_for_wave(
        self,
        tenant_id: uuid.UUID,
        wave_id: uuid.UUID,
    ) -> List[PickingTask]:
        """
        Create one picking task for the wave.

        Every RESERVED position of a product ordered in the wave contributes
        once, summed per (location, product, lot). The first order line that
        drew on a key is kept on the task line for traceability.
        """
        result = await self.db.execute(
            select(Wave)
            .options(
                selectinload(Wave.wave_orders)
                .selectinload(WaveOrder.outbound_order)
                .selectinload(OutboundOrder.lines)
            )
            .where(and_(Wave.id == wave_id, Wave.tenant_id == tenant_id))
            .execution_options(populate_existing=True)
        )
        wave = result.scalar_one_or_none()
        if not wave:
            raise WaveNotFoundError("Wave not found")

        consolidated = await self._consolidate(tenant_id, wave)
        first_order_id = wave.wave_orders[0].outbound_order_id if wave.wave_orders else None

        async def _create(session: AsyncSession) -> List[PickingTask]:
            task = PickingTask(
                tenant_id=tenant_id,
                warehouse_id=wave.warehouse_id,
                wave_id=wave.id,
                outbound_order_id=first_order_id,
                status=(
                    PickingTaskStatus.ASSIGNED.value
                    if wave.picker_user_id else PickingTaskStatus.CREATED.value
                ),
                picker_id=wave.picker_user_id,
            )
            task.lines = [
                PickingTaskLine(
                    tenant_id=tenant_id,
                    outbound_order_line_id=entry["outbound_order_line_id"],
                    product_id=product_id,
                    lot_id=lot_id,
                    from_location_id=location_id,
                    quantity_to_pick=entry["quantity"],
                    uom=entry["uom"],
                )
                for (location_id, product_id, lot_id), entry in consolidated.items()
            ]
            session.add(task)
            await session.flush()
            return [task]

        tasks = await UnitOfWork(self.db).run_atomic(_create)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="CREATE_TASKS",
            entity_id=wave.id,
            metadata={"tasks": len(tasks), "lines": len(consolidated)},
        )
        logger.info(
            f"Created picking task for wave {wave.wave_number} with {len(consolidated)} lines"
        )
        return tasks

    async def _consolidate(self, tenant_id: uuid.UUID, wave: Wave) -> Dict[ConsolidationKey, dict]:
        consolidated: Dict[ConsolidationKey, dict] = {}
        reservations_by_product: Dict[uuid.UUID, List[InventoryPosition]] = {}
        seen_reservations = set()

        for wave_order in wave.wave_orders:
            for line in wave_order.outbound_order.lines:
                if line.product_id not in reservations_by_product:
                    reservations_by_product[line.product_id] = await self._reserved_positions(
                        tenant_id, wave.warehouse_id, line.product_id
                    )

                for reservation in reservations_by_product[line.product_id]:
                    if reservation.id in seen_reservations:
                        continue
                    seen_reservations.add(reservation.id)

                    key = (reservation.location_id, reservation.product_id, reservation.lot_id)
                    quantity = reservation.quantity or Decimal("0")
                    if key in consolidated:
                        consolidated[key]["quantity"] += quantity
                    else:
                        consolidated[key] = {
                            "outbound_order_line_id": line.id,
                            "quantity": quantity,
                            "uom": reservation.uom,
                        }
        return consolidated

    async def _reserved_positions(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> List[InventoryPosition]:
        result = await self.db.execute(
            select(InventoryPosition)
            .where(
                and_(
                    InventoryPosition.tenant_id == tenant_id,
                    InventoryPosition.warehouse_id == warehouse_id,
                    InventoryPosition.product_id == product_id,
                    InventoryPosition.stock_status == StockStatus.RESERVED.value,
                )
            )
            .order_by(InventoryPosition.created_at)
        )
        return list(result.scalars().all())
