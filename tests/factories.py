# tests/factories.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inventory import (
    InventoryPosition, MovementHeader, MovementLine,
    MovementType, MovementStatus, StockStatus,
)
from app.models.order import OutboundOrder, OutboundOrderLine, OutboundOrderStatus
from app.models.product import Product
from app.models.slotting import SlottingConfig
from app.models.warehouse import Location, LocationCompatibilityRule, CompatibilityType


async def make_location(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    code: str,
    aisle: int = 0,
    row: int = 0,
    level: int = 0,
    zone: Optional[str] = None,
    is_active: bool = True,
) -> Location:
    loc = Location(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        code=code,
        zone=zone,
        aisle=aisle,
        row=row,
        level=level,
        is_active=is_active,
    )
    db.add(loc)
    await db.commit()
    return loc


async def make_product(db: AsyncSession, tenant_id: uuid.UUID, sku: str, **kwargs) -> Product:
    obj = Product(tenant_id=tenant_id, sku=sku, name=kwargs.pop("name", f"Item {sku}"), **kwargs)
    db.add(obj)
    await db.commit()
    return obj


async def make_position(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    product: Product,
    location: Location,
    quantity,
    status: StockStatus = StockStatus.AVAILABLE,
    lot_id: Optional[uuid.UUID] = None,
) -> InventoryPosition:
    pos = InventoryPosition(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        product_id=product.id,
        location_id=location.id,
        lot_id=lot_id,
        quantity=Decimal(str(quantity)),
        stock_status=status.value,
    )
    db.add(pos)
    await db.commit()
    return pos


async def make_config(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    **kwargs,
) -> SlottingConfig:
    config = SlottingConfig(tenant_id=tenant_id, warehouse_id=warehouse_id, **kwargs)
    db.add(config)
    await db.commit()
    return config


async def make_rule(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    location: Location,
    rule_type: CompatibilityType,
    product: Optional[Product] = None,
    product_class: Optional[str] = None,
) -> LocationCompatibilityRule:
    rule = LocationCompatibilityRule(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        location_id=location.id,
        product_id=product.id if product else None,
        product_class=product_class,
        rule_type=rule_type.value,
    )
    db.add(rule)
    await db.commit()
    return rule


async def make_shipment(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    product: Product,
    quantity,
    created_at: Optional[datetime] = None,
) -> MovementHeader:
    header = MovementHeader(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        movement_type=MovementType.OUTBOUND_SHIPMENT.value,
        status=MovementStatus.COMPLETED.value,
        lines=[
            MovementLine(
                tenant_id=tenant_id,
                product_id=product.id,
                quantity=Decimal(str(quantity)),
            )
        ],
    )
    if created_at is not None:
        header.created_at = created_at
    db.add(header)
    await db.commit()
    return header


async def make_order(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    order_number: str,
    lines: Iterable[Tuple] = (),
    status: OutboundOrderStatus = OutboundOrderStatus.FULLY_ALLOCATED,
    **kwargs,
) -> OutboundOrder:
    """
    lines: (product, requested_qty) or (product, requested_qty, picked_qty)
    """
    order = OutboundOrder(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        order_number=order_number,
        status=status.value,
        **kwargs,
    )
    order_lines = []
    for idx, spec in enumerate(lines, start=1):
        product, requested = spec[0], spec[1]
        picked = spec[2] if len(spec) > 2 else 0
        order_lines.append(
            OutboundOrderLine(
                tenant_id=tenant_id,
                line_number=idx,
                product_id=product.id,
                requested_qty=Decimal(str(requested)),
                picked_qty=Decimal(str(picked)),
            )
        )
    order.lines = order_lines
    db.add(order)
    await db.commit()
    return order


async def make_orders(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    specs: Sequence[dict],
    product: Product,
) -> list[OutboundOrder]:
    """One single-line order per spec dict, numbered O-001, O-002, ..."""
    orders = []
    for idx, spec in enumerate(specs, start=1):
        orders.append(
            await make_order(
                db, tenant_id, warehouse_id, f"O-{idx:03d}", lines=[(product, 1)], **spec
            )
        )
    return orders
