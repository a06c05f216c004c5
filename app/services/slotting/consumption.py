"""
Consumption Classifier.

Derives per-product consumption over a lookback window and classifies
products with ABC (volume concentration) and XYZ (demand variability).

Consumption sources:
- OUTBOUND_SHIPMENT movement lines of the warehouse
- picked quantity of outbound order lines of the warehouse

Totals are read-through cached per (tenant, warehouse, product) for
CONSUMPTION_CACHE_TTL seconds. Daily series are always computed fresh.
"""
import math
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, TypeVar

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.inventory import MovementHeader, MovementLine, MovementType
from app.models.order import OutboundOrder, OutboundOrderLine
from app.models.slotting import AbcClass, XyzClass
from app.services.cache_service import CacheService, get_cache

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

# Cumulative share boundaries
ABC_A_THRESHOLD = 0.80
ABC_B_THRESHOLD = 0.95

# Coefficient of variation boundaries, inclusive on the lower class
XYZ_X_THRESHOLD = 0.5
XYZ_Y_THRESHOLD = 1.0


@dataclass
class ProductConsumption:
    """Classification result for one product."""
    product_id: uuid.UUID
    total: float
    daily_average: float
    on_hand: float
    days_of_supply: float
    abc_class: AbcClass
    xyz_class: XyzClass

    @property
    def reason(self) -> str:
        return f"ABC:{self.abc_class.value} XYZ:{self.xyz_class.value}"


def _day_key(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.date().isoformat()


class ConsumptionClassifier:
    """ABC/XYZ classification of products from their outbound history."""

    def __init__(self, db: AsyncSession, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache or get_cache()

    # ==================== Consumption ====================

    async def get_consumption(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        product_id: uuid.UUID,
        days: int,
    ) -> float:
        """Total consumed quantity of a product over the last `days` days."""
        cached = await self.cache.get_consumption(tenant_id, warehouse_id, product_id)
        if cached is not None:
            return cached

        since = datetime.now(timezone.utc) - timedelta(days=days)

        shipped = await self.db.execute(
            select(func.sum(MovementLine.quantity))
            .join(MovementHeader, MovementLine.movement_header_id == MovementHeader.id)
            .where(
                and_(
                    MovementLine.tenant_id == tenant_id,
                    MovementLine.product_id == product_id,
                    MovementHeader.warehouse_id == warehouse_id,
                    MovementHeader.movement_type == MovementType.OUTBOUND_SHIPMENT.value,
                    MovementHeader.created_at >= since,
                )
            )
        )
        picked = await self.db.execute(
            select(func.sum(OutboundOrderLine.picked_qty))
            .join(OutboundOrder, OutboundOrderLine.outbound_order_id == OutboundOrder.id)
            .where(
                and_(
                    OutboundOrderLine.tenant_id == tenant_id,
                    OutboundOrderLine.product_id == product_id,
                    OutboundOrder.warehouse_id == warehouse_id,
                    OutboundOrder.created_at >= since,
                )
            )
        )

        quantity = float(shipped.scalar() or 0) + float(picked.scalar() or 0)
        await self.cache.set_consumption(tenant_id, warehouse_id, product_id, quantity)
        return quantity

    async def get_daily_series(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        product_id: uuid.UUID,
        days: int,
    ) -> List[float]:
        """Consumed quantity per UTC calendar day, one value per day with activity."""
        since = datetime.now(timezone.utc) - timedelta(days=days)

        shipped = await self.db.execute(
            select(MovementLine.quantity, MovementHeader.created_at)
            .join(MovementHeader, MovementLine.movement_header_id == MovementHeader.id)
            .where(
                and_(
                    MovementLine.tenant_id == tenant_id,
                    MovementLine.product_id == product_id,
                    MovementHeader.warehouse_id == warehouse_id,
                    MovementHeader.movement_type == MovementType.OUTBOUND_SHIPMENT.value,
                    MovementHeader.created_at >= since,
                )
            )
        )
        picked = await self.db.execute(
            select(OutboundOrderLine.picked_qty, OutboundOrderLine.created_at)
            .join(OutboundOrder, OutboundOrderLine.outbound_order_id == OutboundOrder.id)
            .where(
                and_(
                    OutboundOrderLine.tenant_id == tenant_id,
                    OutboundOrderLine.product_id == product_id,
                    OutboundOrder.warehouse_id == warehouse_id,
                    OutboundOrder.created_at >= since,
                )
            )
        )

        per_day: Dict[str, float] = {}
        for quantity, created_at in [*shipped.all(), *picked.all()]:
            key = _day_key(created_at)
            per_day[key] = per_day.get(key, 0.0) + float(quantity or 0)

        return [per_day[key] for key in sorted(per_day)]

    # ==================== Classification ====================

    @staticmethod
    def classify_abc(consumptions: Mapping[K, float]) -> Dict[K, AbcClass]:
        """
        Partition products by cumulative share of total volume.

        Products are ranked by volume and classed by the running share
        including themselves: A up to 0.80, B up to 0.95, else C. The
        top-ranked product is always A, so a single dominant product is
        never pushed out of A. Products without volume are C.
        """
        total = sum(consumptions.values())
        if total <= 0:
            return {key: AbcClass.C for key in consumptions}

        ranked = sorted(consumptions.items(), key=lambda item: item[1], reverse=True)
        result: Dict[K, AbcClass] = {}
        cumulative = 0.0
        for position, (key, quantity) in enumerate(ranked):
            cumulative += quantity
            share = cumulative / total
            if quantity <= 0:
                result[key] = AbcClass.C
            elif position == 0 or share <= ABC_A_THRESHOLD:
                result[key] = AbcClass.A
            elif share <= ABC_B_THRESHOLD:
                result[key] = AbcClass.B
            else:
                result[key] = AbcClass.C
        return result

    @staticmethod
    def coefficient_of_variation(series: Iterable[float]) -> float:
        """Sample standard deviation over mean. Infinite when the mean is 0."""
        values = list(series)
        if not values:
            return float("inf")
        mean = sum(values) / len(values)
        if mean == 0:
            return float("inf")
        variance = sum((v - mean) ** 2 for v in values) / max(1, len(values) - 1)
        return math.sqrt(variance) / mean

    @classmethod
    def classify_xyz(cls, series: Iterable[float]) -> XyzClass:
        """X if CV <= 0.5, Y if CV <= 1.0, else Z. An empty series is Z."""
        cv = cls.coefficient_of_variation(series)
        if cv <= XYZ_X_THRESHOLD:
            return XyzClass.X
        if cv <= XYZ_Y_THRESHOLD:
            return XyzClass.Y
        return XyzClass.Z

    async def classify(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        product_ids: List[uuid.UUID],
        abc_period_days: int,
        xyz_period_days: int,
        on_hand: Optional[Mapping[uuid.UUID, float]] = None,
    ) -> Dict[uuid.UUID, ProductConsumption]:
        """Classify a set of products against each other."""
        on_hand = on_hand or {}
        totals: Dict[uuid.UUID, float] = {}
        xyz: Dict[uuid.UUID, XyzClass] = {}

        for product_id in product_ids:
            totals[product_id] = await self.get_consumption(
                tenant_id, warehouse_id, product_id, abc_period_days
            )
            series = await self.get_daily_series(
                tenant_id, warehouse_id, product_id, xyz_period_days
            )
            xyz[product_id] = self.classify_xyz(series)

        abc = self.classify_abc(totals)

        result: Dict[uuid.UUID, ProductConsumption] = {}
        for product_id in product_ids:
            daily_average = totals[product_id] / max(1, abc_period_days)
            stock = float(on_hand.get(product_id, 0) or 0)
            days_of_supply = float("inf") if daily_average == 0 else stock / daily_average
            result[product_id] = ProductConsumption(
                product_id=product_id,
                total=totals[product_id],
                daily_average=daily_average,
                on_hand=stock,
                days_of_supply=days_of_supply,
                abc_class=abc.get(product_id, AbcClass.C),
                xyz_class=xyz.get(product_id, XyzClass.Z),
            )

        logger.debug(f"Classified {len(result)} products for warehouse {warehouse_id}")
        return result
