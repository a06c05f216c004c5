"""
Slotting Recommendation Manager.

Runs the classification + scoring pass over a warehouse and manages the
recommendation lifecycle:

    PENDING -> APPROVED | REJECTED
    APPROVED -> EXECUTED

A calculation only ever appends PENDING rows. Execution moves stock from
the current location to the recommended one in a single transaction.
"""
import uuid
import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.unit_of_work import UnitOfWork
from app.models.inventory import (
    InventoryPosition, MovementHeader, MovementLine,
    MovementType, MovementStatus, StockStatus,
)
from app.models.product import Product
from app.models.slotting import SlottingConfig, SlottingRecommendation, SlottingStatus
from app.models.warehouse import Location, LocationCompatibilityRule
from app.schemas.slotting import SlottingConfigCreate, SlottingConfigUpdate
from app.services.audit_service import AuditService
from app.services.cache_service import CacheService, get_cache
from app.services.slotting.consumption import ConsumptionClassifier
from app.services.slotting.scoring import LocationScorer

logger = logging.getLogger(__name__)

AUDIT_RESOURCE = "SLOTTING"

TERMINAL_STATUSES = (SlottingStatus.REJECTED.value, SlottingStatus.EXECUTED.value)


class SlottingError(Exception):
    """Base error for slotting operations."""
    pass


class SlottingNotFoundError(SlottingError):
    pass


class SlottingConfigNotFoundError(SlottingNotFoundError):
    pass


class SlottingStateError(SlottingError):
    """The recommendation is in a state that does not allow the operation."""
    pass


class SlottingService:
    """Slotting configuration, calculation and recommendation lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[CacheService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.cache = cache or get_cache()
        self.audit = audit or AuditService(db)
        self.classifier = ConsumptionClassifier(db, self.cache)
        self.scorer = LocationScorer(self.cache)

    # ========================================================================
    # CONFIG
    # ========================================================================

    async def create_config(self, tenant_id: uuid.UUID, data: SlottingConfigCreate) -> SlottingConfig:
        config = SlottingConfig(tenant_id=tenant_id, **data.model_dump())
        self.db.add(config)
        await self.db.commit()
        await self.db.refresh(config)
        logger.info(f"Created slotting config {config.id} for warehouse {config.warehouse_id}")
        return config

    async def update_config(
        self,
        tenant_id: uuid.UUID,
        config_id: uuid.UUID,
        data: SlottingConfigUpdate,
    ) -> SlottingConfig:
        result = await self.db.execute(
            select(SlottingConfig).where(
                and_(SlottingConfig.id == config_id, SlottingConfig.tenant_id == tenant_id)
            )
        )
        config = result.scalar_one_or_none()
        if not config:
            raise SlottingNotFoundError("Slotting config not found")

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(config, field, value)

        await self.db.commit()
        await self.db.refresh(config)
        return config

    async def list_configs(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
    ) -> List[SlottingConfig]:
        query = select(SlottingConfig).where(SlottingConfig.tenant_id == tenant_id)
        if warehouse_id:
            query = query.where(SlottingConfig.warehouse_id == warehouse_id)
        result = await self.db.execute(query.order_by(SlottingConfig.created_at))
        return list(result.scalars().all())

    async def get_active_config(self, tenant_id: uuid.UUID, warehouse_id: uuid.UUID) -> SlottingConfig:
        result = await self.db.execute(
            select(SlottingConfig)
            .where(
                and_(
                    SlottingConfig.tenant_id == tenant_id,
                    SlottingConfig.warehouse_id == warehouse_id,
                    SlottingConfig.is_active == True,  # noqa: E712
                )
            )
            .order_by(SlottingConfig.updated_at.desc())
            .limit(1)
        )
        config = result.scalar_one_or_none()
        if not config:
            raise SlottingConfigNotFoundError("Slotting config not found for warehouse")
        return config

    # ========================================================================
    # CALCULATION
    # ========================================================================

    async def calculate(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        product_id: Optional[uuid.UUID] = None,
        limit_results: Optional[int] = None,
        force: bool = False,
    ) -> List[SlottingRecommendation]:
        """
        Score every candidate product against every active location and
        persist one PENDING recommendation per surviving product.

        Products without a compatible location, or whose best score is not
        positive (unless forced), are skipped.
        """
        config = await self.get_active_config(tenant_id, warehouse_id)

        locations = list((await self.db.execute(
            select(Location)
            .where(
                and_(
                    Location.tenant_id == tenant_id,
                    Location.warehouse_id == warehouse_id,
                    Location.is_active == True,  # noqa: E712
                )
            )
            .order_by(Location.code)
        )).scalars().all())

        rules = list((await self.db.execute(
            select(LocationCompatibilityRule).where(
                and_(
                    LocationCompatibilityRule.tenant_id == tenant_id,
                    LocationCompatibilityRule.warehouse_id == warehouse_id,
                )
            )
        )).scalars().all())

        ranks = await self.scorer.build_distance_ranks(tenant_id, warehouse_id, locations)

        positions = list((await self.db.execute(
            select(InventoryPosition).where(
                and_(
                    InventoryPosition.tenant_id == tenant_id,
                    InventoryPosition.warehouse_id == warehouse_id,
                )
            )
        )).scalars().all())

        positions_by_product: Dict[uuid.UUID, List[InventoryPosition]] = {}
        for position in positions:
            positions_by_product.setdefault(position.product_id, []).append(position)

        product_ids = [product_id] if product_id else list(positions_by_product.keys())
        if not product_ids:
            return []

        products = list((await self.db.execute(
            select(Product)
            .where(and_(Product.tenant_id == tenant_id, Product.id.in_(product_ids)))
            .order_by(Product.sku)
        )).scalars().all())
        if not products:
            return []

        on_hand = {
            pid: sum(float(p.quantity or 0) for p in rows)
            for pid, rows in positions_by_product.items()
        }
        classifications = await self.classifier.classify(
            tenant_id,
            warehouse_id,
            [p.id for p in products],
            config.abc_period_days,
            config.xyz_period_days,
            on_hand,
        )
        current_locations = self._find_current_locations(positions_by_product)
        golden_ids = self.scorer.golden_zone_ids(locations, ranks, config)

        candidates: List[Dict[str, Any]] = []
        for product in products:
            consumption = classifications[product.id]
            base = self.scorer.base_score(
                consumption.abc_class,
                consumption.xyz_class,
                consumption.daily_average,
                consumption.days_of_supply,
            )
            best = self.scorer.select_best(product, base, locations, rules, ranks, config, golden_ids)
            if best is None or (not force and best.score <= 0):
                continue
            candidates.append({
                "product_id": product.id,
                "location_id": best.location.id,
                "score": best.score,
                "reason": consumption.reason,
                "current_location_id": current_locations.get(product.id),
            })

        candidates.sort(key=lambda c: c["score"], reverse=True)
        if limit_results:
            candidates = candidates[:limit_results]

        async def _persist(session: AsyncSession) -> List[SlottingRecommendation]:
            created = []
            for candidate in candidates:
                recommendation = SlottingRecommendation(
                    tenant_id=tenant_id,
                    warehouse_id=warehouse_id,
                    product_id=candidate["product_id"],
                    current_location_id=candidate["current_location_id"],
                    recommended_location_id=candidate["location_id"],
                    score=Decimal(str(round(candidate["score"], 4))),
                    reason=candidate["reason"],
                    status=SlottingStatus.PENDING.value,
                )
                session.add(recommendation)
                created.append(recommendation)
            await session.flush()
            return created

        recommendations = await UnitOfWork(self.db).run_atomic(_persist)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="CALCULATE",
            metadata={
                "warehouseId": warehouse_id,
                "productId": product_id,
                "limitResults": limit_results,
                "force": force,
                "recommendations": len(recommendations),
            },
        )

        logger.info(
            f"Slotting run for warehouse {warehouse_id}: {len(products)} products scored, "
            f"{len(recommendations)} recommendations"
        )
        return recommendations

    @staticmethod
    def _find_current_locations(
        positions_by_product: Dict[uuid.UUID, List[InventoryPosition]],
    ) -> Dict[uuid.UUID, Optional[uuid.UUID]]:
        """Primary location per product: the one holding the largest single position."""
        current: Dict[uuid.UUID, Optional[uuid.UUID]] = {}
        for product_id, rows in positions_by_product.items():
            if not rows:
                continue
            largest = max(rows, key=lambda p: p.quantity or 0)
            current[product_id] = largest.location_id
        return current

    # ========================================================================
    # RECOMMENDATIONS
    # ========================================================================

    async def list_recommendations(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
        status: Optional[SlottingStatus] = None,
    ) -> List[SlottingRecommendation]:
        """Recommendations newest first."""
        query = select(SlottingRecommendation).where(SlottingRecommendation.tenant_id == tenant_id)
        if warehouse_id:
            query = query.where(SlottingRecommendation.warehouse_id == warehouse_id)
        if status:
            query = query.where(SlottingRecommendation.status == status.value)
        query = query.order_by(SlottingRecommendation.created_at.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_recommendation(
        self,
        tenant_id: uuid.UUID,
        recommendation_id: uuid.UUID,
        for_update: bool = False,
    ) -> SlottingRecommendation:
        query = (
            select(SlottingRecommendation)
            .options(selectinload(SlottingRecommendation.product))
            .where(
                and_(
                    SlottingRecommendation.id == recommendation_id,
                    SlottingRecommendation.tenant_id == tenant_id,
                )
            )
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        recommendation = result.scalar_one_or_none()
        if not recommendation:
            raise SlottingNotFoundError("Recommendation not found")
        return recommendation

    async def approve_recommendation(
        self,
        tenant_id: uuid.UUID,
        recommendation_id: uuid.UUID,
        approve: bool,
    ) -> SlottingRecommendation:
        recommendation = await self.get_recommendation(tenant_id, recommendation_id)
        if recommendation.status == SlottingStatus.EXECUTED.value:
            raise SlottingStateError("Recommendation has already been executed")

        recommendation.status = (
            SlottingStatus.APPROVED.value if approve else SlottingStatus.REJECTED.value
        )
        await self.db.commit()
        await self.db.refresh(recommendation)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="APPROVE",
            entity_id=recommendation.id,
            metadata={"approve": approve},
        )
        return recommendation

    async def execute_recommendation(
        self,
        tenant_id: uuid.UUID,
        recommendation_id: uuid.UUID,
    ) -> SlottingRecommendation:
        """
        Move the product's stock to the recommended location.

        The moved quantity is re-read at execution time: the total at the
        source location, or across the warehouse when the recommendation has
        no source.
        """
        recommendation = await self.get_recommendation(tenant_id, recommendation_id, for_update=True)
        if recommendation.status in TERMINAL_STATUSES:
            raise SlottingStateError(
                f"Cannot execute recommendation in status: {recommendation.status}"
            )

        quantity = await self._current_quantity(tenant_id, recommendation)
        uom = recommendation.product.default_uom if recommendation.product else "EA"

        async def _apply(session: AsyncSession) -> SlottingRecommendation:
            header = MovementHeader(
                tenant_id=tenant_id,
                warehouse_id=recommendation.warehouse_id,
                movement_type=MovementType.INTERNAL_TRANSFER.value,
                status=MovementStatus.COMPLETED.value,
                reference=f"SLOTTING-{recommendation.id}",
                lines=[
                    MovementLine(
                        tenant_id=tenant_id,
                        product_id=recommendation.product_id,
                        from_location_id=recommendation.current_location_id,
                        to_location_id=recommendation.recommended_location_id,
                        quantity=quantity,
                        uom=uom,
                    )
                ],
            )
            session.add(header)

            if quantity > 0 and recommendation.current_location_id:
                await self._decrement_source(session, tenant_id, recommendation, quantity)
            if quantity > 0:
                await self._increment_destination(session, tenant_id, recommendation, quantity, uom)

            recommendation.status = SlottingStatus.EXECUTED.value
            await session.flush()
            return recommendation

        executed = await UnitOfWork(self.db).run_atomic(_apply)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="EXECUTE",
            entity_id=executed.id,
            metadata={"quantity": quantity},
        )
        logger.info(f"Executed slotting recommendation {executed.id}, moved {quantity} {uom}")
        return executed

    async def _current_quantity(
        self,
        tenant_id: uuid.UUID,
        recommendation: SlottingRecommendation,
    ) -> Decimal:
        query = select(func.sum(InventoryPosition.quantity)).where(
            and_(
                InventoryPosition.tenant_id == tenant_id,
                InventoryPosition.product_id == recommendation.product_id,
            )
        )
        if recommendation.current_location_id:
            query = query.where(InventoryPosition.location_id == recommendation.current_location_id)
        else:
            query = query.where(InventoryPosition.warehouse_id == recommendation.warehouse_id)
        result = await self.db.execute(query)
        return Decimal(str(result.scalar() or 0))

    async def _decrement_source(
        self,
        session: AsyncSession,
        tenant_id: uuid.UUID,
        recommendation: SlottingRecommendation,
        quantity: Decimal,
    ) -> None:
        result = await session.execute(
            select(InventoryPosition)
            .where(
                and_(
                    InventoryPosition.tenant_id == tenant_id,
                    InventoryPosition.product_id == recommendation.product_id,
                    InventoryPosition.location_id == recommendation.current_location_id,
                )
            )
            .order_by(InventoryPosition.created_at)
        )
        remaining = quantity
        for position in result.scalars().all():
            if remaining <= 0:
                break
            taken = min(position.quantity, remaining)
            position.quantity = max(Decimal("0"), position.quantity - taken)
            remaining -= taken

    async def _increment_destination(
        self,
        session: AsyncSession,
        tenant_id: uuid.UUID,
        recommendation: SlottingRecommendation,
        quantity: Decimal,
        uom: str,
    ) -> None:
        result = await session.execute(
            select(InventoryPosition)
            .where(
                and_(
                    InventoryPosition.tenant_id == tenant_id,
                    InventoryPosition.product_id == recommendation.product_id,
                    InventoryPosition.location_id == recommendation.recommended_location_id,
                )
            )
            .order_by(InventoryPosition.created_at)
            .limit(1)
        )
        target = result.scalar_one_or_none()
        if target:
            target.quantity = target.quantity + quantity
        else:
            session.add(InventoryPosition(
                tenant_id=tenant_id,
                warehouse_id=recommendation.warehouse_id,
                product_id=recommendation.product_id,
                location_id=recommendation.recommended_location_id,
                quantity=quantity,
                uom=uom,
                stock_status=StockStatus.AVAILABLE.value,
            ))
