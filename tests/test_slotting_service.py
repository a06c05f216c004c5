# tests/test_slotting_service.py
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.models.inventory import InventoryPosition, MovementHeader, MovementType, StockStatus
from app.models.slotting import SlottingRecommendation, SlottingStatus
from app.models.warehouse import CompatibilityType
from app.schemas.slotting import SlottingConfigCreate, SlottingConfigUpdate
from app.services.audit_service import AuditService
from app.services.slotting import (
    SlottingService,
    SlottingConfigNotFoundError,
    SlottingNotFoundError,
    SlottingStateError,
)
from tests.factories import (
    make_config, make_location, make_position, make_product, make_rule, make_shipment,
)


async def _seed(session, tenant_id, warehouse_id, with_config=True):
    """
    Three locations, two stocked products:
    FAST (90 shipped, 10 on hand at B-01), SLOW (10 shipped, 5 on hand at A-02).
    """
    a01 = await make_location(session, tenant_id, warehouse_id, "A-01", aisle=1, zone="PICK")
    a02 = await make_location(session, tenant_id, warehouse_id, "A-02", aisle=2)
    b01 = await make_location(session, tenant_id, warehouse_id, "B-01", aisle=5, row=5)

    fast = await make_product(session, tenant_id, "FAST")
    slow = await make_product(session, tenant_id, "SLOW")

    fast_pos = await make_position(session, tenant_id, warehouse_id, fast, b01, 10)
    slow_pos = await make_position(session, tenant_id, warehouse_id, slow, a02, 5)

    await make_shipment(session, tenant_id, warehouse_id, fast, 90)
    await make_shipment(session, tenant_id, warehouse_id, slow, 10)

    config = await make_config(session, tenant_id, warehouse_id) if with_config else None
    return SimpleNamespace(
        a01=a01, a02=a02, b01=b01, fast=fast, slow=slow,
        fast_pos=fast_pos, slow_pos=slow_pos, config=config,
    )


# ==================== Config ====================

async def test_config_create_update_list(session, cache, tenant_id, warehouse_id):
    service = SlottingService(session, cache)
    config = await service.create_config(
        tenant_id, SlottingConfigCreate(warehouse_id=warehouse_id, abc_period_days=30)
    )
    assert config.abc_period_days == 30
    assert config.xyz_period_days == 90
    assert config.is_active is True

    updated = await service.update_config(
        tenant_id, config.id, SlottingConfigUpdate(golden_zone_location_count=2)
    )
    assert updated.golden_zone_location_count == 2
    assert updated.abc_period_days == 30

    configs = await service.list_configs(tenant_id, warehouse_id)
    assert [c.id for c in configs] == [config.id]
    assert await service.list_configs(uuid.uuid4()) == []


async def test_update_missing_config(session, cache, tenant_id, warehouse_id):
    service = SlottingService(session, cache)
    with pytest.raises(SlottingNotFoundError):
        await service.update_config(tenant_id, warehouse_id, SlottingConfigUpdate(is_active=False))


async def test_calculate_requires_active_config(session, cache, tenant_id, warehouse_id):
    await _seed(session, tenant_id, warehouse_id, with_config=False)
    await make_config(session, tenant_id, warehouse_id, is_active=False)

    service = SlottingService(session, cache)
    with pytest.raises(SlottingConfigNotFoundError):
        await service.calculate(tenant_id, warehouse_id)


# ==================== Calculation ====================

async def test_calculate_creates_pending_recommendations(session, cache, tenant_id, warehouse_id):
    seed = await _seed(session, tenant_id, warehouse_id)

    service = SlottingService(session, cache)
    recs = await service.calculate(tenant_id, warehouse_id)

    assert [r.product_id for r in recs] == [seed.fast.id, seed.slow.id]
    assert all(r.status == SlottingStatus.PENDING.value for r in recs)

    fast_rec = recs[0]
    assert fast_rec.recommended_location_id == seed.a01.id
    assert fast_rec.current_location_id == seed.b01.id
    assert fast_rec.score == Decimal("12.5")
    assert fast_rec.reason == "ABC:A XYZ:X"

    slow_rec = recs[1]
    assert slow_rec.current_location_id == seed.a02.id
    assert slow_rec.reason == "ABC:C XYZ:X"
    assert slow_rec.score < fast_rec.score


async def test_calculate_appends_on_rerun(session, cache, tenant_id, warehouse_id):
    await _seed(session, tenant_id, warehouse_id)

    service = SlottingService(session, cache)
    await service.calculate(tenant_id, warehouse_id)
    await service.calculate(tenant_id, warehouse_id)

    assert len(await service.list_recommendations(tenant_id, warehouse_id)) == 4


async def test_calculate_limit_and_product_filter(session, cache, tenant_id, warehouse_id):
    seed = await _seed(session, tenant_id, warehouse_id)
    service = SlottingService(session, cache)

    limited = await service.calculate(tenant_id, warehouse_id, limit_results=1)
    assert [r.product_id for r in limited] == [seed.fast.id]

    single = await service.calculate(tenant_id, warehouse_id, product_id=seed.slow.id)
    assert [r.product_id for r in single] == [seed.slow.id]


async def test_calculate_skips_product_without_compatible_location(session, cache, tenant_id, warehouse_id):
    seed = await _seed(session, tenant_id, warehouse_id)
    for location in (seed.a01, seed.a02, seed.b01):
        await make_rule(session, tenant_id, warehouse_id, location, CompatibilityType.BLOCK, product=seed.slow)

    service = SlottingService(session, cache)
    recs = await service.calculate(tenant_id, warehouse_id)
    assert [r.product_id for r in recs] == [seed.fast.id]


async def test_non_positive_score_needs_force(session, cache, tenant_id, warehouse_id):
    location = await make_location(session, tenant_id, warehouse_id, "Z-99")
    product = await make_product(session, tenant_id, "IDLE")
    await make_position(session, tenant_id, warehouse_id, product, location, 1)
    await make_config(session, tenant_id, warehouse_id)
    # Far from the origin: rank 100 costs 10 points
    await cache.set_distance_ranks(tenant_id, warehouse_id, {str(location.id): 100})

    service = SlottingService(session, cache)
    assert await service.calculate(tenant_id, warehouse_id) == []

    forced = await service.calculate(tenant_id, warehouse_id, force=True)
    assert len(forced) == 1
    assert forced[0].score == Decimal("-7.5")


async def test_calculate_without_stock_returns_nothing(session, cache, tenant_id, warehouse_id):
    await make_location(session, tenant_id, warehouse_id, "A-01")
    await make_config(session, tenant_id, warehouse_id)

    service = SlottingService(session, cache)
    assert await service.calculate(tenant_id, warehouse_id) == []


async def test_calculate_is_audited(session, cache, tenant_id, warehouse_id):
    await _seed(session, tenant_id, warehouse_id)
    await SlottingService(session, cache).calculate(tenant_id, warehouse_id, limit_results=5)

    events = await AuditService(session).get_events(tenant_id, resource="SLOTTING")
    assert [e.action for e in events] == ["CALCULATE"]
    assert events[0].new_values["recommendations"] == 2
    assert events[0].new_values["limitResults"] == 5


# ==================== Lifecycle ====================

async def test_approve_and_reject(session, cache, tenant_id, warehouse_id):
    await _seed(session, tenant_id, warehouse_id)
    service = SlottingService(session, cache)
    first, second = await service.calculate(tenant_id, warehouse_id)

    approved = await service.approve_recommendation(tenant_id, first.id, True)
    rejected = await service.approve_recommendation(tenant_id, second.id, False)
    assert approved.status == SlottingStatus.APPROVED.value
    assert rejected.status == SlottingStatus.REJECTED.value

    pending = await service.list_recommendations(tenant_id, warehouse_id, SlottingStatus.APPROVED)
    assert [r.id for r in pending] == [first.id]


async def test_get_missing_recommendation(session, cache, tenant_id, warehouse_id):
    with pytest.raises(SlottingNotFoundError):
        await SlottingService(session, cache).get_recommendation(tenant_id, warehouse_id)


async def test_execute_moves_stock_to_recommended_location(session, cache, tenant_id, warehouse_id):
    seed = await _seed(session, tenant_id, warehouse_id)
    service = SlottingService(session, cache)
    fast_rec, _ = await service.calculate(tenant_id, warehouse_id)
    await service.approve_recommendation(tenant_id, fast_rec.id, True)

    executed = await service.execute_recommendation(tenant_id, fast_rec.id)
    assert executed.status == SlottingStatus.EXECUTED.value

    await session.refresh(seed.fast_pos)
    assert seed.fast_pos.quantity == 0

    destination = (await session.execute(
        select(InventoryPosition).where(
            InventoryPosition.product_id == seed.fast.id,
            InventoryPosition.location_id == seed.a01.id,
        )
    )).scalar_one()
    assert destination.quantity == 10
    assert destination.stock_status == StockStatus.AVAILABLE.value

    header = (await session.execute(
        select(MovementHeader)
        .options(selectinload(MovementHeader.lines))
        .where(MovementHeader.reference == f"SLOTTING-{fast_rec.id}")
    )).scalar_one()
    assert header.movement_type == MovementType.INTERNAL_TRANSFER.value
    assert header.lines[0].from_location_id == seed.b01.id
    assert header.lines[0].to_location_id == seed.a01.id
    assert header.lines[0].quantity == 10

    with pytest.raises(SlottingStateError):
        await service.execute_recommendation(tenant_id, fast_rec.id)
    with pytest.raises(SlottingStateError):
        await service.approve_recommendation(tenant_id, fast_rec.id, False)


async def test_execute_without_source_only_touches_destination(session, cache, tenant_id, warehouse_id):
    seed = await _seed(session, tenant_id, warehouse_id)
    existing = await make_position(session, tenant_id, warehouse_id, seed.slow, seed.a01, 2)

    rec = SlottingRecommendation(
        tenant_id=tenant_id,
        warehouse_id=warehouse_id,
        product_id=seed.slow.id,
        current_location_id=None,
        recommended_location_id=seed.a01.id,
        score=Decimal("1"),
        status=SlottingStatus.APPROVED.value,
    )
    session.add(rec)
    await session.commit()

    await SlottingService(session, cache).execute_recommendation(tenant_id, rec.id)

    await session.refresh(seed.slow_pos)
    await session.refresh(existing)
    assert seed.slow_pos.quantity == 5
    assert existing.quantity == 2 + 7


async def test_execute_rejected_is_refused(session, cache, tenant_id, warehouse_id):
    seed = await _seed(session, tenant_id, warehouse_id)
    service = SlottingService(session, cache)
    fast_rec, _ = await service.calculate(tenant_id, warehouse_id)
    await service.approve_recommendation(tenant_id, fast_rec.id, False)

    with pytest.raises(SlottingStateError):
        await service.execute_recommendation(tenant_id, fast_rec.id)

    await session.refresh(seed.fast_pos)
    assert seed.fast_pos.quantity == 10


async def test_failed_execution_leaves_everything_unchanged(
    session, cache, tenant_id, warehouse_id, monkeypatch
):
    seed = await _seed(session, tenant_id, warehouse_id)
    service = SlottingService(session, cache)
    fast_rec, _ = await service.calculate(tenant_id, warehouse_id)
    rec_id = fast_rec.id

    async def _destination_unavailable(self, *args, **kwargs):
        raise RuntimeError("destination position locked")

    monkeypatch.setattr(SlottingService, "_increment_destination", _destination_unavailable)

    with pytest.raises(RuntimeError):
        await service.execute_recommendation(tenant_id, rec_id)

    # Source decrement happened before the failure and was rolled back
    await session.refresh(seed.fast_pos)
    assert seed.fast_pos.quantity == 10

    status = (await session.execute(
        select(SlottingRecommendation.status).where(SlottingRecommendation.id == rec_id)
    )).scalar_one()
    assert status == SlottingStatus.PENDING.value

    headers = (await session.execute(
        select(MovementHeader.id).where(MovementHeader.reference == f"SLOTTING-{rec_id}")
    )).scalars().all()
    assert headers == []

    destination = (await session.execute(
        select(InventoryPosition.id).where(
            InventoryPosition.product_id == seed.fast.id,
            InventoryPosition.location_id == seed.a01.id,
        )
    )).scalars().all()
    assert destination == []


async def test_audit_failure_keeps_execution(session, cache, tenant_id, warehouse_id, audit_store_down):
    seed = await _seed(session, tenant_id, warehouse_id)
    service = SlottingService(session, cache)
    fast_rec, _ = await service.calculate(tenant_id, warehouse_id)

    executed = await service.execute_recommendation(tenant_id, fast_rec.id)
    assert executed.status == SlottingStatus.EXECUTED.value

    await session.refresh(seed.fast_pos)
    assert seed.fast_pos.quantity == 0
    assert await AuditService(session).get_events(tenant_id, resource="SLOTTING") == []
