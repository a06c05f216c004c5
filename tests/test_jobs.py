# tests/test_jobs.py
import uuid

import pytest

from app.jobs.optimization_jobs import get_registered_jobs, run_optimization_job
from app.jobs.scheduler import enqueue_job, scheduler
from tests.factories import make_config, make_location, make_order, make_position, make_product, make_shipment


def test_jobs_are_registered():
    assert {"calculate_slotting", "generate_waves"} <= set(get_registered_jobs())


async def test_unknown_job_is_rejected():
    with pytest.raises(ValueError):
        await run_optimization_job("rebuild_everything", {"tenant_id": str(uuid.uuid4())})


async def test_payload_without_tenant_is_skipped(async_session_maker, warehouse_id):
    result = await run_optimization_job(
        "calculate_slotting", {"warehouse_id": str(warehouse_id)}, async_session_maker
    )
    assert result["status"] == "skipped"
    assert result["error"] is None


async def test_calculate_slotting_job(session, async_session_maker, tenant_id, warehouse_id):
    location = await make_location(session, tenant_id, warehouse_id, "A-01", aisle=1)
    product = await make_product(session, tenant_id, "SKU-1")
    await make_position(session, tenant_id, warehouse_id, product, location, 3)
    await make_shipment(session, tenant_id, warehouse_id, product, 30)
    await make_config(session, tenant_id, warehouse_id)

    result = await run_optimization_job(
        "calculate_slotting",
        {"tenant_id": str(tenant_id), "warehouse_id": str(warehouse_id), "limit_results": 10},
        async_session_maker,
    )
    assert result["status"] == "success"
    assert result["output"] == {"recommendations": 1}
    assert result["duration_ms"] >= 0


async def test_failed_job_reports_error(async_session_maker, tenant_id, warehouse_id):
    result = await run_optimization_job(
        "calculate_slotting",
        {"tenant_id": str(tenant_id), "warehouse_id": str(warehouse_id)},
        async_session_maker,
    )
    assert result["status"] == "failed"
    assert "config not found" in result["error"]


async def test_generate_waves_job(session, async_session_maker, tenant_id, warehouse_id):
    product = await make_product(session, tenant_id, "SKU-1")
    for idx in range(3):
        await make_order(
            session, tenant_id, warehouse_id, f"O-{idx:03d}", lines=[(product, 1)],
            carrier_code="X",
        )

    result = await run_optimization_job(
        "generate_waves",
        {
            "tenant_id": str(tenant_id),
            "warehouse_id": str(warehouse_id),
            "strategy": "BY_CARRIER",
            "max_orders_per_wave": 2,
        },
        async_session_maker,
    )
    assert result["status"] == "success"
    assert result["output"] == {"waves": 2}


def test_enqueue_job_schedules_one_off_run(warehouse_id):
    job_id = enqueue_job("generate_waves", {"warehouse_id": str(warehouse_id)})
    try:
        assert job_id.startswith("generate_waves-")
        assert scheduler.get_job(job_id) is not None
    finally:
        scheduler.remove_job(job_id)


def test_enqueue_unknown_job():
    with pytest.raises(ValueError):
        enqueue_job("rebuild_everything", {})
