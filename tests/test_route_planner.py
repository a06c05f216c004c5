# tests/test_route_planner.py
import uuid

import pytest
from sqlalchemy import func, select

from app.models.inventory import StockStatus
from app.models.wave import WavePickingPath, WavePickingStrategy
from app.schemas.wave import GenerateWavesRequest
from app.services.picking_task_service import PickingTaskService
from app.services.route_planner import (
    START_NODE_ID,
    PathNode,
    RoutePlanner,
    manhattan_distance,
    nearest_neighbor,
)
from app.services.wave_service import WaveNotFoundError, WaveService
from tests.factories import make_location, make_order, make_position, make_product


def _distance(a: PathNode, b: PathNode) -> float:
    return manhattan_distance(a.coords, b.coords)


# ==================== Heuristic ====================

def test_manhattan_distance():
    assert manhattan_distance((0, 0, 0), (2, 3, 1)) == 6.0
    assert manhattan_distance((4, 1, 0), (1, 5, 0)) == 7.0


def test_nearest_neighbor_order():
    start = PathNode(START_NODE_ID, (0, 0, 0))
    far = PathNode("far", (5, 0, 0))
    near = PathNode("near", (1, 0, 0))
    mid = PathNode("mid", (2, 0, 0))

    route = nearest_neighbor([start, far, near, mid], _distance)
    assert [n.location_id for n in route] == [START_NODE_ID, "near", "mid", "far"]


def test_nearest_neighbor_tie_keeps_first():
    start = PathNode(START_NODE_ID, (0, 0, 0))
    left = PathNode("left", (0, 2, 0))
    right = PathNode("right", (2, 0, 0))

    assert [n.location_id for n in nearest_neighbor([start, right, left], _distance)][1] == "right"
    assert [n.location_id for n in nearest_neighbor([start, left, right], _distance)][1] == "left"


def test_nearest_neighbor_empty():
    assert nearest_neighbor([], _distance) == []


# ==================== Wave paths ====================

async def _wave_with_picks(session, tenant_id, warehouse_id, coords):
    """One order, one RESERVED position per location coordinate, tasks created."""
    product = await make_product(session, tenant_id, "SKU-1")
    await make_order(session, tenant_id, warehouse_id, "O-001", lines=[(product, 1)], carrier_code="X")
    locations = []
    for idx, (aisle, row, level) in enumerate(coords):
        location = await make_location(
            session, tenant_id, warehouse_id, f"L-{idx:02d}", aisle=aisle, row=row, level=level
        )
        await make_position(session, tenant_id, warehouse_id, product, location, 1, status=StockStatus.RESERVED)
        locations.append(location)

    wave, = await WaveService(session).generate_waves(
        tenant_id,
        GenerateWavesRequest(warehouse_id=warehouse_id, strategy=WavePickingStrategy.BY_CARRIER),
    )
    await PickingTaskService(session).create_picking_tasks_for_wave(tenant_id, wave.id)
    return wave, locations


async def test_single_location_path(session, cache, tenant_id, warehouse_id):
    wave, (location,) = await _wave_with_picks(session, tenant_id, warehouse_id, [(2, 3, 0)])

    path = await RoutePlanner(session, cache).generate_picking_path_for_wave(tenant_id, wave.id)

    assert len(path.path_json) == 2
    start, stop = path.path_json
    assert start["location_id"] == START_NODE_ID
    assert start["est_distance"] == 0.0
    assert stop["location_id"] == str(location.id)
    assert stop["location_code"] == "L-00"
    assert stop["est_distance"] == 5.0
    assert stop["est_time"] == pytest.approx(5.0 / 72.0)
    assert float(path.total_distance) == 5.0
    assert float(path.total_time) == pytest.approx(5.0 / 72.0, abs=1e-4)


async def test_path_visits_nearest_first(session, cache, tenant_id, warehouse_id):
    wave, (far, near, mid) = await _wave_with_picks(
        session, tenant_id, warehouse_id, [(5, 0, 0), (1, 0, 0), (2, 0, 0)]
    )

    path = await RoutePlanner(session, cache).generate_picking_path_for_wave(tenant_id, wave.id)

    assert [s["location_id"] for s in path.path_json] == [
        START_NODE_ID, str(near.id), str(mid.id), str(far.id),
    ]
    assert [s["seq"] for s in path.path_json] == [0, 1, 2, 3]
    assert float(path.total_distance) == 5.0
    assert all(s["line_ids"] for s in path.path_json[1:])


async def test_path_is_replaced_on_regeneration(session, cache, tenant_id, warehouse_id):
    wave, _ = await _wave_with_picks(session, tenant_id, warehouse_id, [(1, 1, 0)])
    planner = RoutePlanner(session, cache)

    first = await planner.generate_picking_path_for_wave(tenant_id, wave.id)
    second = await planner.generate_picking_path_for_wave(tenant_id, wave.id)

    assert first.id == second.id
    count = (await session.execute(
        select(func.count()).select_from(WavePickingPath).where(WavePickingPath.wave_id == wave.id)
    )).scalar()
    assert count == 1


async def test_distance_matrix_is_cached(session, cache, tenant_id, warehouse_id):
    wave, (location,) = await _wave_with_picks(session, tenant_id, warehouse_id, [(1, 2, 0)])

    await RoutePlanner(session, cache).generate_picking_path_for_wave(tenant_id, wave.id)

    matrix = await cache.get_distance_matrix(tenant_id, warehouse_id)
    assert matrix[f"{START_NODE_ID}->{location.id}"] == 3.0


async def test_path_carries_wave_picker(session, cache, tenant_id, warehouse_id):
    wave, _ = await _wave_with_picks(session, tenant_id, warehouse_id, [(1, 0, 0)])
    picker = uuid.uuid4()
    await WaveService(session).assign_wave(tenant_id, wave.id, picker)

    path = await RoutePlanner(session, cache).generate_picking_path_for_wave(tenant_id, wave.id)
    assert path.picker_user_id == picker


async def test_wave_without_tasks_has_start_only(session, cache, tenant_id, warehouse_id):
    product = await make_product(session, tenant_id, "SKU-1")
    await make_order(session, tenant_id, warehouse_id, "O-001", lines=[(product, 1)], carrier_code="X")
    wave, = await WaveService(session).generate_waves(
        tenant_id,
        GenerateWavesRequest(warehouse_id=warehouse_id, strategy=WavePickingStrategy.BY_CARRIER),
    )

    path = await RoutePlanner(session, cache).generate_picking_path_for_wave(tenant_id, wave.id)
    assert [s["location_id"] for s in path.path_json] == [START_NODE_ID]
    assert float(path.total_distance) == 0.0


async def test_missing_wave(session, cache, tenant_id):
    with pytest.raises(WaveNotFoundError):
        await RoutePlanner(session, cache).generate_picking_path_for_wave(tenant_id, uuid.uuid4())
