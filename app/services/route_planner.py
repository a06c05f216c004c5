"""
Route Planner.

Orders the picking locations of a wave with a nearest-neighbor heuristic
starting from a synthetic START node at the grid origin. Distances are
Manhattan distances over (aisle, row, level) and are memoized in a
per-(tenant, warehouse) distance matrix kept in the cache.
"""
import uuid
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.warehouse import Location
from app.models.wave import Wave, PickingTask, PickingTaskLine, WavePickingPath
from app.services.audit_service import AuditService
from app.services.cache_service import CacheService, get_cache
from app.services.wave_service import WaveNotFoundError, AUDIT_RESOURCE

logger = logging.getLogger(__name__)

START_NODE_ID = "START"

Coordinates = Tuple[int, int, int]


@dataclass
class PathNode:
    location_id: str
    coords: Coordinates
    location_code: Optional[str] = None
    line_ids: List[str] = field(default_factory=list)


def manhattan_distance(a: Coordinates, b: Coordinates) -> float:
    return float(sum(abs(x - y) for x, y in zip(a, b)))


def nearest_neighbor(nodes: List[PathNode], distance: Callable[[PathNode, PathNode], float]) -> List[PathNode]:
    """
    Greedy visiting order starting at nodes[0].

    On equal distances the node appearing first in the remaining list wins.
    """
    if not nodes:
        return []

    remaining = list(nodes[1:])
    current = nodes[0]
    route = [current]
    while remaining:
        best_index = 0
        best_distance = float("inf")
        for idx, node in enumerate(remaining):
            d = distance(current, node)
            if d < best_distance:
                best_distance = d
                best_index = idx
        current = remaining.pop(best_index)
        route.append(current)
    return route


class RoutePlanner:
    """Picker path generation for waves."""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[CacheService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.cache = cache or get_cache()
        self.audit = audit or AuditService(db)

    async def generate_picking_path_for_wave(
        self,
        tenant_id: uuid.UUID,
        wave_id: uuid.UUID,
    ) -> WavePickingPath:
        """Plan (or re-plan) the wave's picker path and store it."""
        result = await self.db.execute(
            select(Wave).where(and_(Wave.id == wave_id, Wave.tenant_id == tenant_id))
        )
        wave = result.scalar_one_or_none()
        if not wave:
            raise WaveNotFoundError("Wave not found")

        nodes = [PathNode(location_id=START_NODE_ID, coords=(0, 0, 0))]
        nodes.extend(await self._location_nodes(tenant_id, wave.id))

        matrix: Dict[str, float] = await self.cache.get_distance_matrix(tenant_id, wave.warehouse_id) or {}

        def distance(a: PathNode, b: PathNode) -> float:
            key = f"{a.location_id}->{b.location_id}"
            if key not in matrix:
                matrix[key] = manhattan_distance(a.coords, b.coords)
            return matrix[key]

        ordered = nearest_neighbor(nodes, distance)
        stops, total_distance, total_time = self._build_stops(ordered, distance)

        await self.cache.set_distance_matrix(tenant_id, wave.warehouse_id, matrix)

        path = await self._upsert_path(tenant_id, wave, stops, total_distance, total_time)

        await self.audit.record(
            tenant_id=tenant_id,
            resource=AUDIT_RESOURCE,
            action="GENERATE_PATH",
            entity_id=wave.id,
            metadata={"stops": len(stops), "totalDistance": total_distance},
        )
        logger.info(
            f"Planned path for wave {wave.wave_number}: {len(stops)} stops, "
            f"{total_distance:.1f} m, {total_time:.2f} min"
        )
        return path

    async def _location_nodes(self, tenant_id: uuid.UUID, wave_id: uuid.UUID) -> List[PathNode]:
        """Distinct from-locations of the wave's task lines, in first-appearance order."""
        result = await self.db.execute(
            select(PickingTaskLine, Location)
            .join(PickingTask, PickingTaskLine.picking_task_id == PickingTask.id)
            .join(Location, PickingTaskLine.from_location_id == Location.id)
            .where(
                and_(
                    PickingTask.wave_id == wave_id,
                    PickingTask.tenant_id == tenant_id,
                )
            )
            .order_by(PickingTask.created_at, Location.code)
        )

        nodes: Dict[uuid.UUID, PathNode] = {}
        for line, location in result.all():
            node = nodes.get(location.id)
            if node is None:
                node = PathNode(
                    location_id=str(location.id),
                    coords=location.coordinates,
                    location_code=location.code,
                )
                nodes[location.id] = node
            node.line_ids.append(str(line.id))
        return list(nodes.values())

    @staticmethod
    def _build_stops(
        ordered: List[PathNode],
        distance: Callable[[PathNode, PathNode], float],
    ) -> Tuple[List[Dict[str, Any]], float, float]:
        speed = settings.PICKER_WALK_SPEED_M_PER_MIN
        stops = []
        total_distance = 0.0
        for idx, node in enumerate(ordered):
            leg = 0.0 if idx == 0 else distance(ordered[idx - 1], node)
            total_distance += leg
            stops.append({
                "seq": idx,
                "location_id": node.location_id,
                "location_code": node.location_code,
                "est_distance": leg,
                "est_time": leg / speed,
                "line_ids": node.line_ids,
            })
        return stops, total_distance, total_distance / speed

    async def _upsert_path(
        self,
        tenant_id: uuid.UUID,
        wave: Wave,
        stops: List[Dict[str, Any]],
        total_distance: float,
        total_time: float,
    ) -> WavePickingPath:
        result = await self.db.execute(
            select(WavePickingPath).where(WavePickingPath.wave_id == wave.id)
        )
        path = result.scalar_one_or_none()
        if path is None:
            path = WavePickingPath(tenant_id=tenant_id, wave_id=wave.id)
            self.db.add(path)

        path.path_json = stops
        path.total_distance = Decimal(str(round(total_distance, 4)))
        path.total_time = Decimal(str(round(total_time, 4)))
        path.picker_user_id = wave.picker_user_id

        await self.db.commit()
        await self.db.refresh(path)
        return path
