"""
Location Scorer.

Scores a product against every candidate storage location:

    score = base(ABC, XYZ, rotation, days of supply)
          + zone bonus (golden zone or PICK zone)
          + compatibility bonus
          + heavy / fragile zone bonus
          - distance rank * 0.1
          - inactive penalty

Compatibility rules may disqualify a location outright (BLOCK).
"""
import uuid
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from app.config import settings
from app.models.product import Product
from app.models.slotting import AbcClass, XyzClass, SlottingConfig
from app.models.warehouse import Location, LocationCompatibilityRule, CompatibilityType
from app.services.cache_service import CacheService, get_cache

logger = logging.getLogger(__name__)

ABC_WEIGHTS = {AbcClass.A: 3, AbcClass.B: 2, AbcClass.C: 1}
XYZ_WEIGHTS = {XyzClass.X: 3, XyzClass.Y: 2, XyzClass.Z: 1}

GOLDEN_ZONE_BONUS = 3.0
PICK_ZONE_BONUS = 1.5
ALLOW_RULE_BONUS = 1.5
BLOCK_RULE_PENALTY = -5.0
HANDLING_ZONE_BONUS = 1.0
DISTANCE_PENALTY_PER_RANK = 0.1
INACTIVE_PENALTY = 2.0


@dataclass
class ScoredLocation:
    location: Location
    score: float


def manhattan_from_origin(location: Location) -> int:
    aisle, row, level = location.coordinates
    return abs(aisle) + abs(row) + abs(level)


class LocationScorer:
    """Heuristic product-to-location scoring."""

    def __init__(self, cache: Optional[CacheService] = None):
        self.cache = cache or get_cache()

    @staticmethod
    def base_score(
        abc_class: AbcClass,
        xyz_class: XyzClass,
        daily_average: float,
        days_of_supply: float,
    ) -> float:
        """
        Product-only part of the score.

        Rotation is capped at 5 and the days-of-supply term peaks at 5 days,
        decaying to 0 outside the [0, 10] window.
        """
        rotation = min(5.0, daily_average * 2)
        dos = max(0.0, min(5.0, 5 - abs(days_of_supply - 5)))
        return ABC_WEIGHTS[abc_class] + XYZ_WEIGHTS[xyz_class] * 1.5 + rotation + dos * 0.5

    @staticmethod
    def evaluate_compatibility(
        product: Product,
        location: Location,
        rules: Sequence[LocationCompatibilityRule],
    ) -> Tuple[bool, float]:
        """
        Apply the location's compatibility rules to a product.

        Returns (allowed, bonus). A matching BLOCK disqualifies regardless of
        any matching ALLOW.
        """
        applicable = [rule for rule in rules if rule.location_id == location.id]
        if not applicable:
            return True, 0.0

        product_class = product.product_class
        allow_found = False
        block_found = False
        for rule in applicable:
            matches = (
                (rule.product_id is not None and rule.product_id == product.id)
                or (rule.product_class is not None and product_class is not None
                    and rule.product_class == product_class)
                or (rule.product_id is None and rule.product_class is None)
            )
            if not matches:
                continue
            if rule.rule_type == CompatibilityType.BLOCK.value:
                block_found = True
            elif rule.rule_type == CompatibilityType.ALLOW.value:
                allow_found = True

        if block_found:
            return False, BLOCK_RULE_PENALTY
        return True, ALLOW_RULE_BONUS if allow_found else 0.0

    async def build_distance_ranks(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        locations: Sequence[Location],
    ) -> Dict[str, int]:
        """
        Map location id -> rank by Manhattan distance from the origin.

        Ties are broken by location code. Cached per (tenant, warehouse).
        """
        cached = await self.cache.get_distance_ranks(tenant_id, warehouse_id)
        if cached:
            return cached

        ordered = sorted(locations, key=lambda loc: (manhattan_from_origin(loc), loc.code))
        ranks = {str(loc.id): idx for idx, loc in enumerate(ordered)}
        await self.cache.set_distance_ranks(tenant_id, warehouse_id, ranks)
        return ranks

    @staticmethod
    def distance_rank(location: Location, ranks: Dict[str, int]) -> int:
        """Rank of a location; locations unknown to the map rank after all known ones."""
        return ranks.get(str(location.id), len(ranks))

    @classmethod
    def golden_zone_ids(
        cls,
        locations: Sequence[Location],
        ranks: Dict[str, int],
        config: SlottingConfig,
    ) -> Set[uuid.UUID]:
        count = config.golden_zone_location_count
        if count is None:
            count = min(settings.DEFAULT_GOLDEN_ZONE_LOCATIONS, len(locations))
        return {loc.id for loc in locations if cls.distance_rank(loc, ranks) < count}

    @staticmethod
    def location_score(
        product: Product,
        base_score: float,
        location: Location,
        rank: int,
        config: SlottingConfig,
        compatibility_bonus: float,
        is_golden: bool,
    ) -> float:
        zone = (location.zone or "").upper()

        if is_golden:
            zone_bonus = GOLDEN_ZONE_BONUS
        elif "PICK" in zone:
            zone_bonus = PICK_ZONE_BONUS
        else:
            zone_bonus = 0.0

        handling_bonus = 0.0
        if config.heavy_products_zone_enabled and product.is_heavy and "HEAVY" in zone:
            handling_bonus += HANDLING_ZONE_BONUS
        if config.fragile_products_zone_enabled and product.is_fragile and "FRAGILE" in zone:
            handling_bonus += HANDLING_ZONE_BONUS

        penalty = rank * DISTANCE_PENALTY_PER_RANK
        if not location.is_active:
            penalty += INACTIVE_PENALTY

        return base_score + zone_bonus + compatibility_bonus + handling_bonus - penalty

    def select_best(
        self,
        product: Product,
        base_score: float,
        locations: List[Location],
        rules: Sequence[LocationCompatibilityRule],
        ranks: Dict[str, int],
        config: SlottingConfig,
        golden_ids: Set[uuid.UUID],
    ) -> Optional[ScoredLocation]:
        """
        Highest-scoring compatible location for a product.

        Only a strictly greater score replaces the current best, so the first
        location in iteration order keeps a tie.
        """
        best: Optional[ScoredLocation] = None
        for location in locations:
            allowed, bonus = self.evaluate_compatibility(product, location, rules)
            if not allowed:
                continue
            score = self.location_score(
                product,
                base_score,
                location,
                self.distance_rank(location, ranks),
                config,
                bonus,
                location.id in golden_ids,
            )
            if best is None or score > best.score:
                best = ScoredLocation(location=location, score=score)
        return best
