# tests/test_location_scorer.py
import uuid

import pytest

from app.models.product import Product
from app.models.slotting import AbcClass, XyzClass, SlottingConfig
from app.models.warehouse import Location, LocationCompatibilityRule, CompatibilityType
from app.services.slotting.scoring import LocationScorer


def _product(**kwargs) -> Product:
    kwargs.setdefault("is_heavy", False)
    kwargs.setdefault("is_fragile", False)
    return Product(id=uuid.uuid4(), sku=kwargs.pop("sku", "SKU"), name="Item", **kwargs)


def _location(code: str, aisle: int = 0, row: int = 0, level: int = 0, zone=None, is_active=True) -> Location:
    return Location(
        id=uuid.uuid4(), code=code, aisle=aisle, row=row, level=level, zone=zone, is_active=is_active
    )


def _config(**kwargs) -> SlottingConfig:
    kwargs.setdefault("golden_zone_location_count", None)
    kwargs.setdefault("heavy_products_zone_enabled", False)
    kwargs.setdefault("fragile_products_zone_enabled", False)
    return SlottingConfig(**kwargs)


def _rule(location: Location, rule_type: CompatibilityType, product=None, product_class=None):
    return LocationCompatibilityRule(
        location_id=location.id,
        product_id=product.id if product else None,
        product_class=product_class,
        rule_type=rule_type.value,
    )


# ==================== Compatibility ====================

def test_block_beats_allow_in_any_order():
    product = _product()
    location = _location("A-01")
    allow = _rule(location, CompatibilityType.ALLOW, product=product)
    block = _rule(location, CompatibilityType.BLOCK, product=product)

    for rules in ([allow, block], [block, allow]):
        allowed, bonus = LocationScorer.evaluate_compatibility(product, location, rules)
        assert allowed is False
        assert bonus == -5.0


def test_allow_by_product_class_gives_bonus():
    product = _product(class_code="FROZEN")
    location = _location("F-01")
    rules = [_rule(location, CompatibilityType.ALLOW, product_class="FROZEN")]

    assert LocationScorer.evaluate_compatibility(product, location, rules) == (True, 1.5)


def test_rules_of_other_locations_are_ignored():
    product = _product()
    location = _location("A-01")
    other = _location("A-02")
    rules = [_rule(other, CompatibilityType.BLOCK, product=product)]

    assert LocationScorer.evaluate_compatibility(product, location, rules) == (True, 0.0)


def test_rule_without_product_or_class_applies_to_all():
    product = _product(class_code="GENERAL")
    location = _location("A-01")
    rules = [_rule(location, CompatibilityType.BLOCK)]

    allowed, _ = LocationScorer.evaluate_compatibility(product, location, rules)
    assert allowed is False


def test_class_rule_does_not_match_other_class():
    product = _product(class_code="GENERAL")
    location = _location("A-01")
    rules = [_rule(location, CompatibilityType.BLOCK, product_class="HAZMAT")]

    assert LocationScorer.evaluate_compatibility(product, location, rules) == (True, 0.0)


# ==================== Scores ====================

def test_base_score():
    assert LocationScorer.base_score(AbcClass.A, XyzClass.X, 1.0, 5.0) == 12.0
    assert LocationScorer.base_score(AbcClass.C, XyzClass.Z, 0.0, float("inf")) == 2.5
    # rotation capped at 5
    assert LocationScorer.base_score(AbcClass.B, XyzClass.Y, 100.0, 20.0) == 10.0


def test_location_score_bonuses_and_penalties():
    product = _product(is_heavy=True)
    config = _config(heavy_products_zone_enabled=True)

    golden = _location("A-01", zone="PICK")
    assert LocationScorer.location_score(product, 10.0, golden, 0, config, 0.0, True) == 13.0

    pick = _location("A-02", zone="PICK")
    assert LocationScorer.location_score(product, 10.0, pick, 2, config, 0.0, False) == pytest.approx(11.3)

    heavy = _location("H-01", zone="HEAVY-RACK")
    assert LocationScorer.location_score(product, 10.0, heavy, 0, config, 1.5, False) == 12.5

    inactive = _location("Z-01", is_active=False)
    assert LocationScorer.location_score(product, 10.0, inactive, 0, config, 0.0, False) == 8.0


def test_heavy_bonus_requires_config_flag():
    product = _product(is_heavy=True)
    heavy = _location("H-01", zone="HEAVY")
    assert LocationScorer.location_score(product, 10.0, heavy, 0, _config(), 0.0, False) == 10.0


# ==================== Distance ranks / golden zone ====================

async def test_distance_ranks_sorted_and_cached(cache):
    tenant_id, warehouse_id = uuid.uuid4(), uuid.uuid4()
    far = _location("C-01", aisle=5, row=5)
    near_b = _location("B-01", aisle=1)
    near_a = _location("A-09", row=1)

    scorer = LocationScorer(cache)
    ranks = await scorer.build_distance_ranks(tenant_id, warehouse_id, [far, near_b, near_a])
    assert ranks == {str(near_a.id): 0, str(near_b.id): 1, str(far.id): 2}

    # A second build within the TTL returns the cached map
    again = await scorer.build_distance_ranks(tenant_id, warehouse_id, [])
    assert again == ranks

    unknown = _location("X-01")
    assert LocationScorer.distance_rank(unknown, ranks) == 3


def test_golden_zone_defaults_to_five_closest():
    locations = [_location(f"L-{i:02d}", aisle=i) for i in range(7)]
    ranks = {str(loc.id): i for i, loc in enumerate(locations)}

    golden = LocationScorer.golden_zone_ids(locations, ranks, _config())
    assert golden == {loc.id for loc in locations[:5]}

    golden = LocationScorer.golden_zone_ids(locations, ranks, _config(golden_zone_location_count=2))
    assert golden == {loc.id for loc in locations[:2]}


def test_select_best_skips_blocked_and_keeps_first_on_tie(cache):
    product = _product()
    first = _location("A-01")
    second = _location("A-02")
    blocked = _location("A-00", zone="PICK")
    rules = [_rule(blocked, CompatibilityType.BLOCK, product=product)]
    ranks = {str(first.id): 0, str(second.id): 0, str(blocked.id): 0}

    scorer = LocationScorer(cache)
    best = scorer.select_best(product, 5.0, [blocked, first, second], rules, ranks, _config(), set())
    assert best.location is first
    assert best.score == 5.0


def test_select_best_without_candidates(cache):
    product = _product()
    location = _location("A-01")
    rules = [_rule(location, CompatibilityType.BLOCK, product=product)]

    scorer = LocationScorer(cache)
    assert scorer.select_best(product, 5.0, [location], rules, {}, _config(), set()) is None
