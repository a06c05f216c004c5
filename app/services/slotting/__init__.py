"""
Slotting Engine Services

Classifies products by consumption behavior and recommends storage locations:
- ConsumptionClassifier: consumption totals, daily series and ABC-XYZ classification
- LocationScorer: compatibility rules, distance ranks and location scoring
- SlottingService: configs, calculation runs and the recommendation lifecycle
"""

from app.services.slotting.consumption import ConsumptionClassifier, ProductConsumption
from app.services.slotting.scoring import LocationScorer, ScoredLocation
from app.services.slotting.service import (
    SlottingService,
    SlottingError,
    SlottingNotFoundError,
    SlottingConfigNotFoundError,
    SlottingStateError,
)

__all__ = [
    "ConsumptionClassifier",
    "ProductConsumption",
    "LocationScorer",
    "ScoredLocation",
    "SlottingService",
    "SlottingError",
    "SlottingNotFoundError",
    "SlottingConfigNotFoundError",
    "SlottingStateError",
]
