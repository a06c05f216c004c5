# Services module
from app.services.audit_service import AuditService
from app.services.cache_service import CacheService, get_cache

# Slotting Engine
from app.services.slotting import SlottingService, ConsumptionClassifier, LocationScorer

# Wave & Route Planning
from app.services.wave_service import WaveService
from app.services.picking_task_service import PickingTaskService
from app.services.route_planner import RoutePlanner

__all__ = [
    "AuditService",
    "CacheService",
    "get_cache",
    # Slotting
    "SlottingService",
    "ConsumptionClassifier",
    "LocationScorer",
    # Waves
    "WaveService",
    "PickingTaskService",
    "RoutePlanner",
]
