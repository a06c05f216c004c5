# Models module - importing registers every table with Base.metadata
from app.models.warehouse import Location, LocationCompatibilityRule, CompatibilityType
from app.models.product import Product, Lot
from app.models.inventory import (
    InventoryPosition, MovementHeader, MovementLine,
    StockStatus, MovementType, MovementStatus,
)
from app.models.order import OutboundOrder, OutboundOrderLine, OutboundOrderStatus
from app.models.slotting import (
    SlottingConfig, SlottingRecommendation, SlottingStatus, AbcClass, XyzClass,
)
from app.models.wave import (
    Wave, WaveOrder, PickingTask, PickingTaskLine, WavePickingPath,
    WavePickingStrategy, WaveStatus, PickingTaskStatus,
)
from app.models.audit_log import AuditLog

__all__ = [
    "Location",
    "LocationCompatibilityRule",
    "CompatibilityType",
    "Product",
    "Lot",
    "InventoryPosition",
    "MovementHeader",
    "MovementLine",
    "StockStatus",
    "MovementType",
    "MovementStatus",
    "OutboundOrder",
    "OutboundOrderLine",
    "OutboundOrderStatus",
    "SlottingConfig",
    "SlottingRecommendation",
    "SlottingStatus",
    "AbcClass",
    "XyzClass",
    "Wave",
    "WaveOrder",
    "PickingTask",
    "PickingTaskLine",
    "WavePickingPath",
    "WavePickingStrategy",
    "WaveStatus",
    "PickingTaskStatus",
    "AuditLog",
]
