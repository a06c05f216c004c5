"""Database-agnostic type definitions for SQLAlchemy models.

Column types shared by every engine table so the same models run on
PostgreSQL in production and on SQLite in tests.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# JSON instead of JSONB: stop lists and audit metadata are never queried by key
JSONType = JSON

# Stored natively on PostgreSQL, as CHAR(32) on SQLite
UUIDType = PG_UUID

# Inventory, picking and score quantities
QuantityType = Numeric(18, 4)
ScoreType = Numeric(12, 4)


def utcnow() -> datetime:
    """Timezone-aware timestamp default for created_at/updated_at columns."""
    return datetime.now(timezone.utc)
