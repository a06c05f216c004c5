"""
Shared base classes for the slotting and wave schemas.

Response schemas are read straight from ORM rows (recommendations, waves,
picking tasks and paths), so they MUST inherit from BaseResponseSchema.
Pydantic serializes UUID, datetime and Decimal values natively; quantities
and scores reach JSON as decimal strings.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for schemas built from ORM models.

    Usage:
        class WaveResponse(BaseResponseSchema):
            id: UUID
            wave_number: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Request bodies: unknown fields are ignored."""
    model_config = ConfigDict(extra='ignore')


class BaseUpdateSchema(BaseModel):
    """Partial updates: every field is optional and only set fields apply."""
    model_config = ConfigDict(extra='ignore')
