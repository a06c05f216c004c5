import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType, JSONType, utcnow


class AuditLog(Base):
    """
    Append-only audit trail of optimization runs and lifecycle changes.
    Records: slotting calculations, approvals, executions, wave generation, etc.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index('ix_audit_logs_tenant_entity', 'tenant_id', 'entity_type'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType(as_uuid=True), nullable=False)

    # Who performed the action (None for engine/background runs)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # Actions: CALCULATE, APPROVE, EXECUTE, GENERATE, RELEASE, START,
    #          COMPLETE, CANCEL, ASSIGN, CREATE_TASKS, GENERATE_PATH

    # Resource being modified
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # Resources: SLOTTING, WAVE_PICKING

    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)

    # Structured event metadata
    new_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<AuditLog(action='{self.action}', entity='{self.entity_type}', id='{self.entity_id}')>"
