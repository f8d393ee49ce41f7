"""SQLAlchemy models for the orchestration store.

This module defines the tables the bundled store reads and purges:
- OrchestrationInstanceModel: One row per orchestration instance (the instance table)
- OrchestrationHistoryModel: The execution history events of each instance (the history table)
"""

from __future__ import annotations

from datetime import datetime

from advanced_alchemy.base import UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litestar_purge_history.core.types import OrchestrationRuntimeStatus

__all__ = [
    "OrchestrationHistoryModel",
    "OrchestrationInstanceModel",
]


class OrchestrationInstanceModel(UUIDAuditBase):
    """Persisted state of one orchestration instance.

    Attributes:
        instance_id: Runtime identifier of the instance, unique per task hub.
        name: Name of the workflow type the instance executes.
        runtime_status: Current lifecycle state.
        created_time: When the orchestration was created.
        last_updated_time: When the orchestration state last changed.
        input: Serialized orchestration input.
        output: Serialized orchestration output.
        custom_status: Serialized custom status.
        failure_details: Failure message of a failed orchestration.
        history: Related history events.
    """

    __tablename__ = "orchestration_instances"
    __table_args__ = (
        Index("ix_orchestration_instances_status_created", "runtime_status", "created_time"),
    )

    instance_id: Mapped[str] = mapped_column(String(255), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    runtime_status: Mapped[OrchestrationRuntimeStatus] = mapped_column(
        Enum(OrchestrationRuntimeStatus, native_enum=False, length=50),
        default=OrchestrationRuntimeStatus.PENDING,
    )
    created_time: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    last_updated_time: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    input: Mapped[str | None] = mapped_column(Text, nullable=True)
    output: Mapped[str | None] = mapped_column(Text, nullable=True)
    custom_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_details: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    history: Mapped[list[OrchestrationHistoryModel]] = relationship(
        back_populates="instance",
        lazy="noload",
        passive_deletes=True,
        order_by="OrchestrationHistoryModel.sequence_number",
    )


class OrchestrationHistoryModel(UUIDAuditBase):
    """One history event of an orchestration instance.

    Attributes:
        instance_id: Runtime identifier of the owning instance.
        sequence_number: Position of the event in the instance history.
        event_type: Kind of event (e.g. ``ExecutionStarted``, ``TaskCompleted``).
        payload: Serialized event data.
        timestamp: When the event was recorded.
    """

    __tablename__ = "orchestration_history"
    __table_args__ = (Index("ix_orchestration_history_instance_sequence", "instance_id", "sequence_number"),)

    instance_id: Mapped[str] = mapped_column(
        ForeignKey("orchestration_instances.instance_id", ondelete="CASCADE"),
    )
    sequence_number: Mapped[int] = mapped_column(Integer)
    event_type: Mapped[str] = mapped_column(String(100))
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))

    # Relationships
    instance: Mapped[OrchestrationInstanceModel] = relationship(
        back_populates="history",
    )
