"""
Dead letter queue database model.

One row per unit of work that exhausted its retry budget. Rows are resolved
(never deleted) by the resilience layer; retention is handled elsewhere.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import validates

from storeops.db.base_class import Base


class ResolutionType(str, Enum):
    """How a dead-lettered record was closed"""

    REPROCESSED = "reprocessed"  # Action re-run successfully
    IGNORED = "ignored"  # Operator decided no action is needed
    FIXED = "fixed"  # Fixed out of band


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeadLetterRecord(Base):
    """
    A terminally failed unit of work awaiting human or automated reprocessing.

    A record is pending while `resolved_at` is NULL; resolution is one-way.
    """

    __tablename__ = "dead_letter_queue"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    source_queue = Column(String(255), nullable=False)
    original_id = Column(String(255), nullable=True)
    payload = Column(JSON, nullable=True)

    # Failure details
    error_message = Column(Text, nullable=True)
    error_stack = Column(Text, nullable=True)
    error_code = Column(String(100), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=0)
    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=True, onupdate=_utcnow
    )

    # Resolution
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(255), nullable=True)
    resolution_type = Column(String(20), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    __table_args__ = (
        Index(
            "ix_dead_letter_queue_pending", "source_queue", "resolved_at", "created_at"
        ),
        Index("ix_dead_letter_queue_created_at", "created_at"),
        CheckConstraint("attempts >= 0", name="ck_dlq_attempts_positive"),
        CheckConstraint(
            "resolution_type IS NULL OR resolution_type IN ('reprocessed', 'ignored', 'fixed')",
            name="ck_dlq_resolution_type",
        ),
    )

    @validates("resolution_type")
    def validate_resolution_type(self, key, value):
        if value is None:
            return value
        return ResolutionType(value).value

    @property
    def is_pending(self) -> bool:
        return self.resolved_at is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "id": self.id,
            "source_queue": self.source_queue,
            "original_id": self.original_id,
            "payload": self.payload,
            "error_message": self.error_message,
            "error_stack": self.error_stack,
            "error_code": self.error_code,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "metadata": self.extra_metadata or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "resolution_type": self.resolution_type,
            "resolution_notes": self.resolution_notes,
            "is_pending": self.is_pending,
        }
