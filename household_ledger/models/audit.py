"""
Audit Models for Household Ledger

Every user action that reaches (or is stopped before) storage is logged.
This provides:
1. Traceability of every change to a household's data
2. Debugging information when a storage backend fails
3. A record of rejected input

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"

    # Ledger items
    ITEM_CREATED = "item_created"
    ITEM_UPDATED = "item_updated"
    ITEM_DELETED = "item_deleted"
    ITEM_PAID = "item_paid"

    # Settings
    SETTINGS_UPDATED = "settings_updated"
    PERSON_ADDED = "person_added"
    PERSON_REMOVED = "person_removed"
    CATEGORY_ADDED = "category_added"
    CATEGORY_REMOVED = "category_removed"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_FAILED = "storage_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Who and what
    owner_id: Optional[str] = Field(
        default=None,
        description="Opaque id of the household owner"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'receivable', 'person')"
    )
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.item_created(owner_id, "expense", expense.id, "Rent")
        event = AuditEventBuilder.storage_failed(owner_id, "create_expense", str(exc))
    """

    @staticmethod
    def session_started(owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            owner_id=owner_id,
            description="Session started",
            is_user_action=True,
        )

    @staticmethod
    def session_ended(owner_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            owner_id=owner_id,
            description="Session ended",
            is_user_action=True,
        )

    @staticmethod
    def item_created(
        owner_id: str,
        entity_type: str,
        entity_id: str,
        description: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_CREATED,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} created: {description}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def item_updated(
        owner_id: str,
        entity_type: str,
        entity_id: str,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_UPDATED,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def item_deleted(owner_id: str, entity_type: str, entity_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ITEM_DELETED,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def item_paid(
        owner_id: str,
        entity_type: str,
        entity_id: str,
        by: Optional[str],
    ) -> AuditEvent:
        verb = "received" if entity_type == "receivable" else "paid"
        return AuditEvent(
            event_type=AuditEventType.ITEM_PAID,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} marked as {verb}",
            details={"by": by},
            is_user_action=True,
        )

    @staticmethod
    def settings_updated(owner_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            owner_id=owner_id,
            entity_type="settings",
            description="Settings updated",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def person_added(owner_id: str, person_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_ADDED,
            owner_id=owner_id,
            entity_type="person",
            entity_id=person_id,
            description=f"Person added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def person_removed(owner_id: str, person_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_REMOVED,
            owner_id=owner_id,
            entity_type="person",
            entity_id=person_id,
            description="Person removed",
            is_user_action=True,
        )

    @staticmethod
    def category_added(
        owner_id: str,
        category_id: str,
        name: str,
        kind: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            description=f"Category added: {name}",
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def category_removed(owner_id: str, category_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_REMOVED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            description="Category removed",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        owner_id: Optional[str],
        entity_type: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=entity_type,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def storage_failed(
        owner_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
