"""
Audit Logger

DESIGN DECISION: Every user action on the ledger is logged.
This provides:
1. Traceability of every change to a household's data
2. Debugging capability when a backend fails
3. A history the household can look back on

The audit logger:
- Always writes a structured local log line
- Optionally persists the event to an AuditStorageInterface
- Never lets an audit failure break the user's action
"""

from typing import Optional

import structlog

from household_ledger.models.audit import AuditEvent, AuditEventBuilder
from household_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("household_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_session_started(self, owner_id: str) -> None:
        await self.log(AuditEventBuilder.session_started(owner_id))

    async def log_session_ended(self, owner_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.session_ended(owner_id))

    async def log_item_created(
        self,
        owner_id: str,
        entity_type: str,
        entity_id: str,
        description: str,
        amount: str,
    ) -> None:
        """Log creation of an expense or receivable."""
        event = AuditEventBuilder.item_created(
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            amount=amount,
        )
        await self.log(event)

    async def log_item_updated(
        self,
        owner_id: str,
        entity_type: str,
        entity_id: str,
        fields: list[str],
    ) -> None:
        event = AuditEventBuilder.item_updated(
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            fields=fields,
        )
        await self.log(event)

    async def log_item_deleted(
        self,
        owner_id: str,
        entity_type: str,
        entity_id: str,
    ) -> None:
        await self.log(AuditEventBuilder.item_deleted(owner_id, entity_type, entity_id))

    async def log_item_paid(
        self,
        owner_id: str,
        entity_type: str,
        entity_id: str,
        by: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.item_paid(owner_id, entity_type, entity_id, by))

    async def log_settings_updated(self, owner_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.settings_updated(owner_id, fields))

    async def log_person_added(self, owner_id: str, person_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.person_added(owner_id, person_id, name))

    async def log_person_removed(self, owner_id: str, person_id: str) -> None:
        await self.log(AuditEventBuilder.person_removed(owner_id, person_id))

    async def log_category_added(
        self,
        owner_id: str,
        category_id: str,
        name: str,
        kind: str,
    ) -> None:
        await self.log(AuditEventBuilder.category_added(owner_id, category_id, name, kind))

    async def log_category_removed(self, owner_id: str, category_id: str) -> None:
        await self.log(AuditEventBuilder.category_removed(owner_id, category_id))

    async def log_validation_failed(
        self,
        owner_id: Optional[str],
        entity_type: str,
        issues: list[dict],
    ) -> None:
        """Log input rejected before it reached storage."""
        event = AuditEventBuilder.validation_failed(
            owner_id=owner_id,
            entity_type=entity_type,
            issues=issues,
        )
        await self.log(event)

    async def log_storage_failed(
        self,
        owner_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> None:
        """Log a failed repository call."""
        event = AuditEventBuilder.storage_failed(
            owner_id=owner_id,
            operation=operation,
            error_message=error_message,
        )
        await self.log(event)
