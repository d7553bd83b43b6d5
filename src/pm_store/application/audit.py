"""AuditRecorder: append to the in-memory audit log, mirror to store and admins.

The in-memory append always happens. A failed store write is logged and
otherwise ignored; the audit log is informational.
"""

import logging
from typing import Any

from src.pm_common.enums import AuditType
from src.pm_push.domain.events import ADMIN, ADMIN_AUDIT, EventPublisher, PushEvent
from src.pm_store.domain.models import AuditEntry
from src.pm_store.domain.repository import StoreProtocol
from src.pm_store.domain.state import EngineState

logger = logging.getLogger(__name__)


class AuditRecorder:
    def __init__(self, state: EngineState, store: StoreProtocol, publisher: EventPublisher) -> None:
        self._state = state
        self._store = store
        self._publisher = publisher

    async def record(self, audit_type: AuditType, details: dict[str, Any]) -> AuditEntry:
        entry = self._state.append_audit(audit_type, details)
        try:
            await self._store.insert_audit(entry)
        except Exception:
            logger.exception("Failed to persist audit %s (%s)", entry.id, audit_type.value)
        await self._publisher.publish(
            PushEvent(
                room=ADMIN,
                name=ADMIN_AUDIT,
                payload={
                    "id": entry.id,
                    "at": entry.at.isoformat(),
                    "type": audit_type.value,
                    "details": details,
                },
            )
        )
        return entry
