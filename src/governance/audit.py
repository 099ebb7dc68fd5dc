"""Best-effort audit trail.

Governance writes commit first; the matching event is published
afterwards. A failing audit store is logged and never undoes or blocks
the governance action.
"""

import structlog

from src.config import settings
from src.events.bus import EventBus
from src.events.types import GovernanceEvent

logger = structlog.get_logger()


class AuditTrail:
    """Publishes governance events on the bus and stores them.

    Every published event is also written to the structured log, so the
    trail survives in the logs when persistence is switched off.
    """

    def __init__(self, event_bus: EventBus | None, persist: bool | None = None):
        self._bus = event_bus
        self._persist = settings.audit_enabled if persist is None else persist
        if event_bus is not None:
            event_bus.subscribe(GovernanceEvent, self._log_event)

    async def record(self, event: GovernanceEvent) -> None:
        """Publish (and persist) an event; failures are logged only."""
        if self._bus is None:
            return
        try:
            await self._bus.publish(event, persist=self._persist)
        except Exception as e:
            logger.warning(
                "audit event not recorded",
                event_type=event.event_type,
                meeting_id=str(event.meeting_id),
                error=str(e),
            )

    async def _log_event(self, event: GovernanceEvent) -> None:
        logger.info(
            "governance event",
            event_type=event.event_type,
            event_id=str(event.event_id),
            aggregate_id=str(event.aggregate_id),
            org_id=event.org_id,
            meeting_id=str(event.meeting_id),
            actor_id=event.actor_id,
        )
