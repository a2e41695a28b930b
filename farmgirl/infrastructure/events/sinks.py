"""
Analytics event sinks.

The analytics counters themselves live elsewhere; this package only
forwards completion events. The logging sink is what production uses
until a real collector is wired in. The in-memory sink records events
for tests and mock mode.
"""

import logging

from ...core.media.models import MediaEvent

logger = logging.getLogger(__name__)


class LoggingEventSink:
    """Writes each event as a structured log line."""

    def emit(self, event: MediaEvent) -> None:
        logger.info(
            "Media event",
            extra={
                "event_kind": event.kind.value,
                "content_type": event.content_type.value,
                "storage_key": event.key,
                "entry_id": event.entry_id,
                "occurred_at": event.occurred_at.isoformat(),
            }
        )


class InMemoryEventSink:

    def __init__(self) -> None:
        self.events: list[MediaEvent] = []

    def emit(self, event: MediaEvent) -> None:
        self.events.append(event)
