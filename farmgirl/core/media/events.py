"""Delivery of completion events to the analytics sink."""

import logging
from typing import Optional

from .models import MediaEvent
from .protocols import EventSink

logger = logging.getLogger(__name__)


def publish(sink: Optional[EventSink], event: MediaEvent) -> None:
    """
    Hand an event to the sink without letting it fail the caller.

    The primary operation has already succeeded by the time we get here;
    a broken analytics sink only costs us a count.
    """
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception as e:
        logger.warning(
            "Event sink rejected event",
            extra={"event_kind": event.kind.value, "error": str(e)},
        )
