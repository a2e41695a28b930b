"""Analytics event sinks."""

from .sinks import InMemoryEventSink, LoggingEventSink

__all__ = ["InMemoryEventSink", "LoggingEventSink"]
