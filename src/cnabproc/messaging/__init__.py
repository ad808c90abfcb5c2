"""Work queue, message codec and dead-letter sinks."""

from cnabproc.messaging.base import ReceivedMessage, WorkQueue
from cnabproc.messaging.dead_letter import (
    DeadLetterCode,
    DeadLetterEntry,
    DeadLetterSink,
    JsonLinesDeadLetterSink,
    MemoryDeadLetterSink,
)
from cnabproc.messaging.messages import MalformedMessageError, WorkItem
from cnabproc.messaging.sql_queue import DatabaseQueue

__all__ = [
    "DatabaseQueue",
    "DeadLetterCode",
    "DeadLetterEntry",
    "DeadLetterSink",
    "JsonLinesDeadLetterSink",
    "MalformedMessageError",
    "MemoryDeadLetterSink",
    "ReceivedMessage",
    "WorkItem",
    "WorkQueue",
]
