"""Utility modules for cnabproc."""

from cnabproc.utils.clock import Clock, ManualClock, SystemClock
from cnabproc.utils.ids import uuid7
from cnabproc.utils.text import truncate

__all__ = ["Clock", "ManualClock", "SystemClock", "uuid7", "truncate"]
