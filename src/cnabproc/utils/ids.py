"""Identifier helpers."""

import os
import uuid
from datetime import datetime


def uuid7(moment: datetime) -> str:
    """Return a time-ordered UUID (version 7) string for ``moment``.

    The first 48 bits hold the Unix timestamp in milliseconds, so ids sort by
    creation time. The remaining bits are random.

    Args:
        moment: Timezone-aware creation time

    Returns:
        Canonical UUID string
    """
    unix_ms = int(moment.timestamp() * 1000) & ((1 << 48) - 1)
    rand = int.from_bytes(os.urandom(10), "big")
    rand_a = rand >> 68  # 12 bits
    rand_b = rand & ((1 << 62) - 1)

    value = unix_ms << 80
    value |= 0x7 << 76
    value |= rand_a << 64
    value |= 0b10 << 62
    value |= rand_b
    return str(uuid.UUID(int=value))


def new_correlation_id() -> str:
    """Return a random id for correlating log lines and attempts."""
    return uuid.uuid4().hex
