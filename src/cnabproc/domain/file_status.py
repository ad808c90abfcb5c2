"""File lifecycle state machine.

``transition`` is the only way to change a file's status. It returns a new
``File`` on success or an ``InvalidTransition`` error value when the change is
not allowed; callers decide how loudly to fail.
"""

from dataclasses import replace
from typing import Optional

from cnabproc.domain.entities import File, FileStatus
from cnabproc.domain.errors import InvalidTransition
from cnabproc.domain.results import Err, Ok, Result
from cnabproc.utils.clock import Clock
from cnabproc.utils.text import truncate

ALLOWED_TRANSITIONS: dict[FileStatus, frozenset[FileStatus]] = {
    FileStatus.UPLOADED: frozenset({FileStatus.PROCESSING}),
    FileStatus.PROCESSING: frozenset({FileStatus.PROCESSED, FileStatus.REJECTED}),
    FileStatus.PROCESSED: frozenset(),
    FileStatus.REJECTED: frozenset(),
}


def can_transition(current: FileStatus, target: FileStatus) -> bool:
    """Return True if ``current`` may move to ``target``."""
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    file: File,
    target: FileStatus,
    clock: Clock,
    error_message: Optional[str] = None,
) -> Result[File, InvalidTransition]:
    """Apply a status change to a file.

    Args:
        file: Current file state
        target: Requested status
        clock: Clock used to stamp ``processed_at``
        error_message: Rejection reason (only used for ``Rejected``)

    Returns:
        ``Ok(new_file)`` or ``Err(InvalidTransition)``; ``file`` itself is
        never modified.
    """
    if not can_transition(file.status, target):
        return Err(InvalidTransition(file.id, file.status.value, target.value))

    if target is FileStatus.PROCESSING:
        return Ok(replace(file, status=target))

    if target is FileStatus.PROCESSED:
        return Ok(replace(file, status=target, processed_at=clock.now(), error_message=None))

    return Ok(
        replace(
            file,
            status=target,
            processed_at=clock.now(),
            error_message=truncate(error_message or "File rejected"),
        )
    )
