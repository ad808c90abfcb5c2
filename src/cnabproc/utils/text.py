"""Text helpers."""

# Upper bound for error messages stored on files and attempts.
MAX_ERROR_MESSAGE_LENGTH = 1000

_ELLIPSIS = "..."


def truncate(message: str | None, max_length: int = MAX_ERROR_MESSAGE_LENGTH) -> str | None:
    """Bound a message to ``max_length`` characters.

    Truncated messages end with ``...`` and still fit within the limit.
    """
    if message is None:
        return None
    if len(message) <= max_length:
        return message
    if max_length <= len(_ELLIPSIS):
        return message[:max_length]
    return message[: max_length - len(_ELLIPSIS)] + _ELLIPSIS
