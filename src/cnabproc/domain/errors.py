"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConfigurationError(DomainError):
    """Configuration is invalid or missing."""


class ProcessingError(DomainError):
    """Transient failure while processing a file.

    Raised for storage and connectivity problems. The coordinator retries
    these through queue redelivery up to the configured attempt limit.
    """


class DeadlineExceeded(ProcessingError):
    """Processing ran past its deadline; in-flight work was rolled back."""


class StaleStatusError(ProcessingError):
    """A compare-and-set status write lost a race with another worker."""


class StorageError(ProcessingError):
    """Blob storage failed to read or write."""


class BlobNotFoundError(StorageError):
    """Requested blob does not exist."""


class ContractViolation(RuntimeError):
    """A programming contract was broken.

    These indicate a defect in the calling code, never bad input. They are
    logged at CRITICAL and are never retried.
    """


class InvalidTransition(ContractViolation):
    """Requested file status change is not allowed from the current status."""

    def __init__(self, file_id: str, current: str, requested: str):
        self.file_id = file_id
        self.current = current
        self.requested = requested
        super().__init__(invalid_transition(file_id, current, requested))


def file_not_found(file_id: str) -> str:
    """Return message for missing file."""
    return f"File {file_id} not found"


def store_not_found(store_id: int) -> str:
    """Return message for missing store."""
    return f"Store {store_id} not found"


def invalid_transition(file_id: str, current: str, requested: str) -> str:
    """Return message for a disallowed status change."""
    return f"File {file_id}: cannot transition from {current} to {requested}"


def retries_exhausted(attempts: int, last_error: str | None) -> str:
    """Return the rejection summary used when the retry budget is spent."""
    message = f"System error: processing failed after {attempts} attempt{'s' if attempts != 1 else ''}"
    if last_error:
        message += f". Last error: {last_error}"
    return message
