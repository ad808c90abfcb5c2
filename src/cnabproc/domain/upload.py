"""File upload registration."""

from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Optional

from cnabproc.config import DEFAULT_MAX_FILE_SIZE_BYTES
from cnabproc.database.base import Database
from cnabproc.domain.entities import File, FileStatus
from cnabproc.domain.errors import NotFoundError, ValidationError, file_not_found
from cnabproc.logging_config import LogContext, get_logger
from cnabproc.messaging.base import WorkQueue
from cnabproc.messaging.messages import WorkItem
from cnabproc.storage.base import BlobStore, blob_key_for
from cnabproc.utils.clock import Clock
from cnabproc.utils.ids import new_correlation_id, uuid7

logger = get_logger(__name__)

MAX_FILE_NAME_LENGTH = 255
ALLOWED_EXTENSION = ".txt"

# Characters that are never valid in a stored file name
_INVALID_NAME_CHARS = set('<>:"/\\|?*') | {chr(code) for code in range(32)}


def validate_file_name(name: str) -> str:
    """Return the trimmed file name if it is safe to store.

    Raises:
        ValidationError: If the name is blank, too long, contains path
            components or invalid characters, or is not a .txt file
    """
    trimmed = (name or "").strip()
    if not trimmed or len(trimmed) > MAX_FILE_NAME_LENGTH:
        raise ValidationError("File name is invalid.")
    if (
        PurePosixPath(trimmed).name != trimmed
        or PureWindowsPath(trimmed).name != trimmed
        or trimmed in (".", "..")
        or any(char in _INVALID_NAME_CHARS for char in trimmed)
    ):
        raise ValidationError("File name is invalid.")
    if PurePosixPath(trimmed).suffix.lower() != ALLOWED_EXTENSION:
        raise ValidationError("Only .txt files are allowed.")
    return trimmed


def _describe_size(size_bytes: int) -> str:
    if size_bytes % (1024 * 1024) == 0:
        return f"{size_bytes // (1024 * 1024)}MB"
    return f"{size_bytes} bytes"


def validate_file_size(size: int, max_size: int) -> None:
    """Raise ValidationError if ``size`` is zero or above ``max_size``."""
    if size <= 0:
        raise ValidationError("File cannot be empty.")
    if size > max_size:
        raise ValidationError(f"File size must not exceed {_describe_size(max_size)}.")


class FileUploadService:
    """Service for registering uploaded files for processing."""

    def __init__(
        self,
        db: Database,
        blob_store: BlobStore,
        queue: WorkQueue,
        clock: Clock,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    ):
        """Initialize upload service.

        Args:
            db: Database instance
            blob_store: Destination for file content
            queue: Work queue announcing new files
            clock: Clock used for upload timestamps and ids
            max_file_size_bytes: Largest accepted upload
        """
        self.db = db
        self.blob_store = blob_store
        self.queue = queue
        self.clock = clock
        self.max_file_size_bytes = max_file_size_bytes

    def register(
        self, content: bytes, name: str, uploaded_by: Optional[str] = None
    ) -> File:
        """Store an uploaded file and queue it for processing.

        Content is stored before the file row is created, so every registered
        file has its content available.

        Args:
            content: Raw file bytes
            name: Original file name
            uploaded_by: Optional uploader, notified of the outcome

        Returns:
            The registered file, in Uploaded status

        Raises:
            ValidationError: If the name or size is not acceptable
            ProcessingError: If storage or the queue failed
        """
        file_name = validate_file_name(name)
        validate_file_size(len(content), self.max_file_size_bytes)

        now = self.clock.now()
        file_id = uuid7(now)
        file = File(
            id=file_id,
            name=file_name,
            size=len(content),
            blob_key=blob_key_for(file_id, file_name),
            status=FileStatus.UPLOADED,
            error_message=None,
            uploaded_at=now,
            processed_at=None,
            uploaded_by=uploaded_by,
        )

        correlation_id = new_correlation_id()
        with LogContext.bind(correlation_id=correlation_id, file_id=file_id):
            self.blob_store.put(file.blob_key, content)
            self.db.create_file(file)
            self._enqueue(file, correlation_id)
            logger.info("Registered file %s (%s, %d bytes)", file_id, file_name, file.size)
        return file

    def register_path(
        self, path: str | Path, name: Optional[str] = None, uploaded_by: Optional[str] = None
    ) -> File:
        """Register a file read from disk.

        Args:
            path: File to read
            name: Stored name (defaults to the file's own name)
            uploaded_by: Optional uploader
        """
        path = Path(path)
        return self.register(path.read_bytes(), name or path.name, uploaded_by=uploaded_by)

    def requeue(self, file_id: str) -> File:
        """Announce an Uploaded file again, e.g. after a failed enqueue.

        Raises:
            NotFoundError: If the file does not exist
            ValidationError: If the file already left Uploaded
        """
        file = self.db.get_file(file_id)
        if file is None:
            raise NotFoundError(file_not_found(file_id))
        if file.status is not FileStatus.UPLOADED:
            raise ValidationError(
                f"File {file_id} is {file.status.value}; only Uploaded files can be queued"
            )
        correlation_id = new_correlation_id()
        with LogContext.bind(correlation_id=correlation_id, file_id=file_id):
            self._enqueue(file, correlation_id)
            logger.info("Queued file %s again", file_id)
        return file

    def _enqueue(self, file: File, correlation_id: str) -> str:
        return self.queue.send(
            WorkItem.for_file(file).to_json(), attributes={"correlationId": correlation_id}
        )
