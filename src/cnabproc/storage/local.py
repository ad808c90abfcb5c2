"""Filesystem blob store."""

import os
import tempfile
from pathlib import Path, PurePosixPath

from cnabproc.domain.errors import BlobNotFoundError, StorageError, ValidationError
from cnabproc.logging_config import get_logger
from cnabproc.storage.base import BlobStore

logger = get_logger(__name__)


class LocalBlobStore(BlobStore):
    """Blob store keeping each key as a file under a root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        """Map a key to a path inside the root.

        Raises:
            ValidationError: If the key is absolute or escapes the root
        """
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or any(part in ("..", ".", "") for part in parts):
            raise ValidationError(f"Invalid blob key '{key}'")
        return self.root.joinpath(*parts)

    def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file so readers never see partial content
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write blob '{key}': {e}") from e
        logger.debug("Stored blob %s (%d bytes)", key, len(data))

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob '{key}' not found") from e
        except OSError as e:
            raise StorageError(f"Failed to read blob '{key}': {e}") from e

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()
