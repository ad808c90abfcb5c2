"""Blob storage for uploaded files."""

from cnabproc.storage.base import BlobStore, blob_key_for
from cnabproc.storage.local import LocalBlobStore

__all__ = ["BlobStore", "LocalBlobStore", "blob_key_for"]
