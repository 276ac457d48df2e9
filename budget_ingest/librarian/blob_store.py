"""
Blob Stores

Keep a copy of every uploaded quote for audit. Stores expose
``put(bytes, key) -> key`` and ``get_public_url(key) -> url``.
"""

import logging
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path

from .supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class BaseBlobStore(ABC):
    """Abstract object store for original documents."""

    @abstractmethod
    def put(self, data: bytes, key: str) -> str:
        """Store bytes under a key and return the storage key."""
        pass

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        """Return a URL for a stored key."""
        pass


class LocalBlobStore(BaseBlobStore):
    """Stores documents under a local directory."""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        logger.info(f"LocalBlobStore initialized at {self.base_dir}")

    def _path(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ValueError(f"Key escapes blob directory: {key}")
        return path

    def put(self, data: bytes, key: str) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes at {path}")
        return key

    def get_public_url(self, key: str) -> str:
        return self._path(key).as_uri()


class SupabaseBlobStore(BaseBlobStore):
    """Stores documents in a Supabase storage bucket."""

    def __init__(self, client: SupabaseClient, bucket: str = "orcamentos"):
        self.client = client
        self.bucket = bucket
        logger.info(f"SupabaseBlobStore initialized (bucket={bucket})")

    def put(self, data: bytes, key: str) -> str:
        content_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
        return self.client.upload(self.bucket, key, data, content_type=content_type)

    def get_public_url(self, key: str) -> str:
        return self.client.public_url(self.bucket, key)
