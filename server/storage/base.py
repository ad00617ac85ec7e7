"""Object Store Gateway contract shared by every storage backend."""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from common.types import StoredObject


class ObjectStoreGateway(ABC):
    """
    Capability interface over a blob store.

    Grants are time-limited URLs that let clients move bytes directly to and
    from the store; the service itself never proxies upload payloads.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def issue_upload_grant(self, object_key: str, content_type: str) -> str:
        """Return a URL authorizing one PUT of ``object_key`` with ``content_type``."""

    @abstractmethod
    async def issue_download_grant(self, object_key: str) -> str:
        """Return a URL authorizing one GET of ``object_key``."""

    @abstractmethod
    async def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        """List every object whose key starts with ``prefix``. No filtering."""

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every object whose key starts with ``prefix``; returns the count removed."""

    @abstractmethod
    async def stat(self, object_key: str) -> Optional[StoredObject]:
        """Return size and content type of one object, or None if absent."""

    @abstractmethod
    def fetch_stream(self, object_key: str) -> AsyncIterator[bytes]:
        """
        Open a sequential read stream over one object.

        Raises ObjectNotFoundError on first iteration if the object is gone.
        """

    async def read_bytes(self, object_key: str) -> bytes:
        """Read a small object fully. Only for metadata-sized objects."""
        parts = []
        async for chunk in self.fetch_stream(object_key):
            parts.append(chunk)
        return b"".join(parts)
