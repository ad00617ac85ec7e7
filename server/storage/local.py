"""Filesystem-backed object store with HMAC-signed grant URLs served by this service."""

import asyncio
import hashlib
import hmac
import json
import os
import time
import uuid
from pathlib import Path
from typing import AsyncIterator, List, Optional
from urllib.parse import quote, urlencode

from common.constants import DEFAULT_CONTENT_TYPE, STREAM_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from common.types import StoredObject
from server.exceptions import (
    BadRequestError,
    InvalidGrantError,
    ObjectNotFoundError,
    StoreUnavailableError,
)
from server.storage.base import ObjectStoreGateway

logger = get_logger(__name__)

# Internal directories under the root; never part of any object key
CONTENT_TYPE_DIR = ".content-types"
INCOMING_DIR = ".incoming"
_INTERNAL_DIRS = {CONTENT_TYPE_DIR, INCOMING_DIR}


class LocalObjectStore(ObjectStoreGateway):
    """
    Stores objects as files under ``root``; ``{transferId}/{relativePath}``
    maps to ``root/transferId/relativePath``.

    Upload and download grants point at ``/storage/{key}`` on this service
    and carry an expiry and an HMAC-SHA256 signature.
    """

    backend_name = "local"

    def __init__(
        self,
        root: str,
        public_base_url: str,
        signing_secret: str,
        upload_ttl_seconds: int,
        download_ttl_seconds: int,
        chunk_size: int = STREAM_CHUNK_SIZE_BYTES,
    ):
        if not signing_secret:
            raise StoreUnavailableError("Local object store requires a signing secret")

        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self._secret = signing_secret.encode("utf-8")
        self.upload_ttl_seconds = upload_ttl_seconds
        self.download_ttl_seconds = download_ttl_seconds
        self.chunk_size = chunk_size

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Local storage root is not writable: {e}") from e

        logger.info(f"Local object store ready [root={self.root}]")

    # --- grants ---

    def _sign(self, method: str, object_key: str, expires: int, content_type: str = "") -> str:
        message = f"{method}\n{object_key}\n{content_type}\n{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def _grant_url(self, method: str, object_key: str, ttl_seconds: int, content_type: str = "") -> str:
        expires = int(time.time()) + ttl_seconds
        params = {"expires": expires}
        if content_type:
            params["content_type"] = content_type
        params["signature"] = self._sign(method, object_key, expires, content_type)
        return f"{self.public_base_url}/storage/{quote(object_key)}?{urlencode(params)}"

    async def issue_upload_grant(self, object_key: str, content_type: str) -> str:
        self._path_for(object_key)
        return self._grant_url("PUT", object_key, self.upload_ttl_seconds, content_type)

    async def issue_download_grant(self, object_key: str) -> str:
        self._path_for(object_key)
        return self._grant_url("GET", object_key, self.download_ttl_seconds)

    def verify_grant(
        self,
        method: str,
        object_key: str,
        expires: int,
        signature: str,
        content_type: str = "",
    ) -> None:
        """
        Check a grant presented to the storage routes.

        Raises:
            InvalidGrantError: signature mismatch or grant expired
        """
        expected = self._sign(method, object_key, expires, content_type)
        if not hmac.compare_digest(expected, signature or ""):
            raise InvalidGrantError("Invalid storage signature")
        if expires < int(time.time()):
            raise InvalidGrantError("Storage grant expired")

    # --- key/path mapping ---

    def _path_for(self, object_key: str) -> Path:
        parts = object_key.split("/")
        if (
            not object_key
            or object_key.startswith("/")
            or "\\" in object_key
            or any(part in ("", ".", "..") for part in parts)
            or parts[0] in _INTERNAL_DIRS
        ):
            raise BadRequestError(f"Invalid object key: {object_key!r}")

        path = (self.root / object_key).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            raise BadRequestError(f"Invalid object key: {object_key!r}")
        return path

    def _content_type_path(self, object_key: str) -> Path:
        return self.root / CONTENT_TYPE_DIR / f"{object_key}.json"

    def _read_content_type(self, object_key: str) -> str:
        try:
            with open(self._content_type_path(object_key), "r") as f:
                return json.load(f).get("contentType") or DEFAULT_CONTENT_TYPE
        except (OSError, ValueError):
            return DEFAULT_CONTENT_TYPE

    def _write_content_type(self, object_key: str, content_type: str) -> None:
        path = self._content_type_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump({"contentType": content_type}, f)

    # --- writes (used by the storage PUT route and tests) ---

    async def write_stream(
        self,
        object_key: str,
        chunks: AsyncIterator[bytes],
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> int:
        """
        Stream bytes into ``object_key``; the object appears atomically when complete.
        """
        path = self._path_for(object_key)
        incoming = self.root / INCOMING_DIR
        incoming.mkdir(parents=True, exist_ok=True)
        temp_path = incoming / f"{uuid.uuid4()}.part"

        written = 0
        fh = await asyncio.to_thread(open, temp_path, "wb")
        try:
            async for chunk in chunks:
                if chunk:
                    await asyncio.to_thread(fh.write, chunk)
                    written += len(chunk)
        except BaseException:
            fh.close()
            temp_path.unlink(missing_ok=True)
            raise
        fh.close()

        def _commit():
            path.parent.mkdir(parents=True, exist_ok=True)
            os.replace(temp_path, path)
            self._write_content_type(object_key, content_type or DEFAULT_CONTENT_TYPE)

        await asyncio.to_thread(_commit)
        logger.debug(f"Stored object [key={object_key}] [bytes={written}]")
        return written

    async def write_bytes(self, object_key: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> int:
        async def _single():
            yield data

        return await self.write_stream(object_key, _single(), content_type)

    # --- reads ---

    def _walk(self, prefix: str) -> List[StoredObject]:
        base_key = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
        base = self.root / base_key if base_key else self.root
        if not base.is_dir():
            return []

        objects = []
        for dirpath, dirnames, filenames in os.walk(base):
            if Path(dirpath) == self.root:
                dirnames[:] = [d for d in dirnames if d not in _INTERNAL_DIRS]
            for filename in filenames:
                full = Path(dirpath) / filename
                key = full.relative_to(self.root).as_posix()
                if not key.startswith(prefix):
                    continue
                objects.append(StoredObject(
                    key=key,
                    size=full.stat().st_size,
                    content_type=self._read_content_type(key),
                ))

        objects.sort(key=lambda obj: obj.key)
        return objects

    async def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        return await asyncio.to_thread(self._walk, prefix)

    async def stat(self, object_key: str) -> Optional[StoredObject]:
        path = self._path_for(object_key)

        def _stat():
            if not path.is_file():
                return None
            return StoredObject(
                key=object_key,
                size=path.stat().st_size,
                content_type=self._read_content_type(object_key),
            )

        return await asyncio.to_thread(_stat)

    async def fetch_stream(self, object_key: str) -> AsyncIterator[bytes]:
        path = self._path_for(object_key)
        try:
            fh = await asyncio.to_thread(open, path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise ObjectNotFoundError(f"Object {object_key} not found") from e

        try:
            while True:
                chunk = await asyncio.to_thread(fh.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            fh.close()

    # --- deletes ---

    def _delete_prefix(self, prefix: str) -> int:
        objects = self._walk(prefix)
        for obj in objects:
            (self.root / obj.key).unlink(missing_ok=True)
            self._content_type_path(obj.key).unlink(missing_ok=True)

        for tree in (self.root, self.root / CONTENT_TYPE_DIR):
            base_key = prefix.rsplit("/", 1)[0] if "/" in prefix else ""
            base = tree / base_key if base_key else None
            if base is None or not base.is_dir():
                continue
            for dirpath, _, _ in sorted(os.walk(base), key=lambda entry: len(entry[0]), reverse=True):
                try:
                    os.rmdir(dirpath)
                except OSError:
                    pass

        return len(objects)

    async def delete_by_prefix(self, prefix: str) -> int:
        deleted = await asyncio.to_thread(self._delete_prefix, prefix)
        logger.info(f"Deleted {deleted} objects [prefix={prefix}]")
        return deleted
