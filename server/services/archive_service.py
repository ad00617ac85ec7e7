"""Streaming ZIP builder for bulk transfer downloads."""

import asyncio
import enum
import zipfile
from typing import AsyncIterator, Dict, List, Optional, Protocol

from common.logging_config import get_logger
from common.types import FileDescriptor
from server.exceptions import (
    AuthInvalidError,
    AuthRequiredError,
    ObjectNotFoundError,
    StoreUnavailableError,
    StreamAbortedError,
    TransferNotFoundError,
)
from server.services.transfer_service import TransferService
from server.storage.base import ObjectStoreGateway
from server.utils import archive_filename, content_disposition

logger = get_logger(__name__)

ZIP_MEDIA_TYPE = "application/zip"
COMPRESS_LEVEL = 9

# Failures while reading one file. Before its entry starts the file is skipped;
# once its entry has started the stream is aborted.
_FETCH_ERRORS = (ObjectNotFoundError, StoreUnavailableError, OSError)


class ArchiveState(str, enum.Enum):
    IDLE = "idle"
    AUTH_CHECKING = "auth_checking"
    LISTING = "listing"
    HEADER_WRITTEN = "header_written"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    REJECTED = "rejected"
    ABORTED = "aborted"


class ArchiveSink(Protocol):
    """Destination of an archive: framing first, then body bytes."""

    async def start(self, media_type: str, headers: Dict[str, str]) -> None: ...

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class _ZipOutput:
    """
    Unseekable write target for ``zipfile``. Compressed bytes accumulate only
    until the next ``drain``, which happens after every chunk written.
    """

    def __init__(self):
        self._buffer = bytearray()

    def write(self, data) -> int:
        self._buffer += data
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


def _needs_zip64(size: int) -> bool:
    return size * 1.05 > zipfile.ZIP64_LIMIT


class ArchiveStream:
    """
    One bulk download. Authorization and listing happen in ``prepare`` so
    failures there can still become clean error responses; after that the
    body is produced by ``iter_bytes``.
    """

    def __init__(self, transfer_id: str, object_store: ObjectStoreGateway):
        self.transfer_id = transfer_id
        self.object_store = object_store
        self.state = ArchiveState.IDLE
        self.files: List[FileDescriptor] = []
        self.skipped: List[str] = []
        self.filename = archive_filename(transfer_id, [])

    async def prepare(self, transfer_service: TransferService, password: Optional[str]) -> None:
        self.state = ArchiveState.AUTH_CHECKING
        try:
            metadata = await transfer_service.check_password(self.transfer_id, password)
        except (AuthRequiredError, AuthInvalidError):
            self.state = ArchiveState.REJECTED
            raise

        self.state = ArchiveState.LISTING
        listing = await transfer_service.build_listing(self.transfer_id, metadata)
        if not listing.files:
            self.state = ArchiveState.REJECTED
            raise TransferNotFoundError("No files found for this transfer")

        self.files = listing.files
        self.filename = archive_filename(self.transfer_id, [f.name for f in self.files])

    @property
    def media_type(self) -> str:
        return ZIP_MEDIA_TYPE

    @property
    def headers(self) -> Dict[str, str]:
        return {"Content-Disposition": content_disposition(self.filename)}

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """
        Yield the archive incrementally, entries in listing order.

        Raises:
            StreamAbortedError: the compressor failed, or a file failed mid-entry
        """
        output = _ZipOutput()
        self.state = ArchiveState.HEADER_WRITTEN
        logger.info(f"Streaming archive {self.filename!r} [transfer_id={self.transfer_id}] [files={len(self.files)}]")

        try:
            with zipfile.ZipFile(output, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL) as archive:
                self.state = ArchiveState.STREAMING
                for descriptor in self.files:
                    entry_bytes = self._append(archive, output, descriptor)
                    try:
                        async for data in entry_bytes:
                            yield data
                    finally:
                        await entry_bytes.aclose()
                self.state = ArchiveState.FINALIZING

            tail = output.drain()
            if tail:
                yield tail
            self.state = ArchiveState.DONE
            logger.info(
                f"Archive complete [transfer_id={self.transfer_id}] "
                f"[entries={len(self.files) - len(self.skipped)}] [skipped={len(self.skipped)}]"
            )
        except (GeneratorExit, asyncio.CancelledError):
            self.state = ArchiveState.ABORTED
            logger.warning(f"Archive consumer went away [transfer_id={self.transfer_id}]")
            raise
        except StreamAbortedError:
            self.state = ArchiveState.ABORTED
            raise
        except Exception as e:
            self.state = ArchiveState.ABORTED
            logger.error(f"Archive stream failed [transfer_id={self.transfer_id}]: {e}", exc_info=True)
            raise StreamAbortedError("Archive stream aborted") from e

    async def _append(self, archive: zipfile.ZipFile, output: _ZipOutput, descriptor: FileDescriptor) -> AsyncIterator[bytes]:
        key = f"{self.transfer_id}/{descriptor.name}"
        chunks = self.object_store.fetch_stream(key)

        try:
            try:
                pending = await chunks.__anext__()
            except StopAsyncIteration:
                pending = b""
            except _FETCH_ERRORS as e:
                logger.warning(f"Skipping {descriptor.name!r} in archive: {e}")
                self.skipped.append(descriptor.name)
                return

            with archive.open(descriptor.name, mode="w", force_zip64=_needs_zip64(descriptor.size)) as entry:
                while pending is not None:
                    entry.write(pending)
                    data = output.drain()
                    if data:
                        yield data
                    try:
                        pending = await chunks.__anext__()
                    except StopAsyncIteration:
                        pending = None
                    except _FETCH_ERRORS as e:
                        logger.error(f"Fetch of {descriptor.name!r} failed mid-entry [transfer_id={self.transfer_id}]: {e}")
                        raise StreamAbortedError(f"Could not read {descriptor.name}") from e

            data = output.drain()
            if data:
                yield data
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()


class ArchiveService:
    def __init__(self, transfer_service: Optional[TransferService] = None):
        self.transfer_service = transfer_service or TransferService()

    async def open_stream(self, transfer_id: str, password: Optional[str] = None) -> ArchiveStream:
        """
        Run the gate and the listing, returning a stream ready to emit.

        Raises:
            AuthRequiredError / AuthInvalidError: password gate failed
            TransferNotFoundError: nothing to archive
        """
        stream = ArchiveStream(transfer_id, self.transfer_service.object_store)
        await stream.prepare(self.transfer_service, password)
        return stream

    async def stream_zip(self, transfer_id: str, password: Optional[str], sink: ArchiveSink) -> ArchiveStream:
        """
        Write a complete archive to ``sink``: framing first, then the body.

        A failed ``sink.write`` stops the stream immediately so no further
        file bytes are pulled from the store.

        Raises:
            StreamAbortedError: the sink or the compressor failed mid-stream
        """
        stream = await self.open_stream(transfer_id, password)
        await sink.start(stream.media_type, stream.headers)

        body = stream.iter_bytes()
        try:
            async for data in body:
                try:
                    await sink.write(data)
                except Exception as e:
                    stream.state = ArchiveState.ABORTED
                    logger.warning(f"Archive sink write failed [transfer_id={transfer_id}]: {e}")
                    raise StreamAbortedError("Archive output closed") from e
        finally:
            await body.aclose()

        await sink.close()
        return stream
