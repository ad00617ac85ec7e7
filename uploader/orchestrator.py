"""Client-side upload coordination: concurrent signed uploads, then finalize, lock and notify."""

import asyncio
import posixpath
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from common.logging_config import get_logger
from uploader.constants import DEFAULT_TRANSFER_NAME
from uploader.exceptions import TransferClientError, UploadCancelledError, UploadFailedError
from uploader.transfer_client import TransferClient
from uploader.utils import guess_content_type

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadItem:
    path: Path
    relative_path: str
    size: int
    content_type: str

    @property
    def name(self) -> str:
        return posixpath.basename(self.relative_path)


def collect_upload_items(paths: Iterable) -> List[UploadItem]:
    """
    Expand files and folders into upload items.

    A plain file keeps its base name; files inside a folder keep the folder
    name and their sub-path, always with forward slashes
    (``photos/2024/a.jpg``).

    Raises:
        UploadFailedError: a path does not exist
    """
    items = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            root = path.resolve()
            for child in sorted(root.rglob("*")):
                if not child.is_file():
                    continue
                relative = f"{root.name}/{child.relative_to(root).as_posix()}"
                items.append(UploadItem(child, relative, child.stat().st_size, guess_content_type(child.name)))
        elif path.is_file():
            items.append(UploadItem(path, path.name, path.stat().st_size, guess_content_type(path.name)))
        else:
            raise UploadFailedError(f"File not found: {raw}")
    return items


def transfer_name(items: List[UploadItem]) -> str:
    if not items:
        return DEFAULT_TRANSFER_NAME
    first = items[0].name
    if len(items) == 1:
        return first
    return f"{first} + {len(items) - 1} others"


class UploadProgress:
    """Aggregate byte progress across every file of one upload."""

    def __init__(self, total_bytes: int, file_count: int):
        self.total_bytes = total_bytes
        self.file_count = file_count
        self.completed_files = 0
        self._sent: Dict[str, int] = {}

    def update(self, relative_path: str, sent_bytes: int) -> None:
        self._sent[relative_path] = sent_bytes

    def complete(self, relative_path: str, size: int) -> None:
        self._sent[relative_path] = size
        self.completed_files += 1

    @property
    def sent_bytes(self) -> int:
        return sum(self._sent.values())

    @property
    def percentage(self) -> float:
        if self.total_bytes <= 0:
            return 100.0 if self.completed_files >= self.file_count else 0.0
        return min(100.0, max(0.0, self.sent_bytes * 100.0 / self.total_bytes))


@dataclass
class UploadResult:
    transfer_id: str
    share_link: str
    name: str
    total_size: int
    file_count: int
    locked: bool = False
    email_sent: bool = False
    files: List[str] = field(default_factory=list)


class UploadOrchestrator:
    """
    Runs one multi-file upload. Every file is uploaded concurrently; finalize,
    lock and the share e-mail happen only after all of them succeeded.
    """

    def __init__(
        self,
        client: TransferClient,
        share_base_url: str,
        max_concurrency: int = 4,
        on_progress: Optional[Callable[[UploadProgress], None]] = None,
    ):
        self.client = client
        self.share_base_url = share_base_url.rstrip("/")
        self.max_concurrency = max(1, max_concurrency)
        self.on_progress = on_progress
        self._tasks: List[asyncio.Task] = []
        self._cancelled = False

    def cancel(self) -> None:
        """Abort every in-flight file upload. Bytes already stored are left in place."""
        self._cancelled = True
        for task in self._tasks:
            task.cancel()

    def share_link(self, transfer_id: str) -> str:
        return f"{self.share_base_url}/share/{transfer_id}"

    async def run(
        self,
        items: List[UploadItem],
        password: Optional[str] = None,
        recipient_email: Optional[str] = None,
        message: Optional[str] = None,
        transfer_id: Optional[str] = None,
    ) -> UploadResult:
        """
        Upload ``items`` under a new transfer id and finalize it.

        Raises:
            UploadFailedError: any file failed; nothing was finalized
            UploadCancelledError: ``cancel`` was called before completion
        """
        if not items:
            raise UploadFailedError("No files to upload")

        transfer_id = transfer_id or str(uuid.uuid4())
        total_size = sum(item.size for item in items)
        progress = UploadProgress(total_size, len(items))
        semaphore = asyncio.Semaphore(self.max_concurrency)

        logger.info(f"Starting upload [transfer_id={transfer_id}] [files={len(items)}] [bytes={total_size}]")

        self._tasks = [
            asyncio.create_task(self._upload_one(transfer_id, item, progress, semaphore))
            for item in items
        ]
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            await self._abort()
            if self._cancelled:
                logger.info(f"Upload cancelled [transfer_id={transfer_id}]")
                raise UploadCancelledError("Upload cancelled")
            raise
        except Exception as e:
            await self._abort()
            logger.error(f"Upload failed [transfer_id={transfer_id}]: {e}")
            raise UploadFailedError(f"Upload failed: {e}") from e
        finally:
            self._tasks = []

        name = transfer_name(items)
        await self.client.finalize(transfer_id, name, total_size, len(items))

        locked = False
        if password and password.strip():
            await self.client.lock(transfer_id, password)
            locked = True

        link = self.share_link(transfer_id)
        email_sent = False
        if recipient_email:
            try:
                await self.client.send_share_email(
                    recipient_email,
                    [{"name": item.name, "size": item.size} for item in items],
                    link,
                    message,
                )
                email_sent = True
            except TransferClientError as e:
                logger.warning(f"Share e-mail not sent [transfer_id={transfer_id}]: {e}")

        logger.info(f"Transfer complete [transfer_id={transfer_id}] [locked={locked}]")
        return UploadResult(
            transfer_id=transfer_id,
            share_link=link,
            name=name,
            total_size=total_size,
            file_count=len(items),
            locked=locked,
            email_sent=email_sent,
            files=[item.relative_path for item in items],
        )

    async def _abort(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _upload_one(
        self,
        transfer_id: str,
        item: UploadItem,
        progress: UploadProgress,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            if self._cancelled:
                raise asyncio.CancelledError()

            object_key = f"{transfer_id}/{item.relative_path}"
            url = await self.client.request_upload_grant(object_key, item.content_type)

            def report(sent: int) -> None:
                progress.update(item.relative_path, sent)
                if self.on_progress:
                    self.on_progress(progress)

            await self.client.upload_object(url, item.path, item.content_type, item.size, on_progress=report)
            progress.complete(item.relative_path, item.size)
            if self.on_progress:
                self.on_progress(progress)
            logger.debug(f"Uploaded {item.relative_path} [bytes={item.size}]")
