"""Async HTTP client for the transfer service."""

import asyncio
import uuid
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from common.constants import PASSWORD_HEADER
from common.logging_config import get_logger
from uploader.config import Config
from uploader.constants import UPLOAD_CHUNK_SIZE
from uploader.exceptions import (
    InvalidPasswordError,
    PasswordRequiredError,
    TransferClientError,
    TransferNotFoundError,
)
from uploader.utils import filename_from_disposition

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class TransferClient:
    """HTTP client for the transfer API and for direct uploads to signed URLs."""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize transfer client.

        Args:
            config: Configuration instance
            transport: Optional transport override (tests pass httpx.MockTransport)
        """
        self.config = config
        self.session = httpx.AsyncClient(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport,
        )
        logger.info(f"Initialized TransferClient [base_url={config.get_base_url()}]")

    async def __aenter__(self) -> "TransferClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.session.aclose()

    def _headers(self, password: Optional[str] = None, authenticated: bool = False) -> dict:
        headers = {"X-Request-ID": str(uuid.uuid4())}
        if password:
            headers[PASSWORD_HEADER] = password
        token = self.config.get_session_token()
        if authenticated and token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        """
        Map an error response to the matching client exception.

        Raises:
            PasswordRequiredError / InvalidPasswordError: 401 from the password gate
            TransferNotFoundError: 404
            TransferClientError: any other non-2xx status
        """
        if response.status_code < 400:
            return

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("error") or f"{action} failed"
        code = body.get("code")

        logger.warning(f"{action} failed status={response.status_code} code={code}")

        if response.status_code == 401 and code == "PASSWORD_REQUIRED":
            raise PasswordRequiredError(message, response.status_code)
        if response.status_code == 401 and code == "INVALID_PASSWORD":
            raise InvalidPasswordError(message, response.status_code)
        if response.status_code == 404:
            raise TransferNotFoundError(message, response.status_code)
        raise TransferClientError(message, response.status_code)

    async def request_upload_grant(self, object_key: str, content_type: str) -> str:
        """
        Ask the service for a signed PUT URL for ``{transferId}/{relativePath}``.
        """
        response = await self.session.get(
            "/sas",
            params={"file": object_key, "contentType": content_type},
            headers=self._headers(),
        )
        self._raise_for_status(response, f"Upload grant for {object_key}")
        return response.json()["sasTokenUrl"]

    async def upload_object(
        self,
        url: str,
        file_path: Path,
        content_type: str,
        size: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        PUT one file's bytes straight to a signed URL, reporting bytes sent so far.
        """
        async def file_stream():
            sent = 0
            with open(file_path, "rb") as f:
                while True:
                    chunk = await asyncio.to_thread(f.read, UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    sent += len(chunk)
                    yield chunk
                    if on_progress:
                        on_progress(sent)

        response = await self.session.put(
            url,
            content=file_stream(),
            headers={"Content-Type": content_type, "Content-Length": str(size)},
        )
        self._raise_for_status(response, f"Upload of {file_path.name}")

    async def finalize(
        self,
        transfer_id: str,
        name: str,
        size: int,
        file_count: int,
    ) -> None:
        response = await self.session.post(
            f"/transfer/{transfer_id}/finalize",
            json={"name": name, "size": size, "fileCount": file_count},
            headers=self._headers(authenticated=True),
        )
        self._raise_for_status(response, "Finalize")

    async def lock(self, transfer_id: str, password: str) -> None:
        response = await self.session.post(
            f"/transfer/{transfer_id}/lock",
            json={"password": password},
            headers=self._headers(authenticated=True),
        )
        self._raise_for_status(response, "Lock")

    async def send_share_email(
        self,
        recipient_email: str,
        files: List[dict],
        share_link: str,
        message: Optional[str] = None,
    ) -> None:
        response = await self.session.post(
            "/send-email",
            json={
                "recipientEmail": recipient_email,
                "files": files,
                "shareLink": share_link,
                "message": message,
            },
            headers=self._headers(),
        )
        self._raise_for_status(response, "Share e-mail")

    async def list_transfer(self, transfer_id: str, password: Optional[str] = None) -> dict:
        """
        Fetch ``{files, name}`` for a transfer.

        Raises:
            PasswordRequiredError: transfer is protected and no password was given
            InvalidPasswordError: password rejected
            TransferNotFoundError: unknown transfer
        """
        response = await self.session.get(
            f"/transfer/{transfer_id}",
            headers=self._headers(password=password),
        )
        self._raise_for_status(response, "Listing")
        return response.json()

    async def download_archive(
        self,
        transfer_id: str,
        dest_dir: Path,
        password: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Stream the transfer's ZIP into ``dest_dir`` under the server-chosen name.

        Returns:
            Path of the written archive
        """
        async with self.session.stream(
            "GET",
            f"/transfer/{transfer_id}/zip",
            headers=self._headers(password=password),
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                self._raise_for_status(response, "Archive download")

            filename = filename_from_disposition(response.headers.get("content-disposition"))
            target = Path(dest_dir) / Path(filename or f"transfer-{transfer_id}.zip").name
            target.parent.mkdir(parents=True, exist_ok=True)

            received = 0
            with open(target, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
                    received += len(chunk)
                    if on_progress:
                        on_progress(received)

        logger.info(f"Archive saved [transfer_id={transfer_id}] [path={target}] [bytes={received}]")
        return target

    async def delete_transfer(self, transfer_id: str) -> int:
        response = await self.session.delete(
            f"/transfer/{transfer_id}",
            headers=self._headers(authenticated=True),
        )
        self._raise_for_status(response, "Delete")
        return response.json().get("deletedObjects", 0)
