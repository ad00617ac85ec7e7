"""Transfer lifecycle service: password gate, directory listing, finalize/lock and deletion."""

from dataclasses import dataclass
from typing import List, Optional

from common.constants import METADATA_OBJECT_NAME
from common.logging_config import get_logger
from common.types import FileDescriptor
from server.auth import hash_password_async, is_admin, verify_password_async
from server.exceptions import (
    AuthInvalidError,
    AuthRequiredError,
    BadRequestError,
    ForbiddenError,
    ObjectNotFoundError,
    TransferNotFoundError,
)
from server.repositories.bandwidth_repository import BandwidthRepository
from server.repositories.session_repository import Session
from server.repositories.transfer_repository import TransferMetadata
from server.service_locator import get_object_store
from server.services.metadata_service import MetadataService
from server.storage.base import ObjectStoreGateway
from server.utils import (
    metadata_object_key,
    proxy_download_url,
    relative_path_from_key,
    split_object_key,
    transfer_prefix,
    validate_relative_path,
    validate_transfer_id,
)

logger = get_logger(__name__)


@dataclass
class TransferListing:
    transfer_id: str
    metadata: Optional[TransferMetadata]
    files: List[FileDescriptor]

    @property
    def exists(self) -> bool:
        return self.metadata is not None or bool(self.files)

    @property
    def name(self) -> Optional[str]:
        return self.metadata.name if self.metadata else None


class TransferService:
    def __init__(
        self,
        object_store: Optional[ObjectStoreGateway] = None,
        metadata_service: Optional[MetadataService] = None,
    ):
        self.object_store = object_store or get_object_store()
        self.metadata_service = metadata_service or MetadataService(self.object_store)
        self.bandwidth_repo = BandwidthRepository()

    async def check_password(self, transfer_id: str, password: Optional[str]) -> Optional[TransferMetadata]:
        """
        Enforce the password gate for every read path.

        Returns:
            The transfer's metadata (None for a never-finalized transfer)

        Raises:
            AuthRequiredError: protected transfer and no password supplied
            AuthInvalidError: protected transfer and the password does not verify
        """
        validate_transfer_id(transfer_id)
        metadata = await self.metadata_service.get(transfer_id)

        if metadata is not None and metadata.is_protected:
            if not password:
                raise AuthRequiredError("Password required")

            if not await verify_password_async(password, metadata.password_hash):
                logger.warning(f"Invalid password attempt [transfer_id={transfer_id}]")
                raise AuthInvalidError("Invalid password")

        return metadata

    async def get_transfer(self, transfer_id: str, password: Optional[str] = None) -> TransferListing:
        """
        Gate, then list every object under ``{transferId}/`` as client descriptors.

        An empty file list is a valid result; ``TransferListing.exists`` tells
        callers whether the transfer is known at all.
        """
        validate_transfer_id(transfer_id)
        metadata = await self.check_password(transfer_id, password)
        return await self.build_listing(transfer_id, metadata)

    async def build_listing(self, transfer_id: str, metadata: Optional[TransferMetadata]) -> TransferListing:
        """
        List a transfer whose password gate has already been passed in this request.
        """
        reserved_key = metadata_object_key(transfer_id)
        objects = await self.object_store.list_by_prefix(transfer_prefix(transfer_id))

        files = []
        for obj in objects:
            if obj.key == reserved_key:
                continue

            relative_path = relative_path_from_key(transfer_id, obj.key)
            if not relative_path or relative_path == METADATA_OBJECT_NAME:
                continue

            files.append(FileDescriptor(
                name=relative_path,
                url=proxy_download_url(transfer_id, relative_path),
                size=obj.size,
                content_type=obj.content_type,
            ))

        logger.info(f"Listed {len(files)} files [transfer_id={transfer_id}]")
        return TransferListing(transfer_id=transfer_id, metadata=metadata, files=files)

    async def list_files(self, transfer_id: str, password: Optional[str] = None) -> List[FileDescriptor]:
        listing = await self.get_transfer(transfer_id, password)
        return listing.files

    async def issue_upload_grant(self, object_key: str, content_type: str) -> str:
        """
        Signed PUT URL for ``{transferId}/{relativePath}``.
        """
        transfer_id, relative_path = split_object_key(object_key)
        if relative_path == METADATA_OBJECT_NAME:
            raise BadRequestError("Reserved file name")

        key = f"{transfer_id}/{relative_path}"
        url = await self.object_store.issue_upload_grant(key, content_type)
        logger.info(f"Issued upload grant [key={key}] [content_type={content_type}]")
        return url

    async def finalize(
        self,
        transfer_id: str,
        name: Optional[str] = None,
        size_bytes: Optional[int] = None,
        file_count: Optional[int] = None,
        creator_email: Optional[str] = None,
    ) -> TransferMetadata:
        validate_transfer_id(transfer_id)
        if size_bytes is not None and size_bytes < 0:
            raise BadRequestError("size must be non-negative")
        if file_count is not None and file_count < 0:
            raise BadRequestError("fileCount must be non-negative")

        metadata = self.metadata_service.upsert(
            transfer_id,
            name=name,
            size_bytes=size_bytes,
            file_count=file_count,
            creator_email=creator_email,
        )
        logger.info(f"Transfer finalized [transfer_id={transfer_id}] [files={file_count}] [bytes={size_bytes}]")
        return metadata

    async def lock(self, transfer_id: str, password: str) -> TransferMetadata:
        """
        Set or replace the transfer password. Idempotent: locking twice with the
        same password leaves a gate that accepts exactly that password.
        """
        validate_transfer_id(transfer_id)
        if not password or not password.strip():
            raise BadRequestError("Valid password is required")

        password_hash = await hash_password_async(password)
        metadata = self.metadata_service.upsert(transfer_id, password_hash=password_hash)
        logger.info(f"Transfer locked [transfer_id={transfer_id}]")
        return metadata

    async def resolve_download(self, transfer_id: str, relative_path: str, password: Optional[str]) -> str:
        """
        Gate, confirm the object exists, account its bytes and return a signed read URL.
        """
        validate_transfer_id(transfer_id)
        relative_path = validate_relative_path(relative_path)
        if relative_path == METADATA_OBJECT_NAME:
            raise ObjectNotFoundError("File not found")

        await self.check_password(transfer_id, password)

        key = f"{transfer_id}/{relative_path}"
        stored = await self.object_store.stat(key)
        if stored is None:
            raise ObjectNotFoundError("File not found")

        url = await self.object_store.issue_download_grant(key)
        self.bandwidth_repo.record(stored.size)
        logger.info(f"Issued download grant [key={key}] [bytes={stored.size}]")
        return url

    async def delete_transfer(self, transfer_id: str, session: Session) -> int:
        """
        Cascading delete of every object under the prefix plus the metadata row.

        Only admins and the transfer's creator may delete.
        """
        validate_transfer_id(transfer_id)
        metadata = await self.metadata_service.get(transfer_id)

        if not is_admin(session):
            creator = metadata.creator_email if metadata else None
            if not creator or creator.strip().lower() != session.email.strip().lower():
                raise ForbiddenError("Access denied")

        objects = await self.object_store.list_by_prefix(transfer_prefix(transfer_id))
        if metadata is None and not objects:
            raise TransferNotFoundError(f"Transfer {transfer_id} not found")

        deleted = await self.object_store.delete_by_prefix(transfer_prefix(transfer_id))
        self.metadata_service.delete(transfer_id)
        logger.info(f"Transfer deleted [transfer_id={transfer_id}] [objects={deleted}] [by={session.email}]")
        return deleted
