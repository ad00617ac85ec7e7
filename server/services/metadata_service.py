"""Transfer Metadata Store: primary SQLite store with a legacy object-store fallback."""

import json
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from server.exceptions import ObjectNotFoundError
from server.repositories.transfer_repository import TransferMetadata, TransferRepository
from server.service_locator import get_object_store
from server.storage.base import ObjectStoreGateway
from server.utils import metadata_object_key

logger = get_logger(__name__)


class MetadataService:
    def __init__(self, object_store: Optional[ObjectStoreGateway] = None):
        self.repo = TransferRepository()
        self._object_store = object_store

    @property
    def object_store(self) -> ObjectStoreGateway:
        if self._object_store is None:
            self._object_store = get_object_store()
        return self._object_store

    def upsert(
        self,
        transfer_id: str,
        password_hash: Optional[str] = None,
        name: Optional[str] = None,
        size_bytes: Optional[int] = None,
        file_count: Optional[int] = None,
        creator_email: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> TransferMetadata:
        """
        Merge-write only the provided fields. The first write sets ``created_at``.
        """
        return self.repo.upsert(
            transfer_id,
            created_at=created_at,
            password_hash=password_hash,
            name=name,
            size_bytes=size_bytes,
            file_count=file_count,
            creator_email=creator_email,
        )

    async def get(self, transfer_id: str) -> Optional[TransferMetadata]:
        """
        Point lookup. On a miss, read the legacy ``{id}/.metadata.json`` object
        and copy it into the primary store before returning it.
        """
        metadata = self.repo.get_by_id(transfer_id)
        if metadata is not None:
            return metadata

        return await self._migrate_legacy(transfer_id)

    async def _migrate_legacy(self, transfer_id: str) -> Optional[TransferMetadata]:
        key = metadata_object_key(transfer_id)

        if await self.object_store.stat(key) is None:
            return None

        logger.info(f"Metadata for {transfer_id} not in database, reading legacy object")
        try:
            document = json.loads(await self.object_store.read_bytes(key))
        except ObjectNotFoundError:
            return None
        except ValueError as e:
            logger.warning(f"Ignoring malformed legacy metadata [transfer_id={transfer_id}]: {e}")
            return None

        if not isinstance(document, dict):
            logger.warning(f"Ignoring malformed legacy metadata [transfer_id={transfer_id}]")
            return None

        # A row written since the miss wins over the legacy copy
        migrated = self.repo.insert_if_absent(TransferMetadata.from_document(transfer_id, document))
        logger.info(f"Migrated {transfer_id} metadata to database on read")
        return migrated

    def delete(self, transfer_id: str) -> bool:
        return self.repo.delete(transfer_id)
