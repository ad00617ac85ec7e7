"""One-off copy of legacy ``{transferId}/.metadata.json`` objects into the metadata database.

Run with ``python -m server.migrate_metadata``. Safe to repeat: every document
is merge-upserted, and the legacy objects are left in place.
"""

import asyncio
import json
from dataclasses import dataclass

from common.constants import METADATA_OBJECT_NAME
from common.logging_config import setup_logging
from server.database import init_database
from server.exceptions import BadRequestError
from server.repositories.transfer_repository import TransferMetadata
from server.service_locator import get_object_store
from server.services.metadata_service import MetadataService
from server.storage.base import ObjectStoreGateway
from server.utils import validate_transfer_id

logger = setup_logging('migrate-metadata')

MIN_TRANSFER_ID_LENGTH = 5


@dataclass
class MigrationReport:
    found: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0


async def migrate(object_store: ObjectStoreGateway) -> MigrationReport:
    report = MigrationReport()
    metadata_service = MetadataService(object_store)

    objects = await object_store.list_by_prefix("")
    legacy = [obj for obj in objects if obj.key.endswith(f"/{METADATA_OBJECT_NAME}") and obj.key.count("/") == 1]
    report.found = len(legacy)
    logger.info(f"Found {report.found} metadata objects to migrate")

    for obj in legacy:
        transfer_id = obj.key.split("/", 1)[0]
        try:
            validate_transfer_id(transfer_id)
        except BadRequestError:
            transfer_id = ""
        if len(transfer_id) < MIN_TRANSFER_ID_LENGTH:
            logger.warning(f"Skipping suspicious object: {obj.key}")
            report.skipped += 1
            continue

        try:
            document = json.loads(await object_store.read_bytes(obj.key))
            if not isinstance(document, dict):
                raise ValueError("metadata document is not an object")

            parsed = TransferMetadata.from_document(transfer_id, document)
            metadata_service.upsert(
                transfer_id,
                password_hash=parsed.password_hash,
                name=parsed.name,
                size_bytes=parsed.size_bytes,
                file_count=parsed.file_count,
                creator_email=parsed.creator_email,
                created_at=parsed.created_at,
            )
            report.migrated += 1
            logger.info(f"Migrated: {transfer_id}")
        except Exception as e:
            report.failed += 1
            logger.error(f"Failed to migrate {obj.key}: {e}")

    logger.info(
        f"Migration complete [migrated={report.migrated}] [skipped={report.skipped}] [failed={report.failed}]"
    )
    return report


def main() -> None:
    init_database()
    asyncio.run(migrate(get_object_store()))


if __name__ == "__main__":
    main()
