"""Tests for the transfer metadata store and its legacy fallback."""

import json
from datetime import datetime

import pytest

from server.migrate_metadata import migrate
from server.repositories.transfer_repository import TransferMetadata, TransferRepository
from server.services.metadata_service import MetadataService


@pytest.fixture
def metadata_service(test_db, object_store):
    return MetadataService(object_store)


class TestUpsert:
    def test_first_write_sets_created_at(self, metadata_service):
        metadata = metadata_service.upsert("t-create", name="first")

        assert isinstance(metadata.created_at, datetime)
        assert metadata.name == "first"
        assert metadata.password_hash is None

    def test_merge_keeps_unspecified_fields(self, metadata_service):
        created = metadata_service.upsert("t-merge", name="doc.pdf", size_bytes=42, file_count=1)
        updated = metadata_service.upsert("t-merge", password_hash="$2b$04$abc")

        assert updated.name == "doc.pdf"
        assert updated.size_bytes == 42
        assert updated.file_count == 1
        assert updated.password_hash == "$2b$04$abc"
        assert updated.created_at == created.created_at

    def test_created_at_is_never_overwritten(self, metadata_service):
        created = metadata_service.upsert("t-ts", created_at=datetime(2024, 1, 1))
        later = metadata_service.upsert("t-ts", name="x", created_at=datetime(2025, 6, 1))

        assert later.created_at == created.created_at == datetime(2024, 1, 1)

    def test_delete(self, metadata_service):
        metadata_service.upsert("t-del", name="x")

        assert metadata_service.delete("t-del") is True
        assert metadata_service.delete("t-del") is False
        assert TransferRepository.get_by_id("t-del") is None


class TestLegacyFallback:
    @pytest.mark.asyncio
    async def test_missing_everywhere(self, metadata_service):
        assert await metadata_service.get("nobody-home") is None

    @pytest.mark.asyncio
    async def test_migrates_on_read(self, metadata_service, object_store):
        document = {
            "createdAt": "2024-03-01T10:00:00.000Z",
            "passwordHash": "$2b$04$legacyhash",
            "name": "old.zip",
            "fileCount": 3,
        }
        await object_store.write_bytes("legacy-1/.metadata.json", json.dumps(document).encode(), "application/json")
        assert TransferRepository.get_by_id("legacy-1") is None

        metadata = await metadata_service.get("legacy-1")

        assert metadata.name == "old.zip"
        assert metadata.file_count == 3
        assert metadata.password_hash == "$2b$04$legacyhash"
        stored = TransferRepository.get_by_id("legacy-1")
        assert stored is not None
        assert stored.name == "old.zip"

    @pytest.mark.asyncio
    async def test_primary_row_wins_over_legacy(self, metadata_service, object_store):
        await object_store.write_bytes("legacy-2/.metadata.json", json.dumps({"name": "legacy"}).encode())
        TransferRepository.insert_if_absent(TransferMetadata(
            transfer_id="legacy-2",
            created_at=datetime(2024, 1, 1),
            name="current",
        ))

        metadata = await metadata_service.get("legacy-2")

        assert metadata.name == "current"

    @pytest.mark.asyncio
    async def test_malformed_legacy_object_is_absent(self, metadata_service, object_store):
        await object_store.write_bytes("legacy-3/.metadata.json", b"{not json")

        assert await metadata_service.get("legacy-3") is None
        assert TransferRepository.get_by_id("legacy-3") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("created_at", ["not-a-date", 1709287200, ["2024"]])
    async def test_unreadable_created_at_keeps_password(self, metadata_service, object_store, created_at):
        document = {"createdAt": created_at, "passwordHash": "$2b$04$legacyhash", "name": "old.zip"}
        await object_store.write_bytes("legacy-4/.metadata.json", json.dumps(document).encode())
        before = datetime.utcnow()

        metadata = await metadata_service.get("legacy-4")

        assert metadata.password_hash == "$2b$04$legacyhash"
        assert metadata.name == "old.zip"
        assert metadata.created_at >= before

    @pytest.mark.asyncio
    async def test_wrongly_typed_fields_dropped_but_gate_kept(self, metadata_service, object_store):
        document = {"passwordHash": 42, "name": ["x"], "sizeBytes": "10", "fileCount": True, "creatorEmail": None}
        await object_store.write_bytes("legacy-5/.metadata.json", json.dumps(document).encode())

        metadata = await metadata_service.get("legacy-5")

        assert metadata.is_protected
        assert metadata.name is None
        assert metadata.size_bytes is None
        assert metadata.file_count is None


class TestDocumentShape:
    def test_round_trip(self):
        metadata = TransferMetadata(
            transfer_id="doc",
            created_at=datetime(2024, 5, 1, 12, 0),
            name="a.txt",
            size_bytes=5,
            creator_email="me@example.com",
        )

        document = metadata.to_document()

        assert document["createdAt"] == "2024-05-01T12:00:00"
        assert "passwordHash" not in document
        assert TransferMetadata.from_document("doc", document) == metadata


class TestMigrationCommand:
    @pytest.mark.asyncio
    async def test_migrates_and_skips(self, test_db, object_store):
        await object_store.write_bytes("transfer-aaa/.metadata.json", json.dumps({"name": "one"}).encode())
        await object_store.write_bytes("transfer-bbb/.metadata.json", b"[1, 2]")
        await object_store.write_bytes("abc/.metadata.json", json.dumps({"name": "short"}).encode())
        await object_store.write_bytes("transfer-ccc/nested/.metadata.json", b"{}")
        await object_store.write_bytes("transfer-aaa/file.txt", b"data")

        report = await migrate(object_store)

        assert report.found == 3
        assert report.migrated == 1
        assert report.failed == 1
        assert report.skipped == 1
        assert TransferRepository.get_by_id("transfer-aaa").name == "one"
        assert TransferRepository.get_by_id("abc") is None

    @pytest.mark.asyncio
    async def test_repeat_run_is_harmless(self, test_db, object_store):
        await object_store.write_bytes("transfer-ddd/.metadata.json", json.dumps({"name": "again"}).encode())

        await migrate(object_store)
        report = await migrate(object_store)

        assert report.migrated == 1
        assert TransferRepository.get_by_id("transfer-ddd").name == "again"
