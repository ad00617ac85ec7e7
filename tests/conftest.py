"""Shared pytest fixtures for all tests."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from server.database import init_database
from server.service_locator import set_object_store
from server.storage.local import LocalObjectStore
from uploader.config import Config

SIGNING_SECRET = "test-signing-secret"


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("server.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("server.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """
    Lowest bcrypt cost so password tests stay quick.
    """
    monkeypatch.setattr("server.config.BCRYPT_ROUNDS", 4)


@pytest.fixture
def object_store(tmp_path) -> Generator[LocalObjectStore, None, None]:
    """
    Local object store in a temporary directory, registered as the process-wide store.
    """
    store = LocalObjectStore(
        root=str(tmp_path / "objects"),
        public_base_url="http://testserver",
        signing_secret=SIGNING_SECRET,
        upload_ttl_seconds=900,
        download_ttl_seconds=900,
        chunk_size=4,
    )
    set_object_store(store)
    yield store
    set_object_store(None)


@pytest.fixture
def client(test_db, object_store) -> Generator[TestClient, None, None]:
    """Create FastAPI test client backed by the temporary database and store."""
    from server.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def temp_config(tmp_path) -> Config:
    """
    Create temporary uploader config instance.
    """
    config_dir = tmp_path / '.sendshare'
    config_dir.mkdir()
    config = Config(config_dir / 'config.json')
    config.data['server_url'] = 'http://transfer.test'
    config.data['share_base_url'] = 'http://share.test'
    return config


@pytest.fixture
def sample_tree(tmp_path) -> Path:
    """
    Create a folder with nested files for upload tests.

    Returns:
        Path to the "album" folder (album/a.txt, album/sub/b.txt)
    """
    root = tmp_path / 'album'
    (root / 'sub').mkdir(parents=True)
    (root / 'a.txt').write_bytes(b'a' * 10)
    (root / 'sub' / 'b.txt').write_bytes(b'b' * 20)
    return root
