"""Object store backends behind the ObjectStoreGateway contract."""

from server.storage.base import ObjectStoreGateway
from server.storage.local import LocalObjectStore
from server.storage.s3 import S3ObjectStore

__all__ = [
    "ObjectStoreGateway",
    "LocalObjectStore",
    "S3ObjectStore",
    "create_object_store",
]


def create_object_store() -> ObjectStoreGateway:
    """
    Build the backend selected by configuration.

    Raises:
        StoreUnavailableError: backend unknown or missing credentials/bucket
    """
    from server import config
    from server.exceptions import StoreUnavailableError

    if config.STORAGE_BACKEND == "local":
        return LocalObjectStore(
            root=config.LOCAL_STORAGE_ROOT,
            public_base_url=config.PUBLIC_BASE_URL,
            signing_secret=config.STORAGE_SIGNING_SECRET,
            upload_ttl_seconds=config.UPLOAD_GRANT_TTL_SECONDS,
            download_ttl_seconds=config.DOWNLOAD_GRANT_TTL_SECONDS,
            chunk_size=config.ARCHIVE_CHUNK_SIZE,
        )

    if config.STORAGE_BACKEND == "s3":
        return S3ObjectStore(
            bucket_name=config.S3_BUCKET_NAME,
            upload_ttl_seconds=config.UPLOAD_GRANT_TTL_SECONDS,
            download_ttl_seconds=config.DOWNLOAD_GRANT_TTL_SECONDS,
            region_name=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
            chunk_size=config.ARCHIVE_CHUNK_SIZE,
        )

    raise StoreUnavailableError(f"Unknown storage backend: {config.STORAGE_BACKEND}")
