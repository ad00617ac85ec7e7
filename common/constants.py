"""Project-wide constants shared by the transfer service and the uploader."""

METADATA_OBJECT_NAME: str = ".metadata.json"

PASSWORD_HEADER: str = "x-transfer-password"

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

STREAM_CHUNK_SIZE_BYTES: int = 256 * 1024  # 256 KiB per read from the store

GRANT_TTL_SECONDS: int = 15 * 60
