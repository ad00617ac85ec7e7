"""Configuration settings for the transfer service."""

import os

from common.constants import GRANT_TTL_SECONDS, STREAM_CHUNK_SIZE_BYTES


DATABASE_PATH = os.environ.get("TRANSFER_DATABASE_PATH", "./data/transfers.db")

SERVICE_HOST = os.environ.get("TRANSFER_HOST", "0.0.0.0")

SERVICE_PORT = int(os.environ.get("TRANSFER_PORT", "8000"))

# Absolute base URL clients use to reach this service (local-backend grants point here)
PUBLIC_BASE_URL = os.environ.get("TRANSFER_PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

# "local" or "s3"
STORAGE_BACKEND = os.environ.get("TRANSFER_STORAGE_BACKEND", "local").lower()

LOCAL_STORAGE_ROOT = os.environ.get("TRANSFER_LOCAL_STORAGE_ROOT", "./data/uploads")

STORAGE_SIGNING_SECRET = os.environ.get("TRANSFER_SIGNING_SECRET", "")

S3_BUCKET_NAME = os.environ.get("TRANSFER_S3_BUCKET", "")

S3_REGION = os.environ.get("TRANSFER_S3_REGION", os.environ.get("AWS_REGION", "us-east-1"))

S3_ENDPOINT_URL = os.environ.get("TRANSFER_S3_ENDPOINT_URL") or None

UPLOAD_GRANT_TTL_SECONDS = int(os.environ.get("TRANSFER_UPLOAD_GRANT_TTL", str(GRANT_TTL_SECONDS)))

DOWNLOAD_GRANT_TTL_SECONDS = int(os.environ.get("TRANSFER_DOWNLOAD_GRANT_TTL", str(GRANT_TTL_SECONDS)))

BCRYPT_ROUNDS = int(os.environ.get("TRANSFER_BCRYPT_ROUNDS", "10"))

ARCHIVE_CHUNK_SIZE = int(os.environ.get("TRANSFER_ARCHIVE_CHUNK_SIZE", str(STREAM_CHUNK_SIZE_BYTES)))

ADMIN_EMAILS = frozenset(
    email.strip().lower()
    for email in os.environ.get("TRANSFER_ADMIN_EMAILS", "").split(",")
    if email.strip()
)

SMTP_HOST = os.environ.get("SMTP_HOST", "smtp.gmail.com")

SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))

SMTP_USER = os.environ.get("SMTP_USER", "")

SMTP_PASS = os.environ.get("SMTP_PASS", "")

SMTP_FROM = os.environ.get("SMTP_FROM", "") or SMTP_USER

SMTP_USE_TLS = os.environ.get("SMTP_SECURE", "false").lower() == "true"
