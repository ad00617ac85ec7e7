"""Utility helper functions for the transfer service."""

import posixpath
import re
from typing import Tuple
from urllib.parse import quote, unquote

from common.constants import METADATA_OBJECT_NAME
from server.exceptions import BadRequestError

_TRANSFER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_transfer_id(transfer_id: str) -> str:
    """
    Reject empty, traversal-bearing or otherwise malformed transfer ids.

    Raises:
        BadRequestError: if the id cannot be used as a key prefix
    """
    if not transfer_id or ".." in transfer_id or not _TRANSFER_ID_PATTERN.match(transfer_id):
        raise BadRequestError("Invalid transfer ID")
    return transfer_id


def validate_relative_path(relative_path: str) -> str:
    """
    Normalize a client relative path to forward slashes and reject traversal.

    Args:
        relative_path: Folder-preserving file name (e.g., "docs/a.txt")

    Returns:
        Forward-slash path

    Raises:
        BadRequestError: empty, absolute, or containing a parent reference
    """
    if not relative_path:
        raise BadRequestError("File path is required")

    normalized = relative_path.replace("\\", "/")
    segments = normalized.split("/")
    if (
        normalized.startswith("/")
        or ".." in normalized
        or any(segment in ("", ".") for segment in segments)
    ):
        raise BadRequestError("Invalid path")
    return normalized


def split_object_key(object_key: str) -> Tuple[str, str]:
    """
    Split ``{transferId}/{relativePath}`` into its two parts, validating both.

    Raises:
        BadRequestError: key lacks a transfer prefix or a file path
    """
    if not object_key or "/" not in object_key:
        raise BadRequestError("Object key must be {transferId}/{relativePath}")

    transfer_id, relative_path = object_key.split("/", 1)
    return validate_transfer_id(transfer_id), validate_relative_path(relative_path)


def decode_download_filename(filename: str) -> str:
    """
    Percent-decode a download path segment and reject parent-directory references.

    The router has already decoded the raw path once; one more pass catches
    double-encoded sequences such as ``..%252F``. The extra pass also applies
    to names that literally contain percent escapes: a stored ``a%41.txt``
    resolves to ``aA.txt`` and is reported as not found.
    """
    decoded = unquote(filename)
    if ".." in filename or ".." in decoded:
        raise BadRequestError("Invalid path")
    return validate_relative_path(decoded)


def transfer_prefix(transfer_id: str) -> str:
    return f"{transfer_id}/"


def metadata_object_key(transfer_id: str) -> str:
    return f"{transfer_id}/{METADATA_OBJECT_NAME}"


def relative_path_from_key(transfer_id: str, object_key: str) -> str:
    """Strip the ``{transferId}/`` prefix from an object key."""
    prefix = transfer_prefix(transfer_id)
    if object_key.startswith(prefix):
        return object_key[len(prefix):]
    return object_key


def proxy_download_url(transfer_id: str, relative_path: str) -> str:
    """Service-relative URL of the password-checked single-file download."""
    return f"/download/{transfer_id}/{quote(relative_path, safe='')}"


def archive_filename(transfer_id: str, file_names: list) -> str:
    """
    Display name of the zip for a transfer.

    One file gives ``{basename}.zip``; several give
    ``{basename of first} - Bulk Transfer.zip``; none give ``transfer-{id}.zip``.
    """
    if not file_names:
        return f"transfer-{transfer_id}.zip"

    base_name, _ = posixpath.splitext(posixpath.basename(file_names[0]))
    if not base_name:
        return f"transfer-{transfer_id}.zip"

    if len(file_names) == 1:
        return f"{base_name}.zip"
    return f"{base_name} - Bulk Transfer.zip"


def content_disposition(filename: str) -> str:
    """``attachment`` header value with an ASCII fallback and an RFC 5987 name."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quote(filename, safe="")}'
