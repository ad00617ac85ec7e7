"""Signed byte transfer for the local object store backend."""

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from common.constants import DEFAULT_CONTENT_TYPE
from common.logging_config import get_logger
from server.exceptions import ObjectNotFoundError
from server.schemas import SuccessResponse
from server.service_locator import get_object_store
from server.storage import LocalObjectStore

logger = get_logger(__name__)

router = APIRouter(prefix="/storage", tags=["Storage"])


def _local_store() -> LocalObjectStore:
    store = get_object_store()
    if not isinstance(store, LocalObjectStore):
        raise ObjectNotFoundError("Storage endpoint not available for this backend")
    return store


@router.put("/{object_key:path}", response_model=SuccessResponse)
async def put_object(
    object_key: str,
    request: Request,
    expires: int = Query(...),
    signature: str = Query(...),
    content_type: str = Query(""),
):
    """
    Accept one upload authorized by a grant from ``GET /sas``.

    Raises:
        - 403: Signature invalid or grant expired
    """
    store = _local_store()
    store.verify_grant("PUT", object_key, expires, signature, content_type)

    written = await store.write_stream(
        object_key,
        request.stream(),
        content_type or request.headers.get("content-type") or DEFAULT_CONTENT_TYPE,
    )
    logger.info(f"Upload received [key={object_key}] [bytes={written}]")

    return SuccessResponse(success=True, message=f"{written} bytes stored")


@router.get("/{object_key:path}")
async def get_object(
    object_key: str,
    expires: int = Query(...),
    signature: str = Query(...),
):
    """
    Serve one object authorized by a download grant.

    Raises:
        - 403: Signature invalid or grant expired
        - 404: Object not found
    """
    store = _local_store()
    store.verify_grant("GET", object_key, expires, signature)

    stored = await store.stat(object_key)
    if stored is None:
        raise ObjectNotFoundError("File not found")

    return StreamingResponse(
        store.fetch_stream(object_key),
        media_type=stored.content_type,
        headers={"Content-Length": str(stored.size)},
    )
