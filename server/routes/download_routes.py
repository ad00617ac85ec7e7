"""Single-file download redirect."""

from typing import Optional

from fastapi import APIRouter, Header, status
from fastapi.responses import RedirectResponse

from server.services import TransferService
from server.utils import decode_download_filename, validate_transfer_id

router = APIRouter(tags=["Downloads"])


@router.get("/download/{transfer_id}/{filename:path}")
async def download_file(
    transfer_id: str,
    filename: str,
    x_transfer_password: Optional[str] = Header(None),
):
    """
    Redirect to a short-lived signed read URL for one file.

    Path segments are validated before the store is touched.

    Raises:
        - 400: Parent-directory reference in the id or file name
        - 401: Password required or invalid
        - 404: File not found
    """
    validate_transfer_id(transfer_id)
    relative_path = decode_download_filename(filename)

    transfer_service = TransferService()
    url = await transfer_service.resolve_download(transfer_id, relative_path, x_transfer_password)

    return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
