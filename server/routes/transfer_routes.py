"""Transfer lifecycle API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import StreamingResponse

from common.constants import DEFAULT_CONTENT_TYPE
from server.auth import get_current_session, get_optional_session
from server.exceptions import BadRequestError, TransferNotFoundError
from server.repositories.session_repository import Session
from server.schemas import (
    DeleteTransferResponse,
    FileDescriptorResponse,
    FinalizeRequest,
    LockRequest,
    ShareEmailRequest,
    SuccessResponse,
    TransferFilesResponse,
    UploadGrantResponse,
)
from server.services import ArchiveService, NotificationService, TransferService

router = APIRouter(tags=["Transfers"])


@router.get("/sas", response_model=UploadGrantResponse)
async def issue_upload_grant(
    file: Optional[str] = Query(None, description="Object key: {transferId}/{relativePath}"),
    contentType: Optional[str] = Query(None),
):
    """
    Issue a time-limited URL the client PUTs one file's bytes to.

    Parameters:
        - file: object key, e.g. "3f2a.../docs/a.txt"
        - contentType: MIME type the upload will carry

    Raises:
        - 400: Missing or malformed key
        - 500: Object store unavailable
    """
    if not file:
        raise BadRequestError("File name is required")

    transfer_service = TransferService()
    url = await transfer_service.issue_upload_grant(file, contentType or DEFAULT_CONTENT_TYPE)

    return UploadGrantResponse(sasTokenUrl=url)


@router.post("/transfer/{transfer_id}/finalize", response_model=SuccessResponse)
async def finalize_transfer(
    transfer_id: str,
    request: FinalizeRequest,
    session: Optional[Session] = Depends(get_optional_session),
):
    """
    Record display name, total size and file count once every upload has completed.

    A valid session attaches the caller's e-mail as the transfer's creator.
    """
    transfer_service = TransferService()
    await transfer_service.finalize(
        transfer_id,
        name=request.name,
        size_bytes=request.size,
        file_count=request.fileCount,
        creator_email=session.email if session else None,
    )

    return SuccessResponse(success=True, message="Transfer finalized")


@router.post("/transfer/{transfer_id}/lock", response_model=SuccessResponse)
async def lock_transfer(transfer_id: str, request: LockRequest):
    """
    Set or replace the transfer password.

    Raises:
        - 400: Password empty or whitespace-only
    """
    transfer_service = TransferService()
    await transfer_service.lock(transfer_id, request.password or "")

    return SuccessResponse(success=True, message="Transfer locked successfully")


@router.get("/transfer/{transfer_id}", response_model=TransferFilesResponse)
async def get_transfer(
    transfer_id: str,
    x_transfer_password: Optional[str] = Header(None),
):
    """
    List a transfer's files.

    Parameters:
        - x-transfer-password header: required for protected transfers

    Raises:
        - 401: Password required or invalid
        - 404: Unknown transfer
    """
    transfer_service = TransferService()
    listing = await transfer_service.get_transfer(transfer_id, x_transfer_password)

    if not listing.exists:
        raise TransferNotFoundError(f"Transfer {transfer_id} not found")

    files = [
        FileDescriptorResponse(
            name=f.name,
            url=f.url,
            size=f.size,
            contentType=f.content_type,
        )
        for f in listing.files
    ]

    return TransferFilesResponse(files=files, name=listing.name)


@router.get("/transfer/{transfer_id}/zip")
async def download_zip(
    transfer_id: str,
    x_transfer_password: Optional[str] = Header(None),
):
    """
    Stream every file of the transfer as one ZIP archive.

    Authorization and listing complete before the response starts, so
    failures there still produce JSON error bodies.

    Raises:
        - 401: Password required or invalid
        - 404: No files to archive
    """
    archive_service = ArchiveService()
    stream = await archive_service.open_stream(transfer_id, x_transfer_password)

    return StreamingResponse(
        stream.iter_bytes(),
        media_type=stream.media_type,
        headers=stream.headers,
    )


@router.delete("/transfer/{transfer_id}", response_model=DeleteTransferResponse)
async def delete_transfer(
    transfer_id: str,
    session: Session = Depends(get_current_session),
):
    """
    Delete every object of the transfer and its metadata.

    Raises:
        - 401: No valid session
        - 403: Caller is neither an admin nor the creator
        - 404: Unknown transfer
    """
    transfer_service = TransferService()
    deleted = await transfer_service.delete_transfer(transfer_id, session)

    return DeleteTransferResponse(success=True, deletedObjects=deleted)


@router.post("/send-email", response_model=SuccessResponse)
async def send_share_email(request: ShareEmailRequest):
    """
    Notify a recipient that files were shared with them.

    Raises:
        - 400: Missing recipient or empty file list
    """
    if not request.recipientEmail or not request.files:
        raise BadRequestError("Missing required fields or invalid files list")

    notification_service = NotificationService()
    delivered = await notification_service.send_share_email(
        request.recipientEmail,
        [f.model_dump() for f in request.files],
        share_link=request.shareLink,
        message=request.message,
    )

    return SuccessResponse(success=True, message="Email sent" if delivered else "Email logged")
