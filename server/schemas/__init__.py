"""Pydantic schemas for API requests and responses."""

from server.schemas.transfers import (
    UploadGrantResponse,
    FinalizeRequest,
    LockRequest,
    FileDescriptorResponse,
    TransferFilesResponse,
    DeleteTransferResponse,
    SharedFile,
    ShareEmailRequest,
)
from server.schemas.common import ErrorResponse, SuccessResponse

__all__ = [
    "UploadGrantResponse",
    "FinalizeRequest",
    "LockRequest",
    "FileDescriptorResponse",
    "TransferFilesResponse",
    "DeleteTransferResponse",
    "SharedFile",
    "ShareEmailRequest",
    "ErrorResponse",
    "SuccessResponse",
]
