"""Pydantic schemas for transfer endpoints."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadGrantResponse(BaseModel):
    """Response model for an upload grant."""
    sasTokenUrl: str


class FinalizeRequest(BaseModel):
    """Request model for finalizing a transfer."""
    name: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    fileCount: Optional[int] = Field(default=None, ge=0)


class LockRequest(BaseModel):
    """Request model for setting a transfer password."""
    password: Optional[str] = None


class FileDescriptorResponse(BaseModel):
    """Response model for one file in a transfer."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    size: int
    content_type: str = Field(alias="contentType")


class TransferFilesResponse(BaseModel):
    """Response model for a transfer listing."""
    files: List[FileDescriptorResponse]
    name: Optional[str] = None


class DeleteTransferResponse(BaseModel):
    """Response model for transfer deletion."""
    success: bool = True
    deletedObjects: int


class SharedFile(BaseModel):
    """One file entry in a share e-mail."""
    name: str
    size: Optional[int] = None


class ShareEmailRequest(BaseModel):
    """Request model for sending a share notification."""
    recipientEmail: Optional[str] = None
    files: List[SharedFile] = Field(default_factory=list)
    shareLink: Optional[str] = None
    message: Optional[str] = None
