"""Service layer for business logic."""

from server.services.metadata_service import MetadataService
from server.services.transfer_service import TransferService, TransferListing
from server.services.archive_service import ArchiveService, ArchiveStream, ArchiveState
from server.services.notification_service import NotificationService

__all__ = [
    "MetadataService",
    "TransferService",
    "TransferListing",
    "ArchiveService",
    "ArchiveStream",
    "ArchiveState",
    "NotificationService",
]
