"""Repository layer for data access."""

from server.repositories.transfer_repository import TransferRepository, TransferMetadata
from server.repositories.session_repository import SessionRepository, Session
from server.repositories.bandwidth_repository import BandwidthRepository

__all__ = [
    "TransferRepository",
    "TransferMetadata",
    "SessionRepository",
    "Session",
    "BandwidthRepository",
]
