"""Shared data type definitions for transfer objects."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoredObject:
    """
    A blob in the object store, as reported by a listing.
    """
    key: str
    size: int
    content_type: str


@dataclass(frozen=True)
class FileDescriptor:
    """
    Client-facing view of one file in a transfer. Never persisted.
    """
    name: str
    url: str
    size: int
    content_type: str
