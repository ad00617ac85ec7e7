"""Service locator for the process-wide object store."""

from typing import Optional

from server.storage import ObjectStoreGateway, create_object_store

_object_store: Optional[ObjectStoreGateway] = None


def set_object_store(store: Optional[ObjectStoreGateway]):
    """Set global object store instance (None resets to lazy construction)"""
    global _object_store
    _object_store = store


def get_object_store() -> ObjectStoreGateway:
    """Get global object store instance, building it from configuration on first use"""
    global _object_store
    if _object_store is None:
        _object_store = create_object_store()
    return _object_store
