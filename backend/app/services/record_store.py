"""Record store factory.

Returns the configured record store singleton:
- "database": SQLAlchemy tables (default)
- "memory": in-process lists, lost on restart
"""
import logging
import threading
from typing import Optional

from app.config import get_settings
from app.services.record_store_base import RecordStore

logger = logging.getLogger(__name__)

_store: Optional[RecordStore] = None
_store_lock = threading.Lock()


def get_record_store() -> RecordStore:
    """Get the record store instance (thread-safe singleton)."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                backend = get_settings().RECORD_STORE.lower()
                if backend == "memory":
                    from app.services.record_store_memory import MemoryRecordStore
                    _store = MemoryRecordStore()
                elif backend == "database":
                    from app.services.record_store_db import DatabaseRecordStore
                    _store = DatabaseRecordStore()
                else:
                    raise ValueError(f"Unknown RECORD_STORE: {backend}")
                logger.info("Using %s record store", backend)
    return _store


def set_record_store(store: Optional[RecordStore]) -> None:
    """Replace the active record store (None resets to the configured one)."""
    global _store
    with _store_lock:
        _store = store
