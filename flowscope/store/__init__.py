"""Record store backends for flowscope."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowscopeConfig, load_config
from .base import RecordStore
from .inmemory import InMemoryRecordStore

_store_instance: RecordStore | None = None


def get_store(
    backend: Optional[str] = None, config: Optional[FlowscopeConfig] = None
) -> RecordStore:
    """Factory function to obtain a record store.

    The backend is selected from ``backend``, the ``FLOWSCOPE_STORE``
    environment variable, or the loaded configuration. Called without
    arguments, the previously created store is reused.
    """

    global _store_instance
    if _store_instance is not None and backend is None and config is None:
        return _store_instance

    config = config or load_config()
    backend = (backend or os.getenv("FLOWSCOPE_STORE") or config.store.backend).lower()

    if backend == "inmemory":
        _store_instance = InMemoryRecordStore()
    elif backend == "sql":
        from .sql import SQLRecordStore

        if not config.store.database_url:
            raise ValueError("SQL store requires store.database_url")
        _store_instance = SQLRecordStore(config.store.database_url)
    elif backend == "postgrest":
        from .postgrest import PostgrestRecordStore

        rest_conf = config.store.postgrest
        if not rest_conf.url:
            raise ValueError("PostgREST store requires store.postgrest.url")
        _store_instance = PostgrestRecordStore(
            rest_conf.url, api_key=rest_conf.api_key, timeout=rest_conf.timeout
        )
    else:
        raise ValueError(f"Unsupported store backend: {backend}")

    return _store_instance


__all__ = ["RecordStore", "InMemoryRecordStore", "get_store"]
