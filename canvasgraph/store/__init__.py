"""Board stores the graph controller persists through."""

from typing import Optional

from ..config import config
from .base import BoardStore
from .duckdb_store import DuckDBBoardStore
from .memory import MemoryBoardStore
from .rest import RestBoardStore


def create_store(backend: Optional[str] = None) -> BoardStore:
    """
    Build the store selected by config store.backend.

    Args:
        backend: "memory", "duckdb" or "rest"; config value when omitted

    Returns:
        A ready-to-use store (DuckDB stores are connected and initialized)
    """
    backend = backend or config.store_backend

    if backend == "memory":
        return MemoryBoardStore()
    if backend == "duckdb":
        store = DuckDBBoardStore(config.duckdb_path)
        store.connect()
        store.initialize_database()
        return store
    if backend == "rest":
        return RestBoardStore()

    raise ValueError(f"Unknown store backend: {backend}")


__all__ = ["BoardStore", "DuckDBBoardStore", "MemoryBoardStore", "RestBoardStore", "create_store"]
