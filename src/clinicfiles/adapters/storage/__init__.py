"""
Chunk store implementations.
"""

from .memory_chunk_store import InMemoryChunkStore
from .mongo_chunk_store import MongoChunkStore
from .orphan_sweeper import MongoOrphanSweeper, OrphanReport

__all__ = ["InMemoryChunkStore", "MongoChunkStore", "MongoOrphanSweeper", "OrphanReport"]
