"""
Reference from a stage file to an object in the chunk store.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChunkedReference:
    """Weak pointer into the chunk store.

    The referenced object can disappear independently of the descriptor that
    holds this reference; readers must handle a missing object.
    """

    store_name: str
    object_id: str

    def __str__(self) -> str:
        """String representation."""
        return f"{self.store_name}:{self.object_id}"
