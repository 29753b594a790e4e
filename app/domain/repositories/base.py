"""
Base Repository Interface.
Defines the standard contract for data access operations.

Outreach data is append-only or updated in place; nothing is ever deleted, so
the contract carries no delete.
"""

from typing import TypeVar, Optional, Any, Protocol

T = TypeVar("T")


class BaseRepository(Protocol[T]):
    """Interface for generic read/create operations."""

    def get_by_id(self, id: int) -> Optional[T]:
        """Get a single entity by ID."""
        ...

    def create(self, obj_in: Any) -> T:
        """Create a new entity."""
        ...
