"""Storage capability and its implementations."""

from .base import PlacementStore
from .memory import InMemoryPlacementStore
from .sql import SqlPlacementStore

__all__ = ["InMemoryPlacementStore", "PlacementStore", "SqlPlacementStore"]
