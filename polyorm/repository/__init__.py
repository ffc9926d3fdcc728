"""Repository module for PolyORM.

This module provides the repository class used for primary key lookups.
"""

from polyorm.repository.base import GenericRepository

__all__ = [
    "GenericRepository",
]
