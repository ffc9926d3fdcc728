"""Repository layer for PolyORM.

Polymorphic lookups go through GenericRepository so that every table is queried
the same way, whichever model the discriminator resolves to.
"""

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from polyorm.helpers import get_primary_key_attribute

T = TypeVar("T")


class GenericRepository(Generic[T]):
    """Primary key lookups for one model class."""

    def __init__(self, session: Session, model_cls: type[T]):
        """Initialize repository with a session and model class.

        Args:
            session: SQLAlchemy session for database operations.
            model_cls: The SQLAlchemy model class this repository manages.
        """
        self.session = session
        self.model_cls = model_cls

    def get_by_id(self, _id: Any) -> T | None:
        """Retrieve an entity by its primary key.

        Args:
            _id: The primary key value.

        Returns:
            The entity if found, None otherwise.
        """
        return self.session.get(self.model_cls, _id)

    def get_by_ids(self, ids: Iterable[Any]) -> list[T]:
        """Retrieve all entities whose primary key is in ``ids`` with one query.

        Args:
            ids: Primary key values. Unknown keys are ignored.

        Returns:
            The matching entities, in database order.
        """
        id_list = list(ids)
        if not id_list:
            return []
        pk_attr = get_primary_key_attribute(self.model_cls)
        stmt = select(self.model_cls).where(pk_attr.in_(id_list))
        return list(self.session.execute(stmt).scalars().all())
