"""Polymorphic has-many operations: composable association query and batch preload."""

import logging
from collections import defaultdict
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from polyorm.exceptions import MissingPrimaryKeyError
from polyorm.helpers import get_primary_key_value, get_table_name, resolve_session
from polyorm.schema import get_has_many

logger = logging.getLogger("PolyORM")


def polymorphic_assoc(parent: Any, field: str) -> Select:
    """Build a query for the children of a polymorphic has-many association.

    The statement filters the child table on the parent's table identifier and
    primary key and can be composed further like any other ``Select``.

    Args:
        parent: The parent entity.
        field: Name of the polymorphic has-many association on the parent.

    Returns:
        A ``select()`` of the child model.

    Raises:
        MissingPrimaryKeyError: If the parent has no primary key yet.

    Example:
        >>> stmt = polymorphic_assoc(post, "comments").where(Comment.content.ilike("%first%"))
        >>> session.scalars(stmt.order_by(Comment.id).limit(10)).all()
    """
    parent_cls = type(parent)
    declaration = get_has_many(parent_cls, field)
    parent_id = get_primary_key_value(parent)
    if parent_id is None:
        raise MissingPrimaryKeyError(parent_cls.__name__)

    target = declaration.target
    table_col = getattr(target, declaration.table_field)
    id_col = getattr(target, declaration.id_field)
    return select(target).where(
        table_col == get_table_name(parent_cls),
        id_col == str(parent_id),
    )


def preload_polymorphic_assoc(records: Any, field: str, session: Session | None = None) -> Any:
    """Preload a polymorphic has-many association for one or many parents.

    Performs one query per parent model class, then groups the children back
    onto their parents. Parents without children get an empty list.

    Args:
        records: A list of parent entities, or a single parent entity.
        field: Name of the polymorphic has-many association.
        session: Session to query with. Defaults to the records' own session,
            then the configured one.

    Returns:
        The records with the association loaded; a single entity if one was given.
    """
    if not isinstance(records, (list, tuple)):
        return preload_polymorphic_assoc([records], field, session=session)[0]
    if not records:
        return []

    records = list(records)
    by_class: dict[type, list[Any]] = defaultdict(list)
    for record in records:
        by_class[type(record)].append(record)

    db_session = None
    for parent_cls, parents in by_class.items():
        declaration = get_has_many(parent_cls, field)
        ids = [str(pk) for pk in (get_primary_key_value(parent) for parent in parents) if pk is not None]

        grouped: dict[str, list[Any]] = defaultdict(list)
        if ids:
            if db_session is None:
                db_session = resolve_session(session, *records)
            target = declaration.target
            table_col = getattr(target, declaration.table_field)
            id_col = getattr(target, declaration.id_field)
            stmt = select(target).where(table_col == get_table_name(parent_cls), id_col.in_(ids))
            children = db_session.execute(stmt).scalars().all()
            logger.debug(f"Preloaded {len(children)} {target.__name__} children for {len(ids)} {parent_cls.__name__}")
            for child in children:
                grouped[getattr(child, declaration.id_field)].append(child)

        for parent in parents:
            parent_id = get_primary_key_value(parent)
            setattr(parent, field, grouped.get(str(parent_id), []) if parent_id is not None else [])

    return records
