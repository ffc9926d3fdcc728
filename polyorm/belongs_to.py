"""Polymorphic belongs-to operations: cast, single load and batch preload."""

import logging
from collections import defaultdict
from itertools import chain
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from polyorm.config import get_config
from polyorm.exceptions import MissingPrimaryKeyError, UnregisteredModelError
from polyorm.helpers import coerce_id, get_model, get_primary_key_value, resolve_session
from polyorm.repository.base import GenericRepository
from polyorm.schema import belongs_to_fields, get_belongs_to

logger = logging.getLogger("PolyORM")


def cast_polymorphic(record: Any, field: str) -> Any:
    """Write the pending assignment of a polymorphic field into its discriminator columns.

    When an entity was assigned to the transient field, this function resolves
    its table identifier and primary key, stores them in the table/id columns and
    discards the pending assignment. Does nothing if nothing was assigned.

    Args:
        record: The child entity.
        field: Name of the polymorphic belongs-to association.

    Returns:
        The same record.

    Raises:
        UnregisteredModelError: If the assigned entity's class is not in the registry.
        MissingPrimaryKeyError: If the assigned entity has no primary key yet.

    Example:
        >>> comment = Comment(content="Great post!")
        >>> comment.commentable = post
        >>> _ = cast_polymorphic(comment, "commentable")
        >>> comment.commentable_table, comment.commentable_id
        ('posts', '1')
    """
    declaration = get_belongs_to(type(record), field)
    entity = declaration.get_pending(record)
    if entity is None:
        return record

    model_cls = type(entity)
    table = get_config().get_table(model_cls)
    if table is None:
        raise UnregisteredModelError(model_cls.__name__)

    entity_id = get_primary_key_value(entity)
    if entity_id is None:
        raise MissingPrimaryKeyError(model_cls.__name__)

    setattr(record, declaration.table_field, table)
    setattr(record, declaration.id_field, str(entity_id))
    declaration.clear_pending(record)
    declaration.clear_loaded(record)
    return record


def load_polymorphic(record: Any, field: str, session: Session | None = None) -> Any:
    """Load a polymorphic belongs-to association for a single record.

    Reads the table identifier and id from the record, looks up the entity by
    primary key and stores it in the transient field. A missing discriminator,
    an unknown table or a missing row all leave the field as None.

    Args:
        record: The child entity.
        field: Name of the polymorphic belongs-to association.
        session: Session to query with. Defaults to the record's own session,
            then the configured one.

    Returns:
        The same record, with the association loaded.

    Example:
        >>> comment = load_polymorphic(session.get(Comment, 1), "commentable")
        >>> comment.commentable
        <Post ...>
    """
    declaration = get_belongs_to(type(record), field)
    table = getattr(record, declaration.table_field)
    raw_id = getattr(record, declaration.id_field)

    entity = None
    if table is not None and raw_id is not None:
        model_cls = get_model(table)
        if model_cls is None:
            logger.debug(f"Unknown table identifier '{table}' on {type(record).__name__}.{field}")
        else:
            entity_id = coerce_id(model_cls, raw_id)
            if entity_id is not None:
                repo = GenericRepository(resolve_session(session, record), model_cls)
                entity = repo.get_by_id(entity_id)

    declaration.set_loaded(record, entity)
    return record


def preload_polymorphic(records: Any, field: str, session: Session | None = None) -> Any:
    """Batch preload a polymorphic belongs-to association for many records.

    Groups records by table identifier, performs one query per table and maps
    the entities back onto the records. The number of queries depends only on
    how many distinct tables the records reference, not on how many records
    there are.

    Args:
        records: A list of child entities, or a single child entity.
        field: Name of the polymorphic belongs-to association.
        session: Session to query with. Defaults to the records' own session,
            then the configured one.

    Returns:
        The records with the association loaded; a single entity if one was given.

    Example:
        >>> comments = preload_polymorphic(session.scalars(select(Comment)).all(), "commentable")
        >>> [c.commentable for c in comments]
        [<Post ...>, <Card ...>, None]
    """
    if not isinstance(records, (list, tuple)):
        return preload_polymorphic([records], field, session=session)[0]
    if not records:
        return []

    records = list(records)
    declarations = [get_belongs_to(type(record), field) for record in records]

    # table identifier -> key -> coerced id, per record position
    ids_by_table: dict[str, dict[str, Any]] = defaultdict(dict)
    keys: list[tuple[str, str] | None] = []
    for record, declaration in zip(records, declarations):
        table = getattr(record, declaration.table_field)
        raw_id = getattr(record, declaration.id_field)
        key = None
        if table is not None and raw_id is not None:
            model_cls = get_model(table)
            entity_id = coerce_id(model_cls, raw_id) if model_cls is not None else None
            if entity_id is not None:
                ids_by_table[table][str(entity_id)] = entity_id
                key = (table, str(entity_id))
            elif model_cls is None:
                logger.debug(f"Unknown table identifier '{table}' on {type(record).__name__}.{field}")
        keys.append(key)

    entities: dict[tuple[str, str], Any] = {}
    if ids_by_table:
        db_session = resolve_session(session, *records)
        for table, ids in ids_by_table.items():
            model_cls = get_model(table)
            repo = GenericRepository(db_session, model_cls)
            found = repo.get_by_ids(ids.values())
            logger.debug(f"Preloaded {len(found)}/{len(ids)} '{table}' entities for {field}")
            for entity in found:
                entities[(table, str(get_primary_key_value(entity)))] = entity

    for record, declaration, key in zip(records, declarations, keys):
        declaration.set_loaded(record, entities.get(key) if key is not None else None)
    return records


def _cast_pending_before_flush(session: Session, flush_context: Any, instances: Any) -> None:
    for record in chain(session.new, session.dirty):
        for declaration in belongs_to_fields(type(record)):
            if declaration.get_pending(record) is not None:
                logger.debug(f"Casting pending {type(record).__name__}.{declaration.name} before flush")
                cast_polymorphic(record, declaration.name)


def enable_polymorphic_cast(target: Any) -> None:
    """Cast pending polymorphic assignments automatically before every flush.

    Args:
        target: A Session, sessionmaker, scoped_session or the Session class.

    Note:
        Parents referenced this way need a primary key before the flush starts.
        Flush new parents first when their key is generated by the database.
    """
    if not event.contains(target, "before_flush", _cast_pending_before_flush):
        event.listen(target, "before_flush", _cast_pending_before_flush)


def disable_polymorphic_cast(target: Any) -> None:
    """Remove the listener installed by ``enable_polymorphic_cast``."""
    if event.contains(target, "before_flush", _cast_pending_before_flush):
        event.remove(target, "before_flush", _cast_pending_before_flush)
