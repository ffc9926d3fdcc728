"""Registry, primary key and session helpers shared by the association modules."""

import logging
from datetime import date, time
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import InstrumentedAttribute, Mapper, Session, object_session

from polyorm.config import get_config
from polyorm.exceptions import SessionNotSetError, UnmappedModelError

logger = logging.getLogger("PolyORM")


def get_model(table_name: str) -> type | None:
    """Return the model class registered for a table identifier.

    Examples:
        >>> get_model("posts")
        <class 'myapp.models.Post'>
        >>> get_model("unknown_table") is None
        True
    """
    return get_config().get_model(table_name)


def get_table_name(model_cls: type) -> str:
    """Return the table identifier for a model class.

    Checks the configured registry first, then falls back to the mapped table name.
    """
    table = get_config().get_table(model_cls)
    if table is not None:
        return table
    return _get_mapper(model_cls).local_table.name


def get_primary_key_attribute(model_cls: type) -> InstrumentedAttribute:
    """Return the mapped attribute of the first primary key column of a model."""
    mapper = _get_mapper(model_cls)
    prop = mapper.get_property_by_column(mapper.primary_key[0])
    return getattr(model_cls, prop.key)


def get_primary_key_value(entity: Any) -> Any:
    """Extract the value of the first primary key column from an entity.

    Examples:
        >>> get_primary_key_value(Card(id="card_123"))
        'card_123'
    """
    mapper = _get_mapper(type(entity))
    prop = mapper.get_property_by_column(mapper.primary_key[0])
    return getattr(entity, prop.key)


def coerce_id(model_cls: type, raw_id: Any) -> Any | None:
    """Convert a stored entity id to the Python type of the model's primary key.

    Discriminator ids are stored as strings while primary keys are typed, so a
    stored "42" has to become 42 before it can be compared against an integer key.

    Returns:
        The converted id, or None if the value cannot represent a key of this model.
    """
    column = _get_mapper(model_cls).primary_key[0]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw_id

    if isinstance(raw_id, python_type):
        return raw_id
    try:
        if issubclass(python_type, (date, time)):
            value = python_type.fromisoformat(str(raw_id))
        else:
            value = python_type(raw_id)
    except (TypeError, ValueError, ArithmeticError):
        logger.debug(f"Cannot coerce id {raw_id!r} to {python_type.__name__} for {model_cls.__name__}")
        return None

    # int() also accepts "1_0" and " 7"; only the canonical spelling names a row.
    if python_type is int and str(value) != raw_id:
        logger.debug(f"Id {raw_id!r} is not a canonical integer for {model_cls.__name__}")
        return None
    return value


def resolve_session(session: Session | None, *records: Any) -> Session:
    """Pick the session to run lookups with.

    Order: the explicit argument, the session the first attached record belongs
    to, then the configured session provider.

    Raises:
        SessionNotSetError: If no session can be found.
    """
    if session is not None:
        return session

    for record in records:
        attached = object_session(record)
        if attached is not None:
            return attached

    configured = get_config().get_session()
    if configured is None:
        raise SessionNotSetError
    return configured


def _get_mapper(model_cls: type) -> Mapper:
    mapper = inspect(model_cls, raiseerr=False)
    if not isinstance(mapper, Mapper):
        raise UnmappedModelError(getattr(model_cls, "__name__", repr(model_cls)))
    return mapper
