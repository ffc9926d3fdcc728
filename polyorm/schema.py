"""Declaration helpers for polymorphic associations on SQLAlchemy declarative models.

A polymorphic belongs-to stores the parent's table identifier and primary key in two
plain string columns instead of a foreign key, so one child table can reference rows
of any registered model.

Example:
    ```python
    class Comment(Base):
        __tablename__ = "comments"

        id: Mapped[int] = mapped_column(primary_key=True)
        content: Mapped[str] = mapped_column(Text)
        commentable = polymorphic_belongs_to()  # commentable_table, commentable_id


    class Post(Base):
        __tablename__ = "posts"

        id: Mapped[int] = mapped_column(primary_key=True)
        comments = polymorphic_has_many(lambda: Comment, as_="commentable")
    ```

Create an index on the discriminator pair in your migration, e.g.
``Index("ix_comments_commentable", "commentable_table", "commentable_id")``.
"""

from collections.abc import Callable
from functools import lru_cache
from typing import Any

from sqlalchemy import String, inspect
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm.attributes import flag_dirty

from polyorm.exceptions import PolymorphicFieldError

_UNSET = object()


class PolymorphicBelongsTo:
    """Descriptor for the child side of a polymorphic association.

    Adds the ``{name}_table`` and ``{name}_id`` string columns to the owning class
    and exposes ``{name}`` as a transient attribute. Assigning an entity records a
    pending assignment that ``cast_polymorphic`` turns into column values; the
    loaded reference is only populated by ``load_polymorphic`` and
    ``preload_polymorphic``.
    """

    def __init__(self, table_field: str | None = None, id_field: str | None = None, length: int = 255):
        self.name: str | None = None
        self.table_field = table_field
        self.id_field = id_field
        self.length = length

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.table_field = self.table_field or f"{name}_table"
        self.id_field = self.id_field or f"{name}_id"

        # Columns written out in the class body win.
        for column_name in (self.table_field, self.id_field):
            if column_name not in owner.__dict__:
                setattr(owner, column_name, mapped_column(String(self.length), nullable=True))

    @property
    def _pending_key(self) -> str:
        return f"_polyorm_pending_{self.name}"

    @property
    def _loaded_key(self) -> str:
        return f"_polyorm_loaded_{self.name}"

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        pending = instance.__dict__.get(self._pending_key, _UNSET)
        if pending is not _UNSET:
            return pending
        return instance.__dict__.get(self._loaded_key)

    def __set__(self, instance: Any, value: Any) -> None:
        if value is None:
            instance.__dict__.pop(self._pending_key, None)
            return
        instance.__dict__[self._pending_key] = value

        # The transient attribute is not instrumented; flag the row so flush hooks see it.
        state = inspect(instance, raiseerr=False)
        if state is not None and state.persistent:
            flag_dirty(instance)

    def get_pending(self, instance: Any) -> Any | None:
        """Return the entity assigned since the last cast, if any."""
        return instance.__dict__.get(self._pending_key)

    def clear_pending(self, instance: Any) -> None:
        instance.__dict__.pop(self._pending_key, None)

    def set_loaded(self, instance: Any, entity: Any | None) -> None:
        instance.__dict__[self._loaded_key] = entity

    def clear_loaded(self, instance: Any) -> None:
        instance.__dict__.pop(self._loaded_key, None)

    def __repr__(self) -> str:
        return f"PolymorphicBelongsTo({self.name!r}, table_field={self.table_field!r}, id_field={self.id_field!r})"


class PolymorphicHasMany:
    """Descriptor for the parent side of a polymorphic association.

    Exposes ``{name}`` as a transient list attribute, None until preloaded.
    """

    def __init__(self, target: type | Callable[[], type], as_: str):
        self.name: str | None = None
        self._target = target
        self.as_ = as_

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @property
    def target(self) -> type:
        """The child model class, resolving a lazy ``lambda: Model`` reference."""
        if isinstance(self._target, type):
            return self._target
        return self._target()

    @property
    def table_field(self) -> str:
        declaration = self._target_declaration()
        return declaration.table_field if declaration else f"{self.as_}_table"

    @property
    def id_field(self) -> str:
        declaration = self._target_declaration()
        return declaration.id_field if declaration else f"{self.as_}_id"

    def _target_declaration(self) -> PolymorphicBelongsTo | None:
        declaration = getattr(self.target, self.as_, None)
        if isinstance(declaration, PolymorphicBelongsTo):
            return declaration
        return None

    @property
    def _loaded_key(self) -> str:
        return f"_polyorm_loaded_{self.name}"

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self._loaded_key)

    def __set__(self, instance: Any, value: list[Any] | None) -> None:
        if value is None:
            instance.__dict__.pop(self._loaded_key, None)
            return
        instance.__dict__[self._loaded_key] = list(value)

    def __repr__(self) -> str:
        return f"PolymorphicHasMany({self.name!r}, as_={self.as_!r})"


def polymorphic_belongs_to(
    table_field: str | None = None, id_field: str | None = None, length: int = 255
) -> PolymorphicBelongsTo:
    """Declare a polymorphic belongs-to association.

    Generates three attributes on the owning class:
    - ``{name}_table`` - String column storing the table identifier
    - ``{name}_id`` - String column storing the entity ID
    - ``{name}`` - Transient attribute for the loaded entity

    Args:
        table_field: Custom name for the table column (default: ``{name}_table``).
        id_field: Custom name for the id column (default: ``{name}_id``).
        length: Length of both string columns.

    Example:
        >>> class Tag(Base):
        ...     __tablename__ = "tags"
        ...     id: Mapped[int] = mapped_column(primary_key=True)
        ...     taggable = polymorphic_belongs_to(table_field="entity_table", id_field="entity_id")
    """
    return PolymorphicBelongsTo(table_field=table_field, id_field=id_field, length=length)


def polymorphic_has_many(target: type | Callable[[], type], as_: str) -> PolymorphicHasMany:
    """Declare a polymorphic has-many association.

    Args:
        target: The child model class, or a zero-argument callable returning it.
        as_: Name of the polymorphic belongs-to association on the child model.
    """
    return PolymorphicHasMany(target, as_=as_)


def get_belongs_to(model_cls: type, name: str) -> PolymorphicBelongsTo:
    """Return the belongs-to declaration ``name`` of ``model_cls``.

    Raises:
        PolymorphicFieldError: If the model declares no such association.
    """
    declaration = getattr(model_cls, name, None)
    if not isinstance(declaration, PolymorphicBelongsTo):
        raise PolymorphicFieldError(model_cls.__name__, name, "belongs_to")
    return declaration


def get_has_many(model_cls: type, name: str) -> PolymorphicHasMany:
    """Return the has-many declaration ``name`` of ``model_cls``.

    Raises:
        PolymorphicFieldError: If the model declares no such association.
    """
    declaration = getattr(model_cls, name, None)
    if not isinstance(declaration, PolymorphicHasMany):
        raise PolymorphicFieldError(model_cls.__name__, name, "has_many")
    return declaration


@lru_cache(maxsize=256)
def belongs_to_fields(model_cls: type) -> tuple[PolymorphicBelongsTo, ...]:
    """Return every belongs-to declaration of a model class, including inherited ones."""
    seen: dict[str, PolymorphicBelongsTo] = {}
    for klass in reversed(model_cls.__mro__):
        for attr_name, value in vars(klass).items():
            if isinstance(value, PolymorphicBelongsTo):
                seen[attr_name] = value
    return tuple(seen.values())
