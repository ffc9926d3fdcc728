"""Polymorphic associations for SQLAlchemy.

PolyORM lets one child model reference a parent of any registered model type
through a (table identifier, entity id) pair instead of a foreign key, and lets
parents query or preload those children.

Configuration:
    ```python
    import polyorm

    polyorm.configure(
        polyorm.RegistryConfig(
            registry={"posts": Post, "cards": Card},
            session_factory=scoped_session(sessionmaker(bind=engine)),
        )
    )
    ```

Usage:
    ```python
    comment = Comment(content="Great post!", commentable=post)
    polyorm.cast_polymorphic(comment, "commentable")
    session.add(comment)
    session.flush()

    polyorm.load_polymorphic(comment, "commentable").commentable  # -> post
    polyorm.preload_polymorphic(session.scalars(select(Comment)).all(), "commentable")

    session.scalars(polyorm.polymorphic_assoc(post, "comments").limit(5)).all()
    polyorm.preload_polymorphic_assoc(posts, "comments")
    ```
"""

from polyorm.belongs_to import (
    cast_polymorphic,
    disable_polymorphic_cast,
    enable_polymorphic_cast,
    load_polymorphic,
    preload_polymorphic,
)
from polyorm.config import PolyConfig, RegistryConfig, configure, get_config, reset_config, use_config
from polyorm.has_many import polymorphic_assoc, preload_polymorphic_assoc
from polyorm.schema import polymorphic_belongs_to, polymorphic_has_many

__all__ = [
    "PolyConfig",
    "RegistryConfig",
    "cast_polymorphic",
    "configure",
    "disable_polymorphic_cast",
    "enable_polymorphic_cast",
    "get_config",
    "load_polymorphic",
    "polymorphic_assoc",
    "polymorphic_belongs_to",
    "polymorphic_has_many",
    "preload_polymorphic",
    "preload_polymorphic_assoc",
    "reset_config",
    "use_config",
]
