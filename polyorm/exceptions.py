class EnvNotFoundError(Exception):
    """Raised when a required environment variable is not found."""

    def __init__(self, env_var_name: str):
        super().__init__(f"Environment variable '{env_var_name}' not found.")


class ConfigNotSetError(Exception):
    """Raised when no PolyORM configuration has been registered."""

    def __init__(self):
        super().__init__(
            "PolyORM config not set. Call polyorm.configure(RegistryConfig(...)) "
            "or point the POLYORM_CONFIG environment variable at a YAML config file."
        )


class SessionNotSetError(Exception):
    """Raised when the database session is not set."""

    def __init__(self):
        super().__init__("Database session is not set.")


class PolymorphicFieldError(Exception):
    """Raised when a model does not declare the requested polymorphic field."""

    def __init__(self, model_name: str, field_name: str, kind: str):
        super().__init__(f"Model '{model_name}' has no polymorphic {kind} field named '{field_name}'.")


class UnregisteredModelError(Exception):
    """Raised when an entity's model class has no table identifier in the registry."""

    def __init__(self, model_name: str):
        super().__init__(f"Model '{model_name}' is not registered in the PolyORM registry.")


class MissingPrimaryKeyError(Exception):
    """Raised when an entity has no primary key value yet (e.g. it was never flushed)."""

    def __init__(self, model_name: str):
        super().__init__(f"'{model_name}' entity has no primary key value. Flush it before referencing it.")


class UnmappedModelError(TypeError):
    """Raised when an object is not an instance of a SQLAlchemy mapped class."""

    def __init__(self, name: str):
        super().__init__(f"'{name}' is not a SQLAlchemy mapped class.")
