import logging
import os
from dataclasses import dataclass

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from polyorm.exceptions import EnvNotFoundError

logger = logging.getLogger("PolyORM")

DATABASE_URL_ENV = "POLYORM_DATABASE_URL"


@dataclass
class DBConnection:
    """Database connection configuration."""

    url: str
    echo: bool = False

    def get_engine(self) -> Engine:
        """Create a SQLAlchemy engine using the connection configuration."""
        return create_engine(self.url, echo=self.echo)

    def get_session_factory(self) -> sessionmaker[Session]:
        """Create a SQLAlchemy session factory using the connection configuration."""
        engine = self.get_engine()
        return sessionmaker(bind=engine)

    def get_scoped_session_factory(self) -> scoped_session[Session]:
        """Create a thread-safe scoped SQLAlchemy session factory."""
        return scoped_session(self.get_session_factory())

    @classmethod
    def from_env(cls) -> "DBConnection":
        """Load database connection configuration from environment variables.

        Returns:
            DBConnection instance built from ``POLYORM_DATABASE_URL``.

        Raises:
            EnvNotFoundError: If ``POLYORM_DATABASE_URL`` is not set.
        """
        url = os.getenv(DATABASE_URL_ENV)
        if not url:
            raise EnvNotFoundError(DATABASE_URL_ENV)
        logger.debug(f"Loaded database url from {DATABASE_URL_ENV}")
        return cls(url=url)
