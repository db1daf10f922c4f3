from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from connectchain_admin.config import config


def build_engine(connection_string, echo=False):
    """Create an engine with pooling suited to the target database.

    SQLite (tests and local development) shares one connection so an
    in-memory database survives across sessions and request threads.

    Args:
        connection_string: SQLAlchemy URL
        echo: Whether to echo SQL

    Returns:
        SQLAlchemy engine
    """
    if make_url(connection_string).get_backend_name() == 'sqlite':
        return create_engine(
            connection_string,
            echo=echo,
            poolclass=StaticPool,
            connect_args={'check_same_thread': False}
        )

    return create_engine(connection_string, echo=echo, pool_pre_ping=True, **config.pool_config)


class Database:
    """Engine and request-scoped session registry for the admin backend."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Database, cls).__new__(cls)
            cls._instance._engine = None
            cls._instance._registry = None
        return cls._instance

    def initialize(self, connection_string=None):
        """(Re)bind the database to a connection string.

        Any previous engine is disposed and its sessions removed.

        Args:
            connection_string: Optional database URL, defaults to the
                               configured one
        """
        self.dispose()

        self._engine = build_engine(
            connection_string or config.get_db_url(),
            echo=config.get_boolean('DATABASE', 'echo', False)
        )
        self._registry = scoped_session(sessionmaker(bind=self._engine))

    def dispose(self):
        if self._registry is not None:
            self._registry.remove()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._registry = None

    def create_all_tables(self):
        from connectchain_admin.models import Base
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self):
        from connectchain_admin.models import Base
        Base.metadata.drop_all(self.engine)

    @property
    def session(self):
        """Scoped session registry; call it to get the current session."""
        if self._registry is None:
            self.initialize()
        return self._registry

    @property
    def engine(self):
        if self._engine is None:
            self.initialize()
        return self._engine

    def remove_session(self):
        """Close the current thread's session, e.g. at request teardown."""
        if self._registry is not None:
            self._registry.remove()

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

# Global database instance
db = Database()

def get_session():
    """Get the current thread's database session."""
    return db.session()

@contextmanager
def session_scope():
    """Session scope context manager."""
    with db.session_scope() as session:
        yield session
