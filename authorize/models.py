"""Database models for users, roles and their privilege associations.

This module provides SQLAlchemy models for:
- Users and roles
- The user/role, role/privilege and user/privilege association tables

Privileges themselves have no table; they are defined by the application
catalog and only referenced here by id.
"""
import os
import threading
from typing import Optional

from loguru import logger
from sqlalchemy import Column, ForeignKey, Integer, String, create_engine, event, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True)
    username = Column(String(255), unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<User {self.user_id}:{self.username}>"


class Role(Base):
    __tablename__ = "roles"

    role_id = Column(Integer, primary_key=True)
    rolename = Column(String(255), unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<Role {self.role_id}:{self.rolename}>"


class UserRole(Base):
    """Role membership of a user."""

    __tablename__ = "user_roles"

    user_id = Column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    role_id = Column(
        Integer, ForeignKey("roles.role_id", ondelete="CASCADE"), primary_key=True
    )


class RolePriv(Base):
    """Privilege granted to every member of a role."""

    __tablename__ = "role_privs"

    role_id = Column(
        Integer, ForeignKey("roles.role_id", ondelete="CASCADE"), primary_key=True
    )
    priv_id = Column(Integer, primary_key=True, autoincrement=False)


class UserPriv(Base):
    """Ad-hoc privilege granted to a single user, independent of roles."""

    __tablename__ = "user_privs"

    user_id = Column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    priv_id = Column(Integer, primary_key=True, autoincrement=False)


class DatabaseManager:
    """Database connection and session management with proper pooling."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        echo: bool = False,
    ):
        """Initialize database connection.

        Args:
            database_url: SQLAlchemy database URL
            pool_size: Number of connections to maintain in the pool
            max_overflow: Max number of connections above pool_size
            pool_timeout: Seconds to wait before giving up on getting a connection
            pool_recycle: Recycle connections after this many seconds
            echo: Echo SQL statements (for debugging)
        """
        is_sqlite = database_url.startswith("sqlite:")

        if is_sqlite:
            # SQLite doesn't support connection pooling
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )

            # SQLite only enforces foreign keys (and cascades) when asked per connection
            @event.listens_for(self.engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
        else:
            self.engine = create_engine(
                database_url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=True,
            )

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False,
        )

    def create_tables(self):
        """Create all tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Authorization tables ready on {self.engine.url.drivername}")

    def drop_tables(self):
        """Drop all tables (use with caution)."""
        Base.metadata.drop_all(bind=self.engine)

    def get_session_context(self):
        """Get database session as context manager (recommended).

        Usage:
            with db_manager.get_session_context() as session:
                session.execute(stmt)
        """
        from contextlib import contextmanager

        @contextmanager
        def _session_scope():
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        return _session_scope()

    def dispose(self):
        """Dispose of the connection pool.

        Should be called on application shutdown.
        """
        self.engine.dispose()

    def health_check(self) -> bool:
        """Check if database connection is healthy.

        Returns:
            True if database is accessible
        """
        try:
            with self.get_session_context() as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


_db_manager: Optional[DatabaseManager] = None
_db_manager_lock = threading.Lock()


def get_db_manager(
    database_url: Optional[str] = None,
    reset: bool = False,
    **kwargs,
) -> DatabaseManager:
    """Get or create database manager singleton with thread-safe initialization.

    Args:
        database_url: Database URL (falls back to DATABASE_URL)
        reset: Force recreation of the singleton (for testing)
        **kwargs: Additional arguments passed to DatabaseManager

    Returns:
        DatabaseManager instance
    """
    global _db_manager

    with _db_manager_lock:
        if _db_manager is None or reset:
            if _db_manager is not None and reset:
                try:
                    _db_manager.dispose()
                except Exception as e:
                    logger.warning(f"Error disposing old db_manager: {e}")

            if database_url is None:
                database_url = os.getenv("DATABASE_URL")
                if not database_url:
                    raise ValueError(
                        "DATABASE_URL not configured. "
                        "Set DATABASE_URL environment variable or pass database_url parameter."
                    )

            _db_manager = DatabaseManager(database_url, **kwargs)
            _db_manager.create_tables()

    return _db_manager


def dispose_db_manager():
    """Dispose of the database manager singleton.

    Should be called on application shutdown.
    """
    global _db_manager
    if _db_manager is not None:
        try:
            _db_manager.dispose()
        except Exception as e:
            logger.error(f"Error disposing db_manager: {e}")
        finally:
            _db_manager = None
