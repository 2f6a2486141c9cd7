"""Relational schema and session management for the record store."""

from __future__ import annotations

import logging

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, create_engine, event, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.models import MAX_MESSAGE_LENGTH

logger = logging.getLogger("database")


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


class UserModel(Base):
    """Database representation of a user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    chirps = relationship(
        "ChirpModel",
        back_populates="author",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ChirpModel(Base):
    """Database representation of a chirp."""

    __tablename__ = "chirps"

    id = Column(Integer, primary_key=True)
    author_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    message = Column(String(MAX_MESSAGE_LENGTH), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    author = relationship("UserModel", back_populates="chirps")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    kwargs: dict = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build the session factory used by the data store."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def initialize_database(engine: Engine) -> None:
    """Ensure all tables exist."""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info(f"Database schema ready on {engine.url.render_as_string(hide_password=True)}")
