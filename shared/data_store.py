"""
SQLAlchemy-backed record store for users and chirps.

This module is the only place that talks to the database. Everything above it
works with the immutable records from shared.models.

Design decisions:
- One short-lived session per operation; nothing leaks ORM objects
- Reads that may touch every user are paged with keyset pagination
  (id > last_seen ORDER BY id LIMIT n), so memory stays O(page size)
- Lookups of missing rows return None; callers decide what that means
- Deleting a user deletes their chirps (ORM and database cascade)
"""

import logging
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from shared.database import ChirpModel, UserModel
from shared.models import Chirp, User

logger = logging.getLogger("data_store")


DEFAULT_PAGE_SIZE = 500


class DuplicateEmailError(ValueError):
    """Raised when registering an email address that is already taken."""


class DataStore:
    """
    Record store for the User and Chirp entities.

    Example usage:
        store = DataStore(session_factory)
        author = store.create_user("Alice", "alice@example.com")
        chirp = store.create_chirp(author.id, "Hello!")

        for user in store.iter_users_except(author.id, page_size=100):
            ...
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    # =========================================================================
    # User Operations
    # =========================================================================

    def create_user(self, name: str, email: str) -> User:
        """
        Register a user.

        Raises:
            DuplicateEmailError: If the email address is already registered
        """
        with self._session() as session:
            model = UserModel(name=name, email=email)
            session.add(model)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateEmailError(f"Email already registered: {email}") from e
            session.refresh(model)
            return self._user_to_record(model)

    def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by ID."""
        with self._session() as session:
            model = session.get(UserModel, user_id)
            return self._user_to_record(model) if model else None

    def delete_user(self, user_id: int) -> bool:
        """Delete a user and their chirps. Returns False if the user did not exist."""
        with self._session() as session:
            model = session.get(UserModel, user_id)
            if model is None:
                return False
            session.delete(model)
            session.commit()
            logger.info(f"Deleted user {user_id}")
            return True

    def iter_users_except(
        self,
        author_id: int,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[User]:
        """
        Stream every user whose id is not author_id.

        Users are fetched one page at a time; a page is only queried once the
        previous one has been consumed. Each page reads the current state of
        the table, so users deleted mid-stream are not returned by later pages.
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        last_id = 0
        while True:
            page = self._fetch_user_page(author_id, after_id=last_id, limit=page_size)
            if not page:
                return
            yield from page
            if len(page) < page_size:
                return
            last_id = page[-1].id

    def _fetch_user_page(self, author_id: int, after_id: int, limit: int) -> list[User]:
        """Fetch one page of recipients ordered by id."""
        with self._session() as session:
            query = (
                select(UserModel)
                .where(UserModel.id != author_id)
                .where(UserModel.id > after_id)
                .order_by(UserModel.id)
                .limit(limit)
            )
            return [self._user_to_record(m) for m in session.scalars(query)]

    # =========================================================================
    # Chirp Operations
    # =========================================================================

    def create_chirp(
        self,
        author_id: int,
        message: str,
        created_at: Optional[datetime] = None,
    ) -> Chirp:
        """
        Insert a chirp and return it once committed.

        Raises:
            LookupError: If the author does not exist
        """
        with self._session() as session:
            author = session.get(UserModel, author_id)
            if author is None:
                raise LookupError(f"User not found: {author_id}")

            model = ChirpModel(author_id=author_id, message=message)
            if created_at is not None:
                model.created_at = created_at
            session.add(model)
            session.commit()
            session.refresh(model)
            return self._chirp_to_record(model, author.name)

    def get_chirp(self, chirp_id: int) -> Optional[Chirp]:
        """Get a chirp by ID, with its author's name joined in."""
        with self._session() as session:
            row = session.execute(
                select(ChirpModel, UserModel.name)
                .join(UserModel, ChirpModel.author_id == UserModel.id)
                .where(ChirpModel.id == chirp_id)
            ).first()
            if row is None:
                return None
            model, author_name = row
            return self._chirp_to_record(model, author_name)

    def list_chirps(self, limit: Optional[int] = None) -> list[Chirp]:
        """List chirps, latest first."""
        with self._session() as session:
            query = (
                select(ChirpModel, UserModel.name)
                .join(UserModel, ChirpModel.author_id == UserModel.id)
                .order_by(ChirpModel.created_at.desc(), ChirpModel.id.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            return [
                self._chirp_to_record(model, author_name)
                for model, author_name in session.execute(query)
            ]

    def update_chirp(self, chirp_id: int, message: str) -> Optional[Chirp]:
        """Replace a chirp's message. Returns None if the chirp does not exist."""
        with self._session() as session:
            model = session.get(ChirpModel, chirp_id)
            if model is None:
                return None
            model.message = message
            model.updated_at = datetime.utcnow()
            session.commit()
            session.refresh(model)
            return self._chirp_to_record(model, model.author.name)

    def delete_chirp(self, chirp_id: int) -> bool:
        """Delete a chirp. Returns False if it did not exist."""
        with self._session() as session:
            model = session.get(ChirpModel, chirp_id)
            if model is None:
                return False
            session.delete(model)
            session.commit()
            return True

    # =========================================================================
    # Mapping
    # =========================================================================

    @staticmethod
    def _user_to_record(model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            created_at=model.created_at,
        )

    @staticmethod
    def _chirp_to_record(model: ChirpModel, author_name: str) -> Chirp:
        return Chirp(
            id=model.id,
            author_id=model.author_id,
            author_name=author_name,
            message=model.message,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
