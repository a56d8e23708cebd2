# backend/skillswap/repositories/base_repository.py
"""
Base Repository for SkillSwap

Shared data access for the booking tables: primary-key lookups with optional
row locks, inserts, criteria lookups and query helpers that turn driver
errors into ``RepositoryException``.

Repositories never commit. The owning service sets the transaction boundary
so an acceptance, its session and its cascade land as one unit.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks

T = TypeVar("T")

logger = logging.getLogger(__name__)


class IRepository(ABC, Generic[T]):
    """Minimal contract every booking repository fulfils."""

    @abstractmethod
    def get_by_id(self, id: str, for_update: bool = False) -> Optional[T]:
        """
        Look up a row by its ULID.

        ``for_update`` asks for a row lock; dialects without row locks ignore it.
        """

    @abstractmethod
    def create(self, **kwargs: Any) -> T:
        """
        Insert a row and flush it so its id is available.

        Raises:
            RepositoryException: If the insert fails
        """


class BaseRepository(IRepository[T]):
    """
    Session-bound repository for one model.

    Attributes:
        db: SQLAlchemy session owned by the calling service
        model: Mapped model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def _lockable(self, query: Query) -> Query:
        """Add FOR UPDATE when the bound dialect honours it."""
        if supports_row_locks(self.db):
            return query.with_for_update()
        return query

    def get_by_id(self, id: str, for_update: bool = False) -> Optional[T]:
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if for_update:
                query = self._lockable(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to load {self.model.__name__}: {str(e)}")

    def refresh(self, instance: T) -> None:
        self.db.refresh(instance)

    def create(self, **kwargs: Any) -> T:
        """Insert without committing; the service owns the transaction."""
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error(
                "Constraint violation inserting %s: %s", self.model.__name__, exc, exc_info=True
            )
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def flush(self) -> None:
        """Write pending attribute changes (session status, meeting link) to the database."""
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error flushing {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to flush {self.model.__name__}: {str(e)}")

    def find_by(self, **kwargs: Any) -> List[T]:
        """All rows whose columns equal the given values."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing {self.model.__name__} by {sorted(kwargs)}: {str(e)}")
            raise RepositoryException(f"Failed to list {self.model.__name__}: {str(e)}")

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {self.model.__name__} by {sorted(kwargs)}: {str(e)}")
            raise RepositoryException(f"Failed to load {self.model.__name__}: {str(e)}")

    # Helpers for subclass queries

    def _execute_query(self, query: Query) -> List[T]:
        try:
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"{self.model.__name__} query failed: {str(e)}")
            raise RepositoryException(f"Query failed: {str(e)}")

    def _execute_scalar(self, query: Query) -> Any:
        try:
            return query.scalar()
        except SQLAlchemyError as e:
            self.logger.error(f"{self.model.__name__} scalar query failed: {str(e)}")
            raise RepositoryException(f"Scalar query failed: {str(e)}")
