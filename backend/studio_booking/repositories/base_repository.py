# backend/studio_booking/repositories/base_repository.py
"""
Base Repository Pattern for the studio booking core.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Transaction support (managed by services)
- Consistent translation of driver failures

Repositories never commit. Services own the transaction boundary.
"""

import logging
from typing import Any, Generic, List, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import (
    RepositoryException,
    RepositoryIntegrityError,
    StoreUnavailableException,
)

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self._raise_translated(e, f"Failed to retrieve {self.model.__name__}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except SQLAlchemyError as e:
            self._raise_translated(e, f"Failed to create {self.model.__name__}")

    def delete(self, id: str) -> bool:
        """Delete an entity by its primary key. Returns False if not found."""
        try:
            entity = self.get_by_id(id)
            if not entity:
                return False

            self.db.delete(entity)
            self.db.flush()
            return True
        except SQLAlchemyError as e:
            self._raise_translated(e, f"Failed to delete {self.model.__name__}")

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        """Find the first entity matching exact-match criteria."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self._raise_translated(e, "Failed to find record")

    # Protected helper methods for use by subclasses

    def _build_query(self) -> Query:
        """Get base query for the model."""
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        """Execute query with error handling."""
        try:
            return query.all()
        except SQLAlchemyError as e:
            self._raise_translated(e, "Query failed")

    def _execute_first(self, query: Query) -> Optional[T]:
        try:
            return query.first()
        except SQLAlchemyError as e:
            self._raise_translated(e, "Query failed")

    def _raise_translated(self, exc: SQLAlchemyError, message: str) -> NoReturn:
        """
        Re-raise a driver error as a repository-level exception.

        Connectivity failures become ``StoreUnavailableException`` so the API
        can answer 503; constraint violations keep their own type so services
        can map them to domain conflicts.
        """
        if isinstance(exc, (OperationalError, InterfaceError)):
            self.logger.error("%s: store unavailable: %s", message, exc)
            raise StoreUnavailableException(details={"operation": message}) from exc
        if isinstance(exc, IntegrityError):
            self.logger.warning("%s: integrity constraint violated: %s", message, exc)
            raise RepositoryIntegrityError(f"{message}: integrity constraint violated") from exc
        self.logger.error("%s: %s", message, exc)
        raise RepositoryException(f"{message}: {exc}") from exc
