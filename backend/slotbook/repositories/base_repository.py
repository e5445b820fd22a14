# backend/slotbook/repositories/base_repository.py
"""
Base Repository Pattern for the booking core.

Provides the foundation for all repository classes with:
- Common CRUD operations
- Soft-delete aware lookups
- Pagination helpers
- Transaction support (managed by services)

Repositories never commit. The service layer owns the transaction boundary.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database import is_transient_error

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
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def _soft_deletes(self) -> bool:
        return hasattr(self.model, "not_deleted")

    def _live(self, query: Query) -> Query:
        if self._soft_deletes:
            return query.filter(self.model.not_deleted())
        return query

    def get_by_id(self, id: str, include_deleted: bool = False) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        Always re-reads the row so values changed by conditional updates are
        visible to the caller.
        """
        try:
            query = self.db.query(self.model).filter(self.model.id == id).populate_existing()
            if not include_deleted:
                query = self._live(query)
            return query.first()
        except SQLAlchemyError as e:
            if is_transient_error(e):
                raise
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc

    def update(self, id: str, **kwargs) -> Optional[T]:
        """
        Update an existing entity.

        Only updates provided fields, preserves others.
        """
        entity = self.get_by_id(id)
        if not entity:
            return None

        for key, value in kwargs.items():
            if hasattr(entity, key):
                setattr(entity, key, value)

        try:
            self.db.flush()
        except IntegrityError as exc:
            self.logger.error(f"Integrity error updating {self.model.__name__} {id}: {exc}")
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        return entity

    def soft_delete(self, id: str) -> bool:
        """Tombstone a live row. Returns False when nothing was live."""
        entity = self.get_by_id(id)
        if not entity:
            return False
        entity.mark_deleted()
        self.db.flush()
        return True

    def bulk_create(self, entities: List[Dict[str, Any]]) -> List[T]:
        """
        Create multiple entities in one flush.

        Args:
            entities: List of entity data dictionaries

        Returns:
            List of created entities
        """
        try:
            db_entities = [self.model(**data) for data in entities]
            self.db.add_all(db_entities)
            self.db.flush()
            return db_entities
        except IntegrityError as e:
            self.logger.error(f"Error bulk creating: {str(e)}")
            raise RepositoryException(f"Failed to bulk create: {str(e)}") from e

    def _paginate(self, query: Query, page: int, limit: int) -> Tuple[List[T], int]:
        """Return one page of ``query`` plus the total match count."""
        total = query.order_by(None).count()
        items = query.offset((page - 1) * limit).limit(limit).all()
        return items, total
