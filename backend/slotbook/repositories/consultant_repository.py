"""Consultant data access."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..models.consultant import Consultant
from .base_repository import BaseRepository
from .filters import PageRequest

logger = logging.getLogger(__name__)


class ConsultantRepository(BaseRepository[Consultant]):
    def __init__(self, db: Session):
        super().__init__(db, Consultant)

    def get_active(self, consultant_id: str) -> Optional[Consultant]:
        return (
            self.db.query(Consultant)
            .filter(
                Consultant.id == consultant_id,
                Consultant.is_active.is_(True),
                Consultant.not_deleted(),
            )
            .first()
        )

    def get_by_email(self, email: str, include_deleted: bool = False) -> Optional[Consultant]:
        query = self.db.query(Consultant).filter(Consultant.email == email)
        if not include_deleted:
            query = self._live(query)
        return query.first()

    def lock_schedule(self, consultant_id: str) -> bool:
        """
        Take the per-consultant schedule lock for the current transaction.

        Touching the consultant row serializes concurrent availability and slot
        edits for one consultant: Postgres holds the row lock and SQLite the
        database write lock until commit. Returns False for unknown or
        inactive consultants.
        """
        result = self.db.execute(
            update(Consultant)
            .where(
                Consultant.id == consultant_id,
                Consultant.is_active.is_(True),
                Consultant.not_deleted(),
            )
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_page(self, page: PageRequest, active_only: bool = True) -> Tuple[List[Consultant], int]:
        query = self._live(self.db.query(Consultant))
        if active_only:
            query = query.filter(Consultant.is_active.is_(True))
        return self._paginate(query.order_by(Consultant.name, Consultant.id), page.page, page.limit)
