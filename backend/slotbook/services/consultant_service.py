# backend/slotbook/services/consultant_service.py
"""
Consultant Service

Registry of the consultants whose schedules the booking core manages. Every
availability window, slot and booking references one consultant, and the
consultant's zone decides what "in the past" means for their slots.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.exceptions import ConflictException, NotFoundException
from ..models.consultant import Consultant
from ..repositories import RepositoryFactory
from ..repositories.filters import PageRequest
from ..schemas.consultant import ConsultantCreate, ConsultantResponse, ConsultantUpdate
from .base import BaseService
from .cache_service import CacheService

logger = logging.getLogger(__name__)


class ConsultantService(BaseService):
    def __init__(
        self,
        db: Session,
        cache: Optional[CacheService] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db, cache, settings)
        self.repository = RepositoryFactory.create_consultant_repository(db)

    def _require(self, consultant_id: str) -> Consultant:
        consultant = self.repository.get_by_id(consultant_id)
        if consultant is None:
            raise NotFoundException(
                f"Consultant {consultant_id} not found",
                code="CONSULTANT_NOT_FOUND",
                details={"consultant_id": consultant_id},
            )
        return consultant

    @BaseService.measure_operation("create_consultant")
    def create_consultant(self, data: ConsultantCreate) -> Consultant:
        email = str(data.email).lower()

        def _work() -> Consultant:
            if self.repository.get_by_email(email, include_deleted=True) is not None:
                raise ConflictException(
                    "A consultant with this email already exists",
                    code="CONSULTANT_EMAIL_TAKEN",
                    details={"email": email},
                )
            return self.repository.create(
                name=data.name.strip(),
                email=email,
                phone=data.phone,
                timezone=data.timezone,
                is_active=True,
            )

        consultant = self.run_in_transaction("create_consultant", _work)
        self.log_operation("create_consultant", consultant_id=consultant.id)
        return consultant

    def get_consultant(self, consultant_id: str) -> Consultant:
        return self._require(consultant_id)

    def list_consultants(
        self, page: PageRequest, include_inactive: bool = False
    ) -> Tuple[List[ConsultantResponse], int]:
        items, total = self.repository.list_page(page, active_only=not include_inactive)
        return [ConsultantResponse.model_validate(item) for item in items], total

    @BaseService.measure_operation("update_consultant")
    def update_consultant(self, consultant_id: str, data: ConsultantUpdate) -> Consultant:
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is not None:
            changes["name"] = changes["name"].strip()

        def _work() -> Consultant:
            self._require(consultant_id)
            return self.repository.update(consultant_id, **changes)

        return self.run_in_transaction("update_consultant", _work)

    @BaseService.measure_operation("delete_consultant")
    def delete_consultant(self, consultant_id: str) -> None:
        """Tombstone a consultant; their slots stay readable but no longer accept edits."""

        def _work() -> None:
            self._require(consultant_id)
            self.repository.soft_delete(consultant_id)

        self.run_in_transaction("delete_consultant", _work)
        self.log_operation("delete_consultant", consultant_id=consultant_id)
