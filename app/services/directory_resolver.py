"""
Directory Resolver: which appraisal roles does the current user hold?

One place derives the capability set for a (user, appraisal) pair; the
workflow engine and the read endpoints never re-derive roles themselves.
Directory failures fail closed.
"""
import logging
from typing import Callable, Optional

from pydantic import BaseModel

from app.core.exceptions import DirectoryLookupError
from app.models.appraisal import Appraisal, ActorRole
from app.models.user import User
from app.services.employee_directory import DirectoryEmployee, EmployeeDirectory

logger = logging.getLogger(__name__)


class AppraisalCapabilities(BaseModel):
    is_employee: bool = False
    # Granted by assignment or hierarchy alone
    hierarchy_supervisor: bool = False
    hierarchy_reviewer: bool = False
    is_hr_override: bool = False
    directory_available: bool = True

    @property
    def is_supervisor(self) -> bool:
        return self.hierarchy_supervisor or self.is_hr_override

    @property
    def is_reviewer(self) -> bool:
        return self.hierarchy_reviewer or self.is_hr_override

    @property
    def can_view(self) -> bool:
        return self.is_employee or self.is_supervisor or self.is_reviewer

    def can_act_as(self, role) -> bool:
        role = ActorRole(role)
        if role == ActorRole.SUPERVISOR:
            return self.is_supervisor
        if role == ActorRole.REVIEWER:
            return self.is_reviewer
        return self.is_employee

    def via_override(self, role) -> bool:
        """True when only the HR override grants the role."""
        role = ActorRole(role)
        if role == ActorRole.SUPERVISOR:
            return self.is_hr_override and not self.hierarchy_supervisor
        if role == ActorRole.REVIEWER:
            return self.is_hr_override and not self.hierarchy_reviewer
        return False

    def held_roles(self):
        return [role for role in ActorRole if self.can_act_as(role)]

    def as_flags(self) -> dict:
        return {
            "is_employee": self.is_employee,
            "is_supervisor": self.is_supervisor,
            "is_reviewer": self.is_reviewer,
            "is_hr_override": self.is_hr_override,
            "directory_available": self.directory_available,
        }


class DirectoryResolver:
    def __init__(self, directory: EmployeeDirectory):
        self.directory = directory

    def _matches(
        self,
        user: User,
        lookup: Callable[[int], Optional[DirectoryEmployee]],
        employee_id: int,
        capabilities: AppraisalCapabilities,
    ) -> bool:
        try:
            account = lookup(employee_id)
        except DirectoryLookupError:
            capabilities.directory_available = False
            return False
        return account is not None and account.user_id is not None and account.user_id == user.id

    def resolve(self, user: User, appraisal: Appraisal) -> AppraisalCapabilities:
        capabilities = AppraisalCapabilities(is_hr_override=user.is_hr)

        capabilities.is_employee = self._matches(
            user, self.directory.get_employee, appraisal.employee_id, capabilities
        )

        # 1. Direct assignment on the appraisal
        capabilities.hierarchy_supervisor = appraisal.supervisor_id is not None and appraisal.supervisor_id == user.id
        capabilities.hierarchy_reviewer = appraisal.reviewer_id is not None and appraisal.reviewer_id == user.id

        # 2. Subject's designated manager / reviewer in the directory
        if not capabilities.hierarchy_supervisor:
            capabilities.hierarchy_supervisor = self._matches(
                user, self.directory.get_manager_of, appraisal.employee_id, capabilities
            )
        if not capabilities.hierarchy_reviewer:
            capabilities.hierarchy_reviewer = self._matches(
                user, self.directory.get_reviewer_of, appraisal.employee_id, capabilities
            )

        if not capabilities.directory_available:
            logger.warning(
                "Directory unavailable while resolving appraisal roles; falling back to direct assignment",
                extra={"appraisal_id": appraisal.id, "user_id": user.id}
            )
        return capabilities
