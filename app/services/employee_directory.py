"""
Employee directory collaborator.

Two adapters answer the same questions: the local employees table, or a
remote directory service over HTTP when DIRECTORY_URL is configured. Both
raise DirectoryLookupError when the directory cannot answer; "no such
employee" is None, not an error.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.core.config import settings
from app.core.exceptions import DirectoryLookupError
from app.models.employee import Employee

logger = logging.getLogger(__name__)


class DirectoryEmployee(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    full_name: str
    email: Optional[str] = None
    supervisor_id: Optional[int] = None
    reviewer_id: Optional[int] = None


class EmployeeDirectory(ABC):
    @abstractmethod
    def get_employee(self, employee_id: int) -> Optional[DirectoryEmployee]:
        ...

    @abstractmethod
    def get_manager_of(self, employee_id: int) -> Optional[DirectoryEmployee]:
        ...

    @abstractmethod
    def get_reviewer_of(self, employee_id: int) -> Optional[DirectoryEmployee]:
        ...

    @abstractmethod
    def find_by_user(self, user_id: int) -> Optional[DirectoryEmployee]:
        ...


class DatabaseEmployeeDirectory(EmployeeDirectory):
    def __init__(self, db: Session):
        self.db = db

    def _get(self, **criteria) -> Optional[DirectoryEmployee]:
        try:
            employee = self.db.query(Employee).filter_by(is_active=True, **criteria).first()
        except SQLAlchemyError as e:
            logger.warning(f"Directory query failed: {e}")
            raise DirectoryLookupError() from e
        return DirectoryEmployee.model_validate(employee) if employee else None

    def get_employee(self, employee_id: int) -> Optional[DirectoryEmployee]:
        return self._get(id=employee_id)

    def get_manager_of(self, employee_id: int) -> Optional[DirectoryEmployee]:
        employee = self.get_employee(employee_id)
        if employee is None or employee.supervisor_id is None:
            return None
        return self.get_employee(employee.supervisor_id)

    def get_reviewer_of(self, employee_id: int) -> Optional[DirectoryEmployee]:
        employee = self.get_employee(employee_id)
        if employee is None or employee.reviewer_id is None:
            return None
        return self.get_employee(employee.reviewer_id)

    def find_by_user(self, user_id: int) -> Optional[DirectoryEmployee]:
        return self._get(user_id=user_id)


class HttpEmployeeDirectory(EmployeeDirectory):
    """
    Client for the remote directory service.

    Expected routes: GET /employees/{id}, /employees/{id}/manager,
    /employees/{id}/reviewer and /employees?user_id={id}. A 404 means
    "not found"; anything else that is not a 2xx is a lookup failure.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, api_key: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    @retry(
        stop=stop_after_attempt(settings.directory.retry_attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=1),
        retry=retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout)),
        reraise=True
    )
    def _fetch(self, path: str, params: Optional[dict] = None):
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def _lookup(self, path: str, params: Optional[dict] = None) -> Optional[DirectoryEmployee]:
        try:
            payload = self._fetch(path, params)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Directory request {path} failed: {e}")
            raise DirectoryLookupError() from e
        except ValueError as e:
            logger.warning(f"Directory returned malformed JSON for {path}")
            raise DirectoryLookupError() from e

        if payload is None:
            return None
        if isinstance(payload, list):
            payload = payload[0] if payload else None
            if payload is None:
                return None
        try:
            return DirectoryEmployee.model_validate(payload)
        except ValueError as e:
            logger.warning(f"Directory payload for {path} does not match the employee schema")
            raise DirectoryLookupError() from e

    def get_employee(self, employee_id: int) -> Optional[DirectoryEmployee]:
        return self._lookup(f"/employees/{employee_id}")

    def get_manager_of(self, employee_id: int) -> Optional[DirectoryEmployee]:
        return self._lookup(f"/employees/{employee_id}/manager")

    def get_reviewer_of(self, employee_id: int) -> Optional[DirectoryEmployee]:
        return self._lookup(f"/employees/{employee_id}/reviewer")

    def find_by_user(self, user_id: int) -> Optional[DirectoryEmployee]:
        return self._lookup("/employees", params={"user_id": user_id})


def get_employee_directory(db: Session) -> EmployeeDirectory:
    if settings.directory.url:
        return HttpEmployeeDirectory(
            settings.directory.url,
            timeout=settings.directory.timeout_seconds,
            api_key=settings.directory.api_key,
        )
    return DatabaseEmployeeDirectory(db)
