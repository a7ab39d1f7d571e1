import pytest
import os
from datetime import date
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("DIRECTORY_URL", None)

from app.database import Base, get_db
from app.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_CATEGORIES = [
    {"name": "Delivery", "rating": 4, "weight": 50, "comment": "Shipped on time"},
    {"name": "Collaboration", "rating": 3, "weight": 30},
    {"name": "Growth", "rating": 5, "weight": 20},
]


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh schema per test. Services commit and roll back on their own,
    so an outer rollback cannot be used to isolate tests.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def org_chart(db_session):
    """
    Accounts and directory records:
    employee -> supervisor (manager) -> reviewer, plus an HR admin and an unrelated colleague.
    """
    from app.models.user import User, UserRole
    from app.models.employee import Employee

    def make_user(email, name, role):
        user = User(email=email, full_name=name, role=role, is_active=True)
        db_session.add(user)
        return user

    employee = make_user("emma@acme.test", "Emma Employee", UserRole.EMPLOYEE)
    supervisor = make_user("sam@acme.test", "Sam Supervisor", UserRole.MANAGER)
    reviewer = make_user("rita@acme.test", "Rita Reviewer", UserRole.MANAGER)
    hr = make_user("hank@acme.test", "Hank HR", UserRole.HR_ADMIN)
    outsider = make_user("olga@acme.test", "Olga Outsider", UserRole.EMPLOYEE)
    db_session.flush()

    reviewer_record = Employee(user_id=reviewer.id, first_name="Rita", last_name="Reviewer", employee_number="E-003")
    supervisor_record = Employee(user_id=supervisor.id, first_name="Sam", last_name="Supervisor", employee_number="E-002")
    hr_record = Employee(user_id=hr.id, first_name="Hank", last_name="HR", employee_number="E-004")
    db_session.add_all([reviewer_record, supervisor_record, hr_record])
    db_session.flush()

    employee_record = Employee(
        user_id=employee.id,
        first_name="Emma",
        last_name="Employee",
        employee_number="E-001",
        supervisor_id=supervisor_record.id,
        reviewer_id=reviewer_record.id,
    )
    outsider_record = Employee(
        user_id=outsider.id,
        first_name="Olga",
        last_name="Outsider",
        employee_number="E-005",
        supervisor_id=hr_record.id,
    )
    db_session.add_all([employee_record, outsider_record])
    db_session.commit()

    return SimpleNamespace(
        employee=employee,
        supervisor=supervisor,
        reviewer=reviewer,
        hr=hr,
        outsider=outsider,
        employee_record=employee_record,
        supervisor_record=supervisor_record,
        reviewer_record=reviewer_record,
        outsider_record=outsider_record,
    )


@pytest.fixture(scope="function")
def workflow_service(db_session):
    from app.services.appraisal_workflow import AppraisalWorkflowService
    from app.services.employee_directory import DatabaseEmployeeDirectory

    return AppraisalWorkflowService(db_session, DatabaseEmployeeDirectory(db_session))


@pytest.fixture(scope="function")
def draft_appraisal(workflow_service, org_chart):
    """A complete draft authored by the employee; supervisor and reviewer come from the hierarchy."""
    from app.schemas.appraisal import AppraisalCreate

    return workflow_service.create_appraisal(
        org_chart.employee,
        AppraisalCreate(
            period_start=date(2024, 1, 1),
            period_end=date(2024, 12, 31),
            categories=DEFAULT_CATEGORIES,
            achievements=[{"title": "Launched billing v2"}],
        ),
    )


@pytest.fixture(scope="function")
def submitted_appraisal(workflow_service, org_chart, draft_appraisal):
    return workflow_service.submit_appraisal(draft_appraisal.id, org_chart.employee)


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens the way the identity provider does."""
    from app.services.auth import create_access_token

    def _get_token(user):
        return create_access_token(data={
            "sub": user.email,
            "role": user.role.value,
            "user_id": user.id,
            "type": "access"
        })
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
