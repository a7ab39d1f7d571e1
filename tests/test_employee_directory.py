import json
from unittest.mock import MagicMock

import pytest
import requests

from app.core.exceptions import DirectoryLookupError
from app.services.employee_directory import DatabaseEmployeeDirectory, HttpEmployeeDirectory


def make_response(status_code, payload=None, raw=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = raw if raw is not None else json.dumps(payload).encode()
    return response


def test_database_directory_resolves_two_hops(db_session, org_chart):
    directory = DatabaseEmployeeDirectory(db_session)
    subject_id = org_chart.employee_record.id

    assert directory.get_employee(subject_id).user_id == org_chart.employee.id
    assert directory.get_manager_of(subject_id).user_id == org_chart.supervisor.id
    assert directory.get_reviewer_of(subject_id).user_id == org_chart.reviewer.id
    assert directory.find_by_user(org_chart.employee.id).id == subject_id


def test_database_directory_missing_manager_is_none(db_session, org_chart):
    directory = DatabaseEmployeeDirectory(db_session)
    assert directory.get_manager_of(org_chart.reviewer_record.id) is None
    assert directory.get_employee(999) is None


def test_http_directory_parses_employee():
    session = MagicMock()
    session.headers = {}
    session.get.return_value = make_response(200, {"id": 7, "user_id": 70, "full_name": "Sam Supervisor"})
    directory = HttpEmployeeDirectory("http://directory.local/", session=session, api_key="secret")

    manager = directory.get_manager_of(1)

    assert manager.user_id == 70
    session.get.assert_called_once_with("http://directory.local/employees/1/manager", params=None, timeout=5.0)
    assert session.headers["Authorization"] == "Bearer secret"


def test_http_directory_404_means_not_found():
    session = MagicMock()
    session.headers = {}
    session.get.return_value = make_response(404, {"detail": "not found"})
    assert HttpEmployeeDirectory("http://directory.local", session=session).get_employee(1) is None


def test_http_directory_user_lookup_takes_first_match():
    session = MagicMock()
    session.headers = {}
    session.get.return_value = make_response(200, [{"id": 3, "user_id": 30, "full_name": "Rita Reviewer"}])
    employee = HttpEmployeeDirectory("http://directory.local", session=session).find_by_user(30)
    assert employee.id == 3


@pytest.mark.parametrize("response", [
    make_response(500, {"detail": "boom"}),
    make_response(200, raw=b"not json"),
    make_response(200, {"unexpected": True}),
])
def test_http_directory_failures_raise_lookup_error(response):
    session = MagicMock()
    session.headers = {}
    session.get.return_value = response
    with pytest.raises(DirectoryLookupError):
        HttpEmployeeDirectory("http://directory.local", session=session).get_employee(1)


def test_http_directory_unreachable_raises_lookup_error():
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(DirectoryLookupError):
        HttpEmployeeDirectory("http://directory.local", session=session).get_reviewer_of(1)
    assert session.get.call_count >= 1
