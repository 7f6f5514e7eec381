"""
Tests for the synchronous API client
"""
import json
from unittest.mock import MagicMock

import pytest
import requests

from infracity_api.client import InfraCityClient


def make_response(status_code=200, body=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode() if body is not None else b""
    response.headers["Content-Type"] = "application/json"
    response.url = "http://testserver"
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api(session):
    return InfraCityClient(base_url="http://testserver/", session=session)


def sent(session, index=-1):
    return session.request.call_args_list[index].kwargs


def test_login_stores_tokens(api, session):
    session.request.return_value = make_response(
        200,
        {
            "success": True,
            "data": {"access_token": "access-1", "refresh_token": "refresh-1", "user": {"id": 1}},
        },
    )

    user, error = api.login("crew@example.com", "secret")

    assert error is None
    assert user == {"id": 1}
    assert api.access_token == "access-1"
    assert api.refresh_token == "refresh-1"
    assert sent(session)["url"] == "http://testserver/api/auth/login"


def test_bearer_header_and_params(api, session):
    api.access_token = "access-1"
    session.request.return_value = make_response(200, {"success": True, "data": []})

    data, error = api.list_tasks(status="pending")

    assert (data, error) == ([], None)
    call = sent(session)
    assert call["headers"] == {"Authorization": "Bearer access-1"}
    assert call["params"] == {"status": "pending"}
    assert call["timeout"] == 15


def test_error_message_from_envelope(api, session):
    session.request.return_value = make_response(404, {"success": False, "error": "Task not found"})

    data, error = api.update_task_status(9, "completed")

    assert data is None
    assert error == {"status_code": 404, "message": "Task not found"}


def test_refreshes_once_on_401(api, session):
    api.access_token = "expired"
    api.refresh_token = "refresh-1"
    session.request.side_effect = [
        make_response(401, {"success": False, "error": "Invalid or expired token"}),
        make_response(200, {"success": True, "data": {"access_token": "access-2", "refresh_token": "refresh-2"}}),
        make_response(200, {"success": True, "data": {"reports": [], "total": 0}}),
    ]

    data, error = api.list_reports()

    assert error is None
    assert data == {"reports": [], "total": 0}
    assert api.access_token == "access-2"
    assert sent(session, 1)["json"] == {"refresh_token": "refresh-1"}
    assert sent(session, 2)["headers"] == {"Authorization": "Bearer access-2"}


def test_failed_refresh_drops_tokens(api, session):
    api.access_token = "expired"
    api.refresh_token = "stale"
    session.request.side_effect = [
        make_response(401, {"success": False, "error": "Invalid or expired token"}),
        make_response(401, {"success": False, "error": "Invalid refresh token"}),
    ]

    data, error = api.get_heatmap()

    assert data is None
    assert error["status_code"] == 401
    assert api.refresh_token is None
    assert session.request.call_count == 2


def test_network_error(api, session):
    session.request.side_effect = requests.ConnectionError("connection refused")

    data, error = api.list_issues()

    assert data is None
    assert error == {"status_code": None, "message": "connection refused"}


def test_convert_issue_body(api, session):
    session.request.return_value = make_response(201, {"success": True, "data": {"id": 3}})

    api.convert_issue_to_task(5, "Crew B", "2030-01-01T00:00:00", priority="high")

    call = sent(session)
    assert call["url"].endswith("/api/issues/5/convert-to-task")
    assert call["json"] == {"assigned_to": "Crew B", "due_date": "2030-01-01T00:00:00", "priority": "high"}


def test_create_report_body(api, session):
    session.request.return_value = make_response(201, {"success": True, "data": {"id": 1}})

    api.create_report("budget", metrics=["budget"])

    assert sent(session)["json"] == {"type": "budget", "parameters": {"metrics": ["budget"]}}


def test_logout_clears_tokens(api, session):
    api.access_token = "access-1"
    api.refresh_token = "refresh-1"
    session.request.return_value = make_response(200, {"success": True, "data": None})

    api.logout()

    assert api.access_token is None
    assert api.refresh_token is None
