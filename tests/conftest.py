import json
from unittest.mock import MagicMock

import pytest
import requests

from jobpilot.models import AuthUser
from jobpilot.session import SessionContext
from jobpilot.session_store import SessionStore
from jobpilot.store import ApplicationStore


def make_response(status_code=200, json_data=None, text_data=None):
    """Builds a real requests.Response with the given status and body."""
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    if json_data is not None:
        response._content = json.dumps(json_data).encode("utf-8")
    elif text_data is not None:
        response._content = text_data.encode("utf-8")
    else:
        response._content = b""
    return response


def http_error(status_code=500, json_data=None, text_data=None):
    """An HTTPError as raise_for_status would produce it."""
    response = make_response(status_code, json_data, text_data)
    return requests.HTTPError(f"{status_code} Server Error", response=response)


def route(table):
    """side_effect that answers gateway calls from a {path: result} table.

    Exceptions in the table are raised instead of returned.
    """
    def handler(path, *args, **kwargs):
        result = table[path]
        if isinstance(result, BaseException):
            raise result
        return result
    return handler


@pytest.fixture
def context():
    return SessionContext()


@pytest.fixture
def user():
    return AuthUser(id=7, email="ada@example.com", name="Ada")


@pytest.fixture
def logged_in(context, user):
    context.install("T1", user)
    return context


@pytest.fixture
def gateway():
    return MagicMock()


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(tmp_path / "session.sqlite")


@pytest.fixture
def store(gateway, logged_in):
    return ApplicationStore(gateway, logged_in)


def job(app_id, owner_id=7, **fields):
    record = {
        "id": app_id,
        "title": fields.pop("title", f"Engineer {app_id}"),
        "company": fields.pop("company", f"Company {app_id}"),
        "dateApplied": "2024-05-01",
        "status": "Applied",
        "notes": "",
        "owner": {"id": owner_id},
    }
    record.update(fields)
    return record
