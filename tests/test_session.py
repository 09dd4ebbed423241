import json

import pytest
import requests

from conftest import http_error, route
from jobpilot.errors import AuthError
from jobpilot.models import AuthUser
from jobpilot.session import SessionContext, SessionManager

ME = {"id": 7, "email": "ada@example.com", "name": "Ada"}


@pytest.fixture
def manager(context, gateway, session_store):
    return SessionManager(context, gateway, session_store)


def persisted(session_store):
    user = session_store.read("user")
    return session_store.read("token"), json.loads(user) if user else None


# --- SessionContext ---

def test_context_requires_token_and_user():
    context = SessionContext()
    assert not context.is_authenticated

    context.token = "T1"
    assert not context.is_authenticated

    context.install("T1", AuthUser(id=1, email="a@b.c"))
    assert context.is_authenticated
    assert context.user_id == 1

    context.clear()
    assert context.token is None and context.user is None
    assert not context.is_authenticated


# --- login / signup ---

def test_login_resolves_user_from_me_and_persists_pair(manager, gateway, session_store):
    gateway.post.return_value = {"token": "T1"}
    gateway.get.return_value = ME

    user = manager.login("ada@example.com", "pw")

    assert user.id == 7
    gateway.post.assert_called_once_with(
        "/api/auth/login", {"email": "ada@example.com", "password": "pw"}
    )
    gateway.get.assert_called_once_with("/api/auth/me", token="T1")
    assert manager.is_authenticated
    assert manager.token == "T1"
    token, stored_user = persisted(session_store)
    assert token == "T1"
    assert stored_user["id"] == 7
    assert stored_user["email"] == "ada@example.com"
    assert manager.loading is False
    assert manager.error is None


def test_login_uses_user_from_response_without_me_call(manager, gateway, session_store):
    gateway.post.return_value = {"token": "T2", "user": {"id": 9, "email": "b@example.com"}}

    manager.login("b@example.com", "pw")

    gateway.get.assert_not_called()
    assert manager.user.id == 9
    assert persisted(session_store)[0] == "T2"


def test_signup_posts_to_register(manager, gateway):
    gateway.post.return_value = {"token": "T3"}
    gateway.get.return_value = ME

    manager.signup("ada@example.com", "pw", name="Ada")

    gateway.post.assert_called_once_with(
        "/api/auth/register", {"email": "ada@example.com", "password": "pw", "name": "Ada"}
    )
    assert manager.is_authenticated


def test_signup_omits_missing_name(manager, gateway):
    gateway.post.return_value = {"token": "T3"}
    gateway.get.return_value = ME

    manager.signup("ada@example.com", "pw")

    assert "name" not in gateway.post.call_args.args[1]


def test_custom_auth_prefix(context, gateway, session_store):
    manager = SessionManager(context, gateway, session_store, auth_prefix="auth/")
    gateway.post.return_value = {"token": "T1"}
    gateway.get.return_value = ME

    manager.login("ada@example.com", "pw")

    assert gateway.post.call_args.args[0] == "/auth/login"
    assert gateway.get.call_args.args[0] == "/auth/me"


def test_rejected_login_raises_with_server_message(manager, gateway, session_store):
    gateway.post.side_effect = http_error(401, {"message": "Invalid credentials"})

    with pytest.raises(AuthError, match="Invalid credentials"):
        manager.login("ada@example.com", "wrong")

    assert manager.error == "Invalid credentials"
    assert not manager.is_authenticated
    assert persisted(session_store) == (None, None)
    assert manager.loading is False


def test_login_without_server_message_uses_transport_text(manager, gateway):
    gateway.post.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(AuthError, match="connection refused"):
        manager.login("ada@example.com", "pw")

    assert manager.error == "connection refused"


def test_signup_falls_back_to_fixed_message(manager, gateway):
    gateway.post.side_effect = requests.RequestException()

    with pytest.raises(AuthError, match="Sign up failed"):
        manager.signup("ada@example.com", "pw")

    assert manager.error == "Sign up failed"


def test_missing_token_is_auth_error(manager, gateway):
    gateway.post.return_value = {"message": "ok"}

    with pytest.raises(AuthError, match="No token returned from server"):
        manager.login("ada@example.com", "pw")

    gateway.get.assert_not_called()
    assert manager.error == "No token returned from server"


def test_failed_me_after_login_leaves_no_partial_session(manager, gateway, session_store):
    gateway.post.return_value = {"token": "T1"}
    gateway.get.side_effect = http_error(401, {"error": "Token expired"})

    with pytest.raises(AuthError, match="Token expired"):
        manager.login("ada@example.com", "pw")

    assert manager.token is None
    assert manager.user is None
    assert persisted(session_store) == (None, None)


def test_malformed_profile_is_auth_error(manager, gateway):
    gateway.post.return_value = {"token": "T1"}
    gateway.get.return_value = {"email": "no-id@example.com"}

    with pytest.raises(AuthError, match="Login failed"):
        manager.login("ada@example.com", "pw")

    assert not manager.is_authenticated


def test_error_cleared_on_next_attempt(manager, gateway):
    gateway.post.side_effect = [http_error(401, "Bad password"), {"token": "T1"}]
    gateway.get.return_value = ME

    with pytest.raises(AuthError):
        manager.login("ada@example.com", "pw")
    assert manager.error == "Bad password"

    manager.login("ada@example.com", "pw")
    assert manager.error is None


# --- logout ---

def test_logout_clears_memory_and_disk(manager, gateway, session_store):
    gateway.post.return_value = {"token": "T1"}
    gateway.get.return_value = ME
    manager.login("ada@example.com", "pw")

    manager.logout()

    assert not manager.is_authenticated
    assert manager.token is None and manager.user is None
    assert persisted(session_store) == (None, None)


def test_logout_when_logged_out_is_harmless(manager):
    manager.logout()
    assert not manager.is_authenticated


# --- restore ---

def test_restore_without_token_is_noop(manager, gateway):
    assert manager.restore() is False
    gateway.get.assert_not_called()
    assert not manager.is_authenticated


def test_restore_trusts_cached_user(manager, gateway, session_store, user):
    session_store.save("T1", user)

    assert manager.restore() is True

    gateway.get.assert_not_called()
    assert manager.token == "T1"
    assert manager.user == user
    assert manager.is_authenticated


def test_restore_fetches_user_when_not_cached(manager, gateway, session_store, user):
    session_store.save("T1", user)
    with session_store.get_connection() as conn:
        conn.execute("DELETE FROM session_state WHERE key = 'user'")

    gateway.get.side_effect = route({"/api/auth/me": ME})

    assert manager.restore() is True

    gateway.get.assert_called_once_with("/api/auth/me", token="T1")
    assert manager.user.id == 7
    assert persisted(session_store)[1]["id"] == 7


def test_restore_with_rejected_token_logs_out(manager, gateway, session_store, user):
    session_store.save("T1", user)
    with session_store.get_connection() as conn:
        conn.execute("DELETE FROM session_state WHERE key = 'user'")
    gateway.get.side_effect = http_error(401, {"message": "jwt expired"})

    assert manager.restore() is False

    assert manager.token is None
    assert manager.user is None
    assert not manager.is_authenticated
    assert persisted(session_store) == (None, None)
    assert manager.error is None


def test_restore_with_unreadable_cached_user_revalidates(manager, gateway, session_store, user):
    session_store.save("T1", user)
    with session_store.get_connection() as conn:
        conn.execute("UPDATE session_state SET value = 'not json' WHERE key = 'user'")
    gateway.get.return_value = ME

    assert manager.restore() is True
    gateway.get.assert_called_once()
