"""
Pytest config.

Pins the repo root on sys.path so `import gsignin` works without an install, and
provides the fakes shared by the sign-in tests: canned HTTP responses and an
in-memory identity backend.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from gsignin.auth.config import load_auth_config  # noqa: E402
from gsignin.auth.models import BackendUser  # noqa: E402
from gsignin.errors import IdentityBackendError  # noqa: E402

_ENV_VARS = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_OAUTH_CLIENT_SECRET",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
    "GOOGLE_USERINFO_URI",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_ANON_KEY",
    "EXCHANGE_FUNCTION_URL",
    "AUTH_PUBLIC_BASE_URL",
    "AUTH_SESSION_SECRET",
    "AUTH_SESSION_TTL_SECONDS",
    "AUTH_COOKIE_SECURE",
    "OAUTH_STATE_TTL_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _isolated_auth_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from an empty sign-in environment and a cold config cache."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()


@pytest.fixture
def auth_env(monkeypatch: pytest.MonkeyPatch):
    """A fully configured environment; returns the loaded AuthConfig."""
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("SUPABASE_URL", "http://supabase.test")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setenv("AUTH_SESSION_SECRET", "test-secret-key-for-testing-purposes-only")
    load_auth_config.cache_clear()
    return load_auth_config()


def make_response(status_code: int = 200, payload: Any = None, text: str = "") -> MagicMock:
    """A stand-in for `requests.Response`."""
    r = MagicMock()
    r.status_code = status_code
    r.ok = status_code < 400
    r.text = text
    if isinstance(payload, Exception):
        r.json.side_effect = payload
    else:
        r.json.return_value = payload
    return r


@pytest.fixture
def response():
    return make_response


class FakeBackend:
    """In-memory identity backend that records every call."""

    configured = True

    def __init__(self) -> None:
        self.users: Dict[str, BackendUser] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fail: Dict[str, IdentityBackendError] = {}

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail:
            raise self.fail[op]

    def get_user_by_id(self, user_id: str) -> Optional[BackendUser]:
        self.calls.append(("get_user_by_id", {"user_id": user_id}))
        self._maybe_fail("get_user_by_id")
        return self.users.get(user_id)

    def create_user(self, *, email, email_confirm, user_metadata, app_metadata, user_id=None) -> BackendUser:  # type: ignore[no-untyped-def]
        self.calls.append(
            (
                "create_user",
                {
                    "email": email,
                    "email_confirm": email_confirm,
                    "user_metadata": user_metadata,
                    "app_metadata": app_metadata,
                    "user_id": user_id,
                },
            )
        )
        self._maybe_fail("create_user")
        user = BackendUser(
            id=user_id or f"user-{len(self.users) + 1}",
            email=email,
            user_metadata=dict(user_metadata),
            app_metadata=dict(app_metadata),
        )
        self.users[user.id] = user
        return user

    def update_user_by_id(self, user_id: str, *, user_metadata) -> BackendUser:  # type: ignore[no-untyped-def]
        self.calls.append(("update_user_by_id", {"user_id": user_id, "user_metadata": user_metadata}))
        self._maybe_fail("update_user_by_id")
        current = self.users[user_id]
        updated = current.model_copy(update={"user_metadata": {**current.user_metadata, **user_metadata}})
        self.users[user_id] = updated
        return updated

    def generate_link(self, *, email: str, link_type: str = "magiclink") -> Dict[str, Any]:
        self.calls.append(("generate_link", {"email": email, "link_type": link_type}))
        self._maybe_fail("generate_link")
        return {
            "properties": {"action_link": f"http://supabase.test/auth/v1/verify?token=t&type={link_type}"},
            "user": {"email": email},
        }

    def ops(self) -> List[str]:
        return [op for op, _ in self.calls]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
