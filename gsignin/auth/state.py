"""
Short-lived key/value storage for the OAuth anti-forgery token.

The browser keeps the token between the login redirect and the callback. The
callback handler only sees the `StateStore` protocol, so it can run against an
in-memory store in tests and against a signed cookie in the web app.
"""

from __future__ import annotations

import threading
import time
from typing import Dict, List, Optional, Protocol, Tuple

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from gsignin.auth.config import AuthConfig
from gsignin.auth.util import random_token

STATE_KEY = "oauth_state"
STATE_COOKIE_PREFIX = "gsignin_"
STATE_COOKIE_PATH = "/auth"
STATE_SALT = "gsignin-oauth-state-v1"


class StateStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def new_state(store: StateStore) -> str:
    """Generate a fresh anti-forgery token and remember it for the callback."""
    state = random_token(32)
    store.set(STATE_KEY, state)
    return state


def consume_state(store: StateStore, returned: Optional[str]) -> bool:
    """
    Check the returned state against the stored token.

    The stored token is deleted whether or not it matches (one-time use).
    """
    stored = store.get(STATE_KEY)
    store.delete(STATE_KEY)
    if not stored or returned is None:
        return False
    return stored == returned


class MemoryStateStore:
    """Process-local store with a per-entry TTL."""

    def __init__(self, ttl_seconds: int = 600):
        self._ttl = ttl_seconds
        self._items: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, value = item
            if time.time() >= expires_at:
                del self._items[key]
                return None
            return value

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = (time.time() + self._ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class CookieStateStore:
    """
    Signed-cookie store bound to one request/response pair.

    Reads come from the incoming request cookies; writes are queued and applied
    to the outgoing response with `apply()`.
    """

    def __init__(self, cfg: AuthConfig, cookies: Dict[str, str]):
        if not cfg.session_secret:
            raise ValueError("AUTH_SESSION_SECRET is required to sign OAuth state")
        self._cfg = cfg
        self._serializer = URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=STATE_SALT)
        self._cookies = dict(cookies)
        self._pending: List[dict] = []

    def _cookie_name(self, key: str) -> str:
        return f"{STATE_COOKIE_PREFIX}{key}"

    def get(self, key: str) -> Optional[str]:
        raw = self._cookies.get(self._cookie_name(key))
        if not raw:
            return None
        try:
            value = self._serializer.loads(raw, max_age=self._cfg.state_ttl_seconds)
        except (BadSignature, BadTimeSignature):
            return None
        return str(value) if value else None

    def set(self, key: str, value: str) -> None:
        name = self._cookie_name(key)
        signed = self._serializer.dumps(value)
        self._cookies[name] = signed
        self._pending.append(self._cookie_kwargs(name, signed, self._cfg.state_ttl_seconds))

    def delete(self, key: str) -> None:
        name = self._cookie_name(key)
        self._cookies.pop(name, None)
        self._pending.append(self._cookie_kwargs(name, "", 0))

    def _cookie_kwargs(self, name: str, value: str, max_age: int) -> dict:
        return {
            "key": name,
            "value": value,
            "max_age": max_age,
            "httponly": True,
            "secure": self._cfg.cookie_secure,
            "samesite": "lax",
            "path": STATE_COOKIE_PATH,
        }

    def apply(self, response) -> None:  # type: ignore[no-untyped-def]
        for kwargs in self._pending:
            response.set_cookie(**kwargs)
        self._pending.clear()
