from __future__ import annotations

import json
import logging
from dataclasses import asdict
from enum import Enum
from typing import Callable, List, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from gsignin.auth.config import AuthConfig
from gsignin.auth.models import PROVIDER, AuthUser
from gsignin.errors import SignInError
from gsignin.identity.gotrue import IdentityBackend, user_display

logger = logging.getLogger(__name__)

SESSION_SALT = "gsignin-session-v1"


def session_cookie_name(cfg: AuthConfig) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers may reject it on HTTP.
    return "__Host-gsignin_session" if cfg.cookie_secure else "gsignin_session"


def _serializer(cfg: AuthConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session(cfg: AuthConfig, user: AuthUser) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    # Keep cookie small and non-sensitive (no access tokens).
    raw = json.dumps(asdict(user), separators=(",", ":"), sort_keys=True)
    return s.dumps(raw)


def decode_session(cfg: AuthConfig, value: str | None) -> Optional[AuthUser]:
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        raw = s.loads(value, max_age=cfg.session_ttl_seconds)
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        user_id = str(data.get("id") or "").strip()
        if not user_id:
            return None
        email = data.get("email")
        name = data.get("name")
        picture = data.get("picture")
        return AuthUser(
            id=user_id,
            provider=str(data.get("provider") or "").strip() or PROVIDER,
            email=str(email) if email else None,
            name=str(name) if name else None,
            picture=str(picture) if picture else None,
        )
    except (BadSignature, BadTimeSignature, ValueError):
        return None


def clear_session_cookie_kwargs(cfg: AuthConfig) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def session_cookie_kwargs(cfg: AuthConfig, value: str) -> dict:
    return {
        "key": session_cookie_name(cfg),
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


class AuthState(str, Enum):
    LOADING = "loading"
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


Listener = Callable[[AuthState, Optional[AuthUser]], None]


class AuthSession:
    """
    Auth state for one page view.

    Starts in LOADING; `start()` reads the signed cookie and, when a backend is
    given, reconciles the user against it (a user deleted from the backend is
    signed out, profile fields are refreshed). Listeners are released by `stop()`.
    """

    def __init__(self, cfg: AuthConfig, cookie_value: Optional[str] = None, backend: Optional[IdentityBackend] = None):
        self.cfg = cfg
        self.backend = backend
        self._cookie_value = cookie_value
        self.state = AuthState.LOADING
        self.user: Optional[AuthUser] = None
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, state: AuthState, user: Optional[AuthUser]) -> None:
        self.state = state
        self.user = user
        for listener in list(self._listeners):
            listener(state, user)

    def start(self) -> "AuthSession":
        user = decode_session(self.cfg, self._cookie_value)
        if user is not None and self.backend is not None:
            user = self._reconcile(user)
        if user is None:
            self._set(AuthState.SIGNED_OUT, None)
        else:
            self._set(AuthState.SIGNED_IN, user)
        return self

    def _reconcile(self, user: AuthUser) -> Optional[AuthUser]:
        try:
            current = self.backend.get_user_by_id(user.id)  # type: ignore[union-attr]
        except SignInError as e:
            # Backend unavailable: trust the signed cookie for this page view.
            logger.warning("Session reconcile failed for %s: %s", user.id, str(e))
            return user
        if current is None:
            logger.info("Session user %s no longer exists; signing out", user.id)
            return None
        name, picture = user_display(current)
        return AuthUser(
            id=current.id,
            provider=user.provider,
            email=current.email or user.email,
            name=name or user.name,
            picture=picture or user.picture,
        )

    def sign_in(self, user: AuthUser) -> Optional[str]:
        """Mark the page signed in and return the cookie value to persist."""
        self._set(AuthState.SIGNED_IN, user)
        return encode_session(self.cfg, user)

    def sign_out(self) -> None:
        self._set(AuthState.SIGNED_OUT, None)

    def stop(self) -> None:
        self._listeners.clear()
