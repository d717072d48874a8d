"""
Browser-side half of the code flow: validate the provider redirect and hand the
code to the exchange function.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol

import requests

from gsignin.auth.config import AuthConfig
from gsignin.auth.models import PROVIDER, AuthUser
from gsignin.auth.state import StateStore, consume_state

logger = logging.getLogger(__name__)

REDIRECT_DELAY_SECONDS = 2
SUCCESS_PATH = "/"


class ExchangeInvokeError(Exception):
    """The exchange function could not be reached or answered with an error."""


class ExchangeFunction(Protocol):
    def invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST `body` to the exchange function and return its JSON payload."""
        ...


class ExchangeFunctionClient:
    """Calls the deployed exchange function over HTTP, authenticating with the public anon key."""

    def __init__(self, cfg: AuthConfig, http: Optional[requests.Session] = None, *, url: Optional[str] = None):
        self.url = url or cfg.exchange_function_url
        self.anon_key = cfg.supabase_anon_key
        self.timeout = cfg.http_timeout_seconds
        self.http = http if http is not None else requests.Session()

    def close(self) -> None:
        self.http.close()

    def invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.url:
            raise ExchangeInvokeError("Exchange function URL not configured")
        headers = {"Content-Type": "application/json"}
        if self.anon_key:
            headers["apikey"] = self.anon_key
            headers["Authorization"] = f"Bearer {self.anon_key}"
        try:
            r = self.http.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExchangeInvokeError(f"Failed to send a request to the exchange function: {e}") from e

        try:
            data = r.json()
        except ValueError:
            data = None
        if not r.ok:
            message = data.get("error") if isinstance(data, dict) else None
            raise ExchangeInvokeError(str(message or f"Exchange function returned status {r.status_code}"))
        if not isinstance(data, dict):
            raise ExchangeInvokeError("Exchange function returned an invalid response")
        return data


class CallbackStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CallbackResult:
    status: CallbackStatus
    message: str = ""
    user: Optional[AuthUser] = None
    redirect_to: Optional[str] = None
    redirect_after_seconds: int = 0
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.status in (CallbackStatus.SUCCESS, CallbackStatus.ERROR)


def _error(message: str) -> CallbackResult:
    return CallbackResult(status=CallbackStatus.ERROR, message=message)


class CallbackHandler:
    def __init__(self, store: StateStore, exchange: ExchangeFunction, *, redirect_uri: str):
        self.store = store
        self.exchange = exchange
        self.redirect_uri = redirect_uri
        self.status = CallbackStatus.IDLE

    def handle(self, params: Mapping[str, str]) -> CallbackResult:
        self.status = CallbackStatus.LOADING
        try:
            result = self._handle(params)
        except Exception as e:
            logger.exception("OAuth callback error: %s", str(e))
            result = _error(f"Error: {e}")
        self.status = result.status
        return result

    def _handle(self, params: Mapping[str, str]) -> CallbackResult:
        code = params.get("code")
        state = params.get("state")
        provider_error = params.get("error")

        if provider_error:
            return _error(f"OAuth error: {provider_error}")
        if not code:
            return _error("No authorization code received")
        if not consume_state(self.store, state):
            logger.warning("OAuth callback rejected: state mismatch")
            return _error("Invalid state parameter")

        try:
            data = self.exchange.invoke({"code": code, "redirect_uri": self.redirect_uri})
        except ExchangeInvokeError as e:
            return _error(f"Authentication failed: {e}")

        if not data.get("success"):
            return _error("Authentication failed")
        user = _user_from_payload(data.get("user"))
        if user is None:
            logger.warning("Exchange function reported success without a user id")
            return _error("Authentication failed")

        return CallbackResult(
            status=CallbackStatus.SUCCESS,
            message="Authentication successful! Redirecting...",
            user=user,
            redirect_to=SUCCESS_PATH,
            redirect_after_seconds=REDIRECT_DELAY_SECONDS,
            payload=data,
        )


def _user_from_payload(raw: Any) -> Optional[AuthUser]:
    if not isinstance(raw, dict) or not raw.get("id"):
        return None
    return AuthUser(
        id=str(raw["id"]),
        provider=PROVIDER,
        email=str(raw["email"]) if raw.get("email") else None,
        name=str(raw["name"]) if raw.get("name") else None,
        picture=str(raw["picture"]) if raw.get("picture") else None,
    )
