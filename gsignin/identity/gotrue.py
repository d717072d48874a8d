"""
Supabase Auth (GoTrue) admin client.

Covers the admin endpoints the sign-in flow needs: user lookup, create, update,
and magic-link generation. Authenticates with the service-role key, so it must
only ever run server-side.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import requests
from pydantic import ValidationError

from gsignin.auth.models import BackendUser
from gsignin.errors import ConfigurationError, IdentityBackendError

logger = logging.getLogger(__name__)

# Keys GoTrue returns next to the user object from `generate_link`.
LINK_PROPERTY_KEYS = ("action_link", "email_otp", "hashed_token", "redirect_to", "verification_type")


class IdentityBackend(Protocol):
    """Protocol for the identity backend's admin surface."""

    def get_user_by_id(self, user_id: str) -> Optional[BackendUser]:
        """
        Look up a user by backend id.

        Returns None when the user does not exist; raises IdentityBackendError
        on any other failure.
        """
        ...

    def create_user(
        self,
        *,
        email: str,
        email_confirm: bool,
        user_metadata: Dict[str, Any],
        app_metadata: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> BackendUser:
        ...

    def update_user_by_id(self, user_id: str, *, user_metadata: Dict[str, Any]) -> BackendUser:
        ...

    def generate_link(self, *, email: str, link_type: str = "magiclink") -> Dict[str, Any]:
        """
        Issue a login link for an email.

        Returns `{"properties": {...link fields...}, "user": {...}}`.
        """
        ...


class GoTrueAdminClient:
    """
    GoTrue admin REST client with an explicit lifecycle.

    Usage:
        client = GoTrueAdminClient(url, service_key)
        client.start()
        ...
        client.close()

    or as a context manager.
    """

    def __init__(
        self,
        url: str,
        service_role_key: Optional[str],
        *,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.timeout = timeout
        self._http = http
        self._owns_http = http is None

    # ---- lifecycle ----

    def start(self) -> "GoTrueAdminClient":
        if self._http is None:
            self._http = requests.Session()
            self._owns_http = True
        return self

    def close(self) -> None:
        if self._http is not None and self._owns_http:
            self._http.close()
            self._http = None

    def __enter__(self) -> "GoTrueAdminClient":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def configured(self) -> bool:
        return bool(self.service_role_key)

    # ---- helpers ----

    def _session(self) -> requests.Session:
        if self._http is None:
            raise RuntimeError("GoTrueAdminClient used before start()")
        return self._http

    def _admin_headers(self) -> Dict[str, str]:
        if not self.service_role_key:
            raise ConfigurationError("Supabase service role key not configured")
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, *, what: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            r = self._session().request(method, url, headers=self._admin_headers(), json=json, timeout=self.timeout)
        except requests.RequestException as e:
            raise IdentityBackendError(f"{what} failed", details={"error": str(e)}) from e
        if not r.ok:
            raise IdentityBackendError(
                f"{what} failed",
                upstream_status=r.status_code,
                details={"body": _error_message(r)},
            )
        try:
            data = r.json()
        except ValueError as e:
            raise IdentityBackendError(f"{what} returned invalid JSON", upstream_status=r.status_code) from e
        if not isinstance(data, dict):
            raise IdentityBackendError(f"{what} returned unexpected payload", upstream_status=r.status_code)
        return data

    @staticmethod
    def _user(data: Dict[str, Any], *, what: str) -> BackendUser:
        # Older GoTrue versions wrap the user as {"user": {...}}.
        raw = data.get("user") if isinstance(data.get("user"), dict) else data
        try:
            return BackendUser.model_validate(raw)
        except ValidationError as e:
            raise IdentityBackendError(f"{what} returned an invalid user", details={"error": str(e)}) from e

    # ---- admin API ----

    def get_user_by_id(self, user_id: str) -> Optional[BackendUser]:
        try:
            data = self._request("GET", f"/admin/users/{user_id}", what="User lookup")
        except IdentityBackendError as e:
            if e.upstream_status == 404:
                logger.debug("User %s not found", user_id)
                return None
            raise
        return self._user(data, what="User lookup")

    def create_user(
        self,
        *,
        email: str,
        email_confirm: bool,
        user_metadata: Dict[str, Any],
        app_metadata: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> BackendUser:
        body: Dict[str, Any] = {
            "email": email,
            "email_confirm": email_confirm,
            "user_metadata": user_metadata,
            "app_metadata": app_metadata,
        }
        if user_id:
            body["id"] = user_id
        data = self._request("POST", "/admin/users", what="User create", json=body)
        return self._user(data, what="User create")

    def update_user_by_id(self, user_id: str, *, user_metadata: Dict[str, Any]) -> BackendUser:
        data = self._request(
            "PUT", f"/admin/users/{user_id}", what="User update", json={"user_metadata": user_metadata}
        )
        return self._user(data, what="User update")

    def generate_link(self, *, email: str, link_type: str = "magiclink") -> Dict[str, Any]:
        data = self._request(
            "POST", "/admin/generate_link", what="Link generation", json={"type": link_type, "email": email}
        )
        properties = {k: data.get(k) for k in LINK_PROPERTY_KEYS if k in data}
        user = {k: v for k, v in data.items() if k not in LINK_PROPERTY_KEYS}
        return {"properties": properties, "user": user}


def _error_message(r: requests.Response) -> str:
    """Best-effort upstream error text (GoTrue uses `msg`, `message` or `error_description`)."""
    try:
        data = r.json()
    except ValueError:
        return (r.text or "")[:500]
    if isinstance(data, dict):
        for k in ("msg", "message", "error_description", "error"):
            v = data.get(k)
            if v:
                return str(v)
    return str(data)[:500]


def user_display(user: BackendUser) -> Tuple[str, str]:
    """`(full_name, avatar_url)` from a backend user's metadata (empty strings when absent)."""
    md = user.user_metadata or {}
    return str(md.get("full_name") or md.get("name") or ""), str(md.get("avatar_url") or md.get("picture") or "")
