from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DEFAULT_GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
DEFAULT_GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_GOOGLE_USERINFO_URI = "https://www.googleapis.com/oauth2/v2/userinfo"
DEFAULT_SUPABASE_URL = "http://127.0.0.1:54321"
EXCHANGE_FUNCTION_PATH = "/functions/v1/google-oauth"
CALLBACK_PATH = "/auth/callback"


@dataclass(frozen=True)
class AuthConfig:
    # Google OAuth client
    google_client_id: Optional[str]
    google_client_secret: Optional[str]
    google_auth_uri: str
    google_token_uri: str
    google_userinfo_uri: str

    # Identity backend (Supabase Auth)
    supabase_url: str
    supabase_service_role_key: Optional[str]
    supabase_anon_key: Optional[str]
    exchange_function_url: Optional[str]  # None: the app's own endpoint on the request origin

    # Browser-facing app
    public_base_url: Optional[str]  # Origin the provider redirects back to
    session_secret: Optional[str]  # Required for session + state cookie signing
    session_ttl_seconds: int
    state_ttl_seconds: int
    cookie_secure: bool

    http_timeout_seconds: float

    @property
    def google_enabled(self) -> bool:
        """Google sign-in can start once both client credentials are set."""
        return bool(self.google_client_id and self.google_client_secret)

    def callback_url(self, origin: Optional[str] = None) -> str:
        base = (origin or self.public_base_url or "").strip().rstrip("/")
        return f"{base}{CALLBACK_PATH}"

    def exchange_url(self, origin: Optional[str] = None) -> str:
        if self.exchange_function_url:
            return self.exchange_function_url
        base = (origin or self.public_base_url or "").strip().rstrip("/")
        return f"{base}{EXCHANGE_FUNCTION_PATH}"


def _env(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _env_int(name: str, default: int, minimum: int) -> int:
    raw = (os.getenv(name, "") or "").strip() or str(default)
    value = int(float(raw))
    return value if value >= minimum else minimum


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load sign-in configuration from environment variables.

    Google credentials and the service-role key are optional at load time; the
    exchange endpoint reports them as missing (500) when a request needs them.
    """
    public_base_url = _env("AUTH_PUBLIC_BASE_URL")
    cookie_secure_env = (os.getenv("AUTH_COOKIE_SECURE", "") or "").strip().lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        # Default: secure cookies when base URL is https; otherwise allow local dev.
        cookie_secure = True if (public_base_url or "").startswith("https://") else False

    supabase_url = (_env("SUPABASE_URL") or DEFAULT_SUPABASE_URL).rstrip("/")
    # Unset: the UI posts to this app's own exchange endpoint.
    exchange_default = f"{public_base_url.rstrip('/')}{EXCHANGE_FUNCTION_PATH}" if public_base_url else None
    timeout_raw = (os.getenv("HTTP_TIMEOUT_SECONDS", "") or "").strip() or "10"

    return AuthConfig(
        google_client_id=_env("GOOGLE_CLIENT_ID"),
        google_client_secret=_env("GOOGLE_OAUTH_CLIENT_SECRET"),
        google_auth_uri=_env("GOOGLE_AUTH_URI") or DEFAULT_GOOGLE_AUTH_URI,
        google_token_uri=_env("GOOGLE_TOKEN_URI") or DEFAULT_GOOGLE_TOKEN_URI,
        google_userinfo_uri=_env("GOOGLE_USERINFO_URI") or DEFAULT_GOOGLE_USERINFO_URI,
        supabase_url=supabase_url,
        supabase_service_role_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
        supabase_anon_key=_env("SUPABASE_ANON_KEY"),
        exchange_function_url=_env("EXCHANGE_FUNCTION_URL") or exchange_default,
        public_base_url=public_base_url.rstrip("/") if public_base_url else None,
        session_secret=_env("AUTH_SESSION_SECRET"),
        session_ttl_seconds=_env_int("AUTH_SESSION_TTL_SECONDS", 43200, 60),  # 12h default
        state_ttl_seconds=_env_int("OAUTH_STATE_TTL_SECONDS", 600, 30),
        cookie_secure=cookie_secure,
        http_timeout_seconds=max(float(timeout_raw), 1.0),
    )
