from __future__ import annotations

from gsignin.auth.config import load_auth_config


def test_defaults_without_environment() -> None:
    cfg = load_auth_config()
    assert cfg.google_enabled is False
    assert cfg.google_auth_uri == "https://accounts.google.com/o/oauth2/auth"
    assert cfg.google_token_uri == "https://oauth2.googleapis.com/token"
    assert cfg.google_userinfo_uri == "https://www.googleapis.com/oauth2/v2/userinfo"
    assert cfg.supabase_url == "http://127.0.0.1:54321"
    assert cfg.exchange_function_url is None
    assert cfg.exchange_url("http://localhost:8000") == "http://localhost:8000/functions/v1/google-oauth"
    assert cfg.supabase_service_role_key is None
    assert cfg.session_ttl_seconds == 43200
    assert cfg.state_ttl_seconds == 600
    assert cfg.http_timeout_seconds == 10.0
    assert cfg.cookie_secure is False


def test_google_enabled_needs_both_credentials(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "id")
    load_auth_config.cache_clear()
    assert load_auth_config().google_enabled is False

    monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_SECRET", "secret")
    load_auth_config.cache_clear()
    assert load_auth_config().google_enabled is True


def test_overrides_and_blank_values(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_TOKEN_URI", "http://google.test/token")
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co/")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "   ")
    monkeypatch.setenv("EXCHANGE_FUNCTION_URL", "http://localhost:8000/functions/v1/google-oauth")
    load_auth_config.cache_clear()

    cfg = load_auth_config()
    assert cfg.google_token_uri == "http://google.test/token"
    assert cfg.supabase_url == "https://proj.supabase.co"
    assert cfg.supabase_service_role_key is None
    assert cfg.exchange_function_url == "http://localhost:8000/functions/v1/google-oauth"


def test_cookie_secure_follows_public_base_url(monkeypatch) -> None:
    monkeypatch.setenv("AUTH_PUBLIC_BASE_URL", "https://app.example.com/")
    load_auth_config.cache_clear()
    cfg = load_auth_config()
    assert cfg.cookie_secure is True
    assert cfg.public_base_url == "https://app.example.com"
    assert cfg.callback_url() == "https://app.example.com/auth/callback"
    assert cfg.exchange_function_url == "https://app.example.com/functions/v1/google-oauth"
    assert cfg.exchange_url("http://other:9000") == "https://app.example.com/functions/v1/google-oauth"

    monkeypatch.setenv("AUTH_COOKIE_SECURE", "off")
    load_auth_config.cache_clear()
    assert load_auth_config().cookie_secure is False


def test_ttls_are_clamped(monkeypatch) -> None:
    monkeypatch.setenv("AUTH_SESSION_TTL_SECONDS", "5")
    monkeypatch.setenv("OAUTH_STATE_TTL_SECONDS", "1")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "0")
    load_auth_config.cache_clear()
    cfg = load_auth_config()
    assert cfg.session_ttl_seconds == 60
    assert cfg.state_ttl_seconds == 30
    assert cfg.http_timeout_seconds == 1.0


def test_callback_url_prefers_explicit_origin() -> None:
    cfg = load_auth_config()
    assert cfg.callback_url("http://localhost:3000/") == "http://localhost:3000/auth/callback"
