from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from gsignin.auth.config import AuthConfig
from gsignin.auth.models import GoogleTokenResponse, GoogleUserInfo
from gsignin.errors import ConfigurationError, TokenExchangeError, UserInfoError

logger = logging.getLogger(__name__)

SCOPES = "openid email profile"


def build_authorize_url(cfg: AuthConfig, *, redirect_uri: str, state: str) -> str:
    """
    Build the Google authorization URL for the code flow.
    """
    if not cfg.google_client_id:
        raise ConfigurationError("Google OAuth client ID not configured")

    params = {
        "client_id": cfg.google_client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": SCOPES,
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{cfg.google_auth_uri}?{urlencode(params)}"


class GoogleOAuthClient:
    """
    Token endpoint + user-info calls against Google.

    The HTTP session is owned by whoever constructs the client; pass one in to
    share connection pools (or a mock in tests).
    """

    def __init__(self, cfg: AuthConfig, http: Optional[requests.Session] = None):
        self.cfg = cfg
        self.http = http if http is not None else requests.Session()

    def close(self) -> None:
        self.http.close()

    def exchange_code_for_token(self, *, code: str, redirect_uri: str) -> GoogleTokenResponse:
        """
        Exchange an authorization code for tokens using the server-held client credentials.
        """
        if not self.cfg.google_enabled:
            raise ConfigurationError("Google OAuth credentials not configured")

        payload = {
            "client_id": self.cfg.google_client_id,
            "client_secret": self.cfg.google_client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }
        r = self.http.post(
            self.cfg.google_token_uri,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.cfg.http_timeout_seconds,
        )
        if not r.ok:
            # Upstream body is logged, never returned to the caller.
            logger.error("Token exchange failed: status=%s body=%s", r.status_code, r.text)
            raise TokenExchangeError(
                "Failed to exchange authorization code for token", {"status": r.status_code}
            )
        try:
            return GoogleTokenResponse.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            logger.error("Token exchange returned an unreadable body: %s", str(e))
            raise TokenExchangeError("Failed to exchange authorization code for token") from e

    def fetch_userinfo(self, access_token: str) -> GoogleUserInfo:
        r = self.http.get(
            self.cfg.google_userinfo_uri,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=self.cfg.http_timeout_seconds,
        )
        if not r.ok:
            logger.error("User info fetch failed: status=%s body=%s", r.status_code, r.text)
            raise UserInfoError("Failed to fetch user information from Google", {"status": r.status_code})
        try:
            return GoogleUserInfo.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            logger.error("User info returned an unreadable body: %s", str(e))
            raise UserInfoError("Failed to fetch user information from Google") from e
