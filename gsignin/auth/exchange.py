"""
Authorization-code exchange pipeline.

Five sequential stages, each with one failure exit and no retries:

1. code -> access token (Google token endpoint)
2. access token -> user info (Google user-info endpoint)
3. upsert the identity-backend user (create, or update metadata if present)
4. issue a magic-link session for the email
5. assemble the response

Nothing is rolled back: a user created in stage 3 stays created if stage 4 fails.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from gsignin.auth.google import GoogleOAuthClient
from gsignin.auth.models import PROVIDER, BackendUser, ExchangeResult, GoogleUserInfo, SessionUser
from gsignin.auth.util import provider_user_id
from gsignin.errors import ConfigurationError, IdentityBackendError, InvalidRequestError
from gsignin.identity.gotrue import IdentityBackend

logger = logging.getLogger(__name__)


def _user_metadata(info: GoogleUserInfo) -> Dict[str, Any]:
    return {
        "full_name": info.name,
        "avatar_url": info.picture,
        "provider": PROVIDER,
        "provider_id": info.id,
    }


def _app_metadata() -> Dict[str, Any]:
    return {"provider": PROVIDER, "providers": [PROVIDER]}


class GoogleOAuthExchange:
    def __init__(self, google: GoogleOAuthClient, backend: IdentityBackend):
        self.google = google
        self.backend = backend

    def run(self, *, code: str | None, redirect_uri: str | None) -> ExchangeResult:
        code = (code or "").strip()
        redirect_uri = (redirect_uri or "").strip()
        if not code or not redirect_uri:
            raise InvalidRequestError("Missing required parameters: code and redirect_uri")
        if not self.google.cfg.google_enabled:
            raise ConfigurationError("Google OAuth credentials not configured")

        token = self.google.exchange_code_for_token(code=code, redirect_uri=redirect_uri)
        info = self.google.fetch_userinfo(token.access_token)
        logger.info("Google user resolved: provider_id=%s email=%s", info.id, info.email)

        if not getattr(self.backend, "configured", True):
            raise ConfigurationError("Supabase service role key not configured")

        user = self.upsert_user(info)
        session = self.issue_session(info.email)

        return ExchangeResult(
            user=SessionUser(id=user.id, email=user.email, name=info.name, picture=info.picture),
            session=session,
            access_token=token.access_token,
        )

    def upsert_user(self, info: GoogleUserInfo) -> BackendUser:
        """
        Create the backend user for a Google account, or refresh its profile fields.

        Updating with the same user info twice leaves the record unchanged.
        """
        user_id = provider_user_id(PROVIDER, info.id)
        try:
            existing = self.backend.get_user_by_id(user_id)
        except IdentityBackendError as e:
            # A failed lookup falls through to create; the backend rejects true duplicates.
            logger.warning("User lookup failed, creating instead: %s", str(e))
            existing = None

        if existing is None:
            try:
                user = self.backend.create_user(
                    email=info.email,
                    email_confirm=True,  # Google has already verified the address
                    user_metadata=_user_metadata(info),
                    app_metadata=_app_metadata(),
                    user_id=user_id,
                )
            except IdentityBackendError as e:
                logger.error("Error creating user: %s", str(e))
                raise IdentityBackendError("Failed to create user account", details=e.details) from e
            logger.info("Created user %s for provider_id=%s", user.id, info.id)
            return user

        try:
            user = self.backend.update_user_by_id(existing.id, user_metadata=_user_metadata(info))
        except IdentityBackendError as e:
            logger.error("Error updating user: %s", str(e))
            raise IdentityBackendError("Failed to update user account", details=e.details) from e
        logger.info("Updated user %s for provider_id=%s", user.id, info.id)
        return user

    def issue_session(self, email: str) -> Dict[str, Any]:
        try:
            return self.backend.generate_link(email=email, link_type="magiclink")
        except IdentityBackendError as e:
            logger.error("Error generating session: %s", str(e))
            raise IdentityBackendError("Failed to create user session", details=e.details) from e
