from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

PROVIDER = "google"


class GoogleOAuthRequest(BaseModel):
    """Body of the exchange endpoint. Fields are validated by the handler so a missing one is a 400, not a 422."""

    code: Optional[str] = None
    redirect_uri: Optional[str] = None


class GoogleTokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    id_token: Optional[str] = None


class GoogleUserInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    verified_email: bool = False
    name: str = ""
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture: str = ""
    locale: Optional[str] = None


class BackendUser(BaseModel):
    """User object as returned by the GoTrue admin API (only the fields we read)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    app_metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionUser(BaseModel):
    id: str
    email: Optional[str] = None
    name: str = ""
    picture: str = ""


class ExchangeResult(BaseModel):
    success: bool = True
    user: SessionUser
    session: Dict[str, Any]
    access_token: str


@dataclass(frozen=True)
class AuthUser:
    """Signed-in principal carried in the browser session cookie."""

    id: str
    provider: str = PROVIDER
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
