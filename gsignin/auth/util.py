from __future__ import annotations

import base64
import os
import uuid
from urllib.parse import urlsplit

# Fixed namespace for backend user ids derived from provider account ids.
PROVIDER_USER_NAMESPACE = uuid.UUID("5b0e2f7e-6c1d-5d8a-9a51-2f6f0c3b1e47")


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def provider_user_id(provider: str, provider_id: str) -> str:
    """
    Stable identity-backend user id for a provider account.

    The backend only accepts UUIDs as user ids; Google account ids are numeric
    strings, so we map them through UUIDv5.
    """
    return str(uuid.uuid5(PROVIDER_USER_NAMESPACE, f"{provider}:{provider_id}"))


def request_origin(url: str) -> str:
    """`scheme://host[:port]` of a URL, like `window.location.origin`."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"
