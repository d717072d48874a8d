"""
Google OAuth exchange endpoint.

POST {code, redirect_uri} -> {success, user, session, access_token}, or {error}
with 400 (caller problem) / 500 (server problem). Every response carries
permissive CORS headers so a browser on another origin can read it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from gsignin.auth.config import EXCHANGE_FUNCTION_PATH
from gsignin.auth.exchange import GoogleOAuthExchange
from gsignin.auth.models import GoogleOAuthRequest
from gsignin.errors import SignInError

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS, PUT, DELETE",
}

router = APIRouter()


def _json(content: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=dict(CORS_HEADERS))


def _parse_body(raw: bytes) -> GoogleOAuthRequest:
    data = json.loads(raw or b"null")
    if not isinstance(data, dict):
        return GoogleOAuthRequest()
    try:
        return GoogleOAuthRequest.model_validate(data)
    except ValidationError:
        # Non-string fields are treated like missing ones.
        return GoogleOAuthRequest()


@router.api_route(EXCHANGE_FUNCTION_PATH, methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
async def google_oauth(request: Request) -> Response:
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=dict(PREFLIGHT_HEADERS))

    try:
        if request.method != "POST":
            return _json({"error": "Method not allowed"}, status_code=405)

        body = _parse_body(await request.body())
        exchange: GoogleOAuthExchange = request.app.state.exchange
        result = await run_in_threadpool(exchange.run, code=body.code, redirect_uri=body.redirect_uri)
        return _json(result.model_dump())
    except SignInError as e:
        if e.status_code >= 500:
            logger.error("OAuth exchange failed: %s", str(e))
        else:
            logger.info("OAuth exchange rejected: %s", str(e))
        return _json({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        logger.exception("OAuth error: %s", str(e))
        return _json({"error": "Internal server error"}, status_code=500)
