"""
Sign-in web app.

Serves the UI shell (home page, login redirect, callback page, logout) and
mounts the exchange endpoint. All clients are built by `create_app()` and
started/closed with the app; nothing is created at import time.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import requests
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from gsignin.api.function import router as function_router
from gsignin.auth.callback import CallbackHandler, ExchangeFunction, ExchangeFunctionClient
from gsignin.auth.config import EXCHANGE_FUNCTION_PATH, AuthConfig, load_auth_config
from gsignin.auth.exchange import GoogleOAuthExchange
from gsignin.auth.google import GoogleOAuthClient, build_authorize_url
from gsignin.auth.session import (
    AuthSession,
    AuthState,
    clear_session_cookie_kwargs,
    session_cookie_kwargs,
    session_cookie_name,
)
from gsignin.auth.state import CookieStateStore, new_state
from gsignin.auth.util import request_origin
from gsignin.errors import ConfigurationError
from gsignin.identity.gotrue import GoTrueAdminClient, IdentityBackend
from gsignin.ui.pages import render_callback, render_home

logger = logging.getLogger(__name__)


def _origin(cfg: AuthConfig, request: Request) -> str:
    return cfg.public_base_url or request_origin(str(request.base_url))


def _state_store(cfg: AuthConfig, request: Request) -> CookieStateStore:
    try:
        return CookieStateStore(cfg, request.cookies)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def _no_store(resp):  # type: ignore[no-untyped-def]
    resp.headers["Cache-Control"] = "no-store"
    return resp


def create_app(
    cfg: Optional[AuthConfig] = None,
    *,
    backend: Optional[IdentityBackend] = None,
    google_http: Optional[requests.Session] = None,
    exchange_function: Optional[ExchangeFunction] = None,
    function_http: Optional[requests.Session] = None,
) -> FastAPI:
    """
    Build the app and its clients.

    Tests pass fakes for `backend`, `google_http`, `exchange_function` and
    `function_http`; in production they are built from `cfg`. Without
    `EXCHANGE_FUNCTION_URL` the callback posts to this app's own exchange
    endpoint on the request origin.
    """
    cfg = cfg or load_auth_config()
    if backend is None:
        backend = GoTrueAdminClient(cfg.supabase_url, cfg.supabase_service_role_key, timeout=cfg.http_timeout_seconds)
    google = GoogleOAuthClient(cfg, http=google_http)
    if exchange_function is None:
        exchange_function = ExchangeFunctionClient(cfg, http=function_http)

    app = FastAPI(title="Google sign-in")
    app.state.cfg = cfg
    app.state.backend = backend
    app.state.google = google
    app.state.exchange = GoogleOAuthExchange(google, backend)
    app.state.exchange_function = exchange_function

    def _exchange_function_for(origin: str) -> ExchangeFunction:
        if isinstance(exchange_function, ExchangeFunctionClient) and not exchange_function.url:
            return ExchangeFunctionClient(cfg, http=exchange_function.http, url=cfg.exchange_url(origin))
        return exchange_function  # type: ignore[return-value]

    @app.on_event("startup")
    def _startup_clients() -> None:
        start = getattr(backend, "start", None)
        if callable(start):
            start()
        logger.info(
            "Sign-in config: google_enabled=%s supabase_url=%s function_url=%s public_base_url=%s",
            cfg.google_enabled,
            cfg.supabase_url,
            cfg.exchange_function_url or f"<origin>{EXCHANGE_FUNCTION_PATH}",
            cfg.public_base_url,
        )

    @app.on_event("shutdown")
    def _shutdown_clients() -> None:
        for client in (backend, google, exchange_function):
            close = getattr(client, "close", None)
            if callable(close):
                try:
                    close()
                except Exception as e:
                    logger.warning("Client close failed: %s", str(e))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Log all incoming HTTP requests."""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    app.include_router(function_router)

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request) -> HTMLResponse:
        session = AuthSession(cfg, request.cookies.get(session_cookie_name(cfg)), backend=backend).start()
        try:
            html = render_home(session.state, session.user, sign_in_enabled=cfg.google_enabled)
        finally:
            session.stop()
        resp = HTMLResponse(html)
        if session.state == AuthState.SIGNED_OUT and request.cookies.get(session_cookie_name(cfg)):
            resp.set_cookie(**clear_session_cookie_kwargs(cfg))
        return _no_store(resp)

    @app.get("/auth/login/google")
    def auth_login_google(request: Request) -> RedirectResponse:
        """Start the Google code flow: remember a fresh state token and redirect to the provider."""
        if not cfg.google_enabled:
            raise HTTPException(status_code=403, detail="Google sign-in is not configured")
        store = _state_store(cfg, request)
        state = new_state(store)
        try:
            url = build_authorize_url(cfg, redirect_uri=cfg.callback_url(_origin(cfg, request)), state=state)
        except ConfigurationError as e:
            raise HTTPException(status_code=500, detail=e.message) from e

        resp = RedirectResponse(url=url, status_code=302)
        store.apply(resp)
        return _no_store(resp)

    @app.get("/auth/callback", response_class=HTMLResponse)
    def auth_callback(request: Request) -> HTMLResponse:
        """Validate the provider redirect, run the exchange and render the status page."""
        store = _state_store(cfg, request)
        origin = _origin(cfg, request)
        handler = CallbackHandler(
            store,
            _exchange_function_for(origin),
            redirect_uri=cfg.callback_url(origin),
        )
        result = handler.handle(request.query_params)

        resp = HTMLResponse(render_callback(result))
        store.apply(resp)
        if result.user is not None:
            session = AuthSession(cfg)
            value = session.sign_in(result.user)
            session.stop()
            if value:
                resp.set_cookie(**session_cookie_kwargs(cfg, value))
        return _no_store(resp)

    @app.post("/auth/logout")
    def auth_logout() -> RedirectResponse:
        resp = RedirectResponse(url="/", status_code=303)
        resp.set_cookie(**clear_session_cookie_kwargs(cfg))
        return _no_store(resp)

    @app.get("/api/auth/me")
    def auth_me(request: Request) -> JSONResponse:
        session = AuthSession(cfg, request.cookies.get(session_cookie_name(cfg))).start()
        user = session.user
        session.stop()
        if user is None:
            return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        return _no_store(
            JSONResponse(
                content={
                    "ok": True,
                    "user": {
                        "id": user.id,
                        "provider": user.provider,
                        "email": user.email,
                        "name": user.name,
                        "picture": user.picture,
                    },
                }
            )
        )

    return app


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting sign-in server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(create_app(), host=host, port=port, log_level=uvicorn_log_level)
