"""Application factory for the members portal."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import HTMLResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import Settings, load_settings
from .database import Database
from .errors import StoreFailure
from .gateway import CredentialGateway
from .passwords import PasswordHasher
from .sessions import SessionManager
from .web import register_ui_routes, template_environment

logger = logging.getLogger("portal.service")


def _trusted_proxy_hosts(settings: Settings) -> list[str] | str:
    raw = settings.trusted_proxies
    if not raw:
        return "127.0.0.1"
    hosts = [item.strip() for item in raw.split(",") if item.strip()]
    return hosts or "127.0.0.1"


def create_app(
    *,
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    session_manager: Optional[SessionManager] = None,
    hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """Instantiate the FastAPI application serving the portal pages."""

    if settings is None:
        settings = load_settings()

    db = database or Database(settings.database_path)
    db.initialize()

    if session_manager is None:
        session_manager = SessionManager(
            ttl=settings.session_ttl,
            sliding=settings.session_sliding,
            store=db if settings.session_store == "database" else None,
        )
    if hasher is None:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    if not settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    gateway = CredentialGateway(db, session_manager, hasher=hasher)
    templates = template_environment()

    app = FastAPI(
        title="Members Portal",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=_trusted_proxy_hosts(settings))
    app.state.settings = settings
    app.state.database = db
    app.state.session_manager = session_manager
    app.state.gateway = gateway

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> Response:
        # A known path with the wrong method is treated like an unknown path.
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return templates.TemplateResponse(
                request, "not_found.html", {}, status_code=status.HTTP_404_NOT_FOUND
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(StoreFailure)
    async def store_failure(request: Request, exc: StoreFailure) -> HTMLResponse:
        logger.error("User store failure while handling %s %s", request.method, request.url.path, exc_info=exc)
        return templates.TemplateResponse(
            request, "error.html", {}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    register_ui_routes(
        app,
        gateway,
        templates=templates,
        secure_cookies=settings.secure_cookies,
    )

    return app


__all__ = ["create_app"]
