"""Browser interface for the members portal."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import parse_qs

import anyio
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from .errors import AuthError, ConflictError, Unauthenticated, ValidationError
from .gateway import CredentialGateway
from .models import Identity, Session

logger = logging.getLogger("portal.web")

SESSION_COOKIE_NAME = "portal_session"

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


def template_environment() -> Jinja2Templates:
    return Jinja2Templates(directory=str(TEMPLATE_DIR))


async def _parse_form(request: Request) -> Dict[str, str]:
    """Decode an urlencoded body, keeping only the first value of each field."""

    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "")
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        decoded = body_bytes.decode("utf-8", errors="ignore")
    data = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in data.items() if values}


def register_ui_routes(
    app: FastAPI,
    gateway: CredentialGateway,
    *,
    templates: Jinja2Templates,
    secure_cookies: bool,
) -> None:
    """Expose the signup, login and members pages on the provided FastAPI app."""

    router = APIRouter(include_in_schema=False)
    sessions = gateway.sessions

    def _render(
        request: Request,
        template_name: str,
        *,
        status_code: int = status.HTTP_200_OK,
        **context: object,
    ) -> HTMLResponse:
        return templates.TemplateResponse(
            request, template_name, context, status_code=status_code
        )

    def _render_message(
        request: Request, message: str, *, retry_route: str, status_code: int
    ) -> HTMLResponse:
        return _render(
            request,
            "message.html",
            status_code=status_code,
            message=message,
            retry_url=request.url_for(retry_route),
        )

    def _issue_session_cookie(response: Response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=sessions.cookie_max_age,
            secure=secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _clear_session_cookie(response: Response) -> None:
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")

    def _current_identity(request: Request) -> tuple[Optional[Identity], Optional[str]]:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None, None
        try:
            return gateway.require_session(token), token
        except Unauthenticated:
            return None, token

    def _finish_page(response: Response, identity: Optional[Identity], token: Optional[str]) -> Response:
        if identity is not None and token and sessions.sliding:
            _issue_session_cookie(response, token)
        elif identity is None and token:
            _clear_session_cookie(response)
        return response

    def _signed_in_redirect(request: Request, session: Session) -> RedirectResponse:
        response = RedirectResponse(
            request.url_for("ui_members"), status_code=status.HTTP_303_SEE_OTHER
        )
        _issue_session_cookie(response, session.token)
        return response

    @router.get("/", response_class=HTMLResponse, name="ui_home")
    async def homepage(request: Request):
        identity, token = _current_identity(request)
        response = _render(request, "home.html", identity=identity)
        return _finish_page(response, identity, token)

    @router.get("/signup", response_class=HTMLResponse, name="ui_signup")
    async def signup_form(request: Request):
        return _render(request, "signup.html")

    @router.post("/signupSubmit", name="ui_signup_submit")
    async def signup_submit(request: Request):
        form = await _parse_form(request)
        try:
            session = await anyio.to_thread.run_sync(
                functools.partial(
                    gateway.signup, form, previous_token=request.cookies.get(SESSION_COOKIE_NAME)
                )
            )
        except ValidationError as exc:
            return _render_message(
                request,
                exc.message,
                retry_route="ui_signup",
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        except ConflictError as exc:
            return _render_message(
                request,
                exc.message,
                retry_route="ui_signup",
                status_code=status.HTTP_409_CONFLICT,
            )

        return _signed_in_redirect(request, session)

    @router.get("/login", response_class=HTMLResponse, name="ui_login")
    async def login_form(request: Request):
        return _render(request, "login.html")

    @router.post("/loginSubmit", name="ui_login_submit")
    async def login_submit(request: Request):
        form = await _parse_form(request)
        try:
            session = await anyio.to_thread.run_sync(
                functools.partial(
                    gateway.login, form, previous_token=request.cookies.get(SESSION_COOKIE_NAME)
                )
            )
        except (ValidationError, AuthError) as exc:
            return _render_message(
                request,
                exc.message,
                retry_route="ui_login",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        return _signed_in_redirect(request, session)

    @router.get("/members", response_class=HTMLResponse, name="ui_members")
    async def members(request: Request):
        identity, token = _current_identity(request)
        if identity is None:
            response = RedirectResponse(
                request.url_for("ui_home"), status_code=status.HTTP_303_SEE_OTHER
            )
            return _finish_page(response, None, token)

        response = _render(request, "members.html", identity=identity)
        return _finish_page(response, identity, token)

    @router.get("/logout", name="ui_logout")
    async def logout(request: Request):
        gateway.logout(request.cookies.get(SESSION_COOKIE_NAME))
        response = RedirectResponse(
            request.url_for("ui_home"), status_code=status.HTTP_303_SEE_OTHER
        )
        _clear_session_cookie(response)
        return response

    app.include_router(router)


__all__ = ["SESSION_COOKIE_NAME", "register_ui_routes", "template_environment"]
