"""Request-time route protection.

One middleware, one strategy chosen at construction:

- FormatOnlyStrategy checks the session cookie's shape and leaves resolution
  to the route dependencies, which answer 401 when the session is unknown.
- FullResolutionStrategy resolves the session against the store and puts the
  identity on request.state.session for the handlers.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol
from urllib.parse import urlencode, urljoin, urlsplit

import structlog
from fastapi import Request
from fastapi.responses import RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from dndtracker.config import Config
from dndtracker.core.modules.redirect.validator import get_origin
from dndtracker.core.modules.session.models import SessionData
from dndtracker.core.modules.session.utils import extract_session_id, is_valid_session_id
from dndtracker.web.error_handlers import create_unauthenticated_response

logger = structlog.get_logger(__name__)

DEFAULT_PUBLIC_ROUTES = (
    "/api/auth/signin",
    "/api/auth/signup",
    "/api/auth/signout",
    "/api/auth/forgot-password",
    "/api/auth/reset-password",
    "/api/auth/verify-email",
    "/signin",
    "/signup",
    "/forgot-password",
    "/reset-password",
    "/verify-email",
    "/error",
    "/health",
)
DEFAULT_PROTECTED_ROUTES = ("/dashboard", "/characters", "/parties", "/encounters", "/combat", "/settings")
DEFAULT_API_ROUTES = ("/api/users", "/api/characters", "/api/encounters", "/api/parties", "/api/combat")

SessionResolver = Callable[[str], Awaitable[SessionData | None]]


class RouteKind(StrEnum):
    PUBLIC = "public"
    PAGE = "page"
    API = "api"


@dataclass(frozen=True)
class GateConfig:
    public_routes: tuple[str, ...] = DEFAULT_PUBLIC_ROUTES
    protected_routes: tuple[str, ...] = DEFAULT_PROTECTED_ROUTES
    api_routes: tuple[str, ...] = DEFAULT_API_ROUTES
    trusted_origins: tuple[str, ...] = ()
    sign_in_path: str = "/signin"
    production: bool = False

    @classmethod
    def from_config(cls, config: Config) -> "GateConfig":
        return cls(trusted_origins=tuple(config.trusted_origins), production=config.production)

    def classify(self, path: str) -> RouteKind:
        """Prefix match; public routes win, unlisted paths are public."""
        if any(path.startswith(route) for route in self.public_routes):
            return RouteKind.PUBLIC
        if any(path.startswith(route) for route in self.api_routes):
            return RouteKind.API
        if any(path.startswith(route) for route in self.protected_routes):
            return RouteKind.PAGE
        return RouteKind.PUBLIC


def is_valid_origin(request_url: str, trusted_origins: tuple[str, ...]) -> bool:
    """Match host[:port] of the request exactly or as a subdomain of a trusted entry."""
    try:
        parts = urlsplit(request_url)
        port = parts.port
    except ValueError:
        return False
    if not parts.hostname:
        return False
    origin = parts.hostname + (f":{port}" if port else "")
    return any(origin == trusted or origin.endswith(f".{trusted}") for trusted in trusted_origins)


class GateStrategy(Protocol):
    async def authorize(self, request: Request, session_id: str) -> bool:
        """Decide on a request whose session id already has a valid format."""
        ...


class FormatOnlyStrategy:
    async def authorize(self, request: Request, session_id: str) -> bool:
        return True


class FullResolutionStrategy:
    def __init__(self, resolve_session: SessionResolver) -> None:
        self._resolve_session = resolve_session

    async def authorize(self, request: Request, session_id: str) -> bool:
        session = await self._resolve_session(session_id)
        if session is None:
            return False
        request.state.session = session
        return True


class SessionGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, gate_config: GateConfig, strategy: GateStrategy) -> None:
        super().__init__(app)
        self.gate_config = gate_config
        self.strategy = strategy

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        kind = self.gate_config.classify(path)
        if kind is RouteKind.PUBLIC:
            return await call_next(request)

        try:
            if self.gate_config.production and not is_valid_origin(str(request.url), self.gate_config.trusted_origins):
                logger.warning("gate_untrusted_origin", path=path, url=str(request.url))
                return self.unauthenticated(request, kind)

            session_id = extract_session_id(request.headers.get("cookie"))
            if session_id is None or not is_valid_session_id(session_id):
                logger.debug("gate_no_valid_session", path=path)
                return self.unauthenticated(request, kind)

            if not await self.strategy.authorize(request, session_id):
                logger.debug("gate_session_rejected", path=path)
                return self.unauthenticated(request, kind)
        except Exception:
            logger.exception("gate_error", path=path)
            return self.unauthenticated(request, kind)

        return await call_next(request)

    def unauthenticated(self, request: Request, kind: RouteKind) -> Response:
        if kind is RouteKind.API:
            return create_unauthenticated_response()

        current_url = str(request.url)
        sign_in_url = urljoin(current_url, self.gate_config.sign_in_path)
        # callbackUrl only when the sign-in page is on the request origin
        if get_origin(current_url) is not None and get_origin(current_url) == get_origin(sign_in_url):
            sign_in_url = f"{sign_in_url}?{urlencode({'callbackUrl': current_url})}"
        return RedirectResponse(sign_in_url)


def build_strategy(config: Config, resolve_session: SessionResolver) -> GateStrategy:
    if config.session_gate_strategy == "format":
        return FormatOnlyStrategy()
    return FullResolutionStrategy(resolve_session)
