from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie

from dndtracker.app import App
from dndtracker.core.modules.session.models import SessionData
from dndtracker.core.modules.session.utils import SESSION_COOKIE_NAME
from dndtracker.errors import SessionRequiredError

# Security schemes
cookie_scheme = APIKeyCookie(name=SESSION_COOKIE_NAME, auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_current_session(
    request: Request,
    app: Annotated[App, Depends(get_app)],
    session_cookie: Annotated[str | None, Depends(cookie_scheme)] = None,
) -> SessionData:
    """Session resolved by the gate, or resolved here from the session cookie."""
    session = getattr(request.state, "session", None)
    if isinstance(session, SessionData):
        return session

    if session_cookie:
        session = await app.resolve_session(session_cookie)
        if session is not None:
            return session

    raise SessionRequiredError


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
SessionDep = Annotated[SessionData, Depends(get_current_session)]
SessionCookieDep = Annotated[str | None, Depends(cookie_scheme)]
