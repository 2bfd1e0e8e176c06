from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dndtracker.app import App
from dndtracker.config import Config
from dndtracker.errors import InfrastructureError, SessionRequiredError, UserError
from dndtracker.web.error_handlers import (
    general_exception_handler,
    infrastructure_error_handler,
    session_required_handler,
    user_error_handler,
)
from dndtracker.web.gate import GateConfig, SessionGateMiddleware, build_strategy
from dndtracker.web.openapi import set_custom_openapi
from dndtracker.web.routers import auth_router, users_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="D&D Tracker API",
        lifespan=lifespan,
        openapi_tags=[],  # Tags will be added by custom OpenAPI function
    )
    # Read by request dependencies
    app.state.app = app_instance
    app.state.config = config

    app.add_middleware(
        SessionGateMiddleware,
        gate_config=GateConfig.from_config(config),
        strategy=build_strategy(config, app_instance.resolve_session),
    )

    # Outermost, preflight requests skip the gate
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(auth_router, prefix="/api")
    app.include_router(users_router, prefix="/api")

    # Register error handlers
    app.add_exception_handler(SessionRequiredError, session_required_handler)
    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(InfrastructureError, infrastructure_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
