from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlparse

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from dndtracker.config import Config
from dndtracker.core.modules.auth.retry import RetryPolicy
from dndtracker.core.modules.auth.service import AuthService
from dndtracker.core.modules.redirect.validator import RedirectValidator

if TYPE_CHECKING:
    from dndtracker.core.modules.session.service import SessionService
    from dndtracker.core.modules.transaction.service import TransactionService
    from dndtracker.core.modules.user.service import UserService


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    transaction: TransactionService
    user: UserService
    session: SessionService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters for initialization - transaction must come before user
        service_configs = [
            ("transaction", "dndtracker.core.modules.transaction.service", "TransactionService"),
            ("user", "dndtracker.core.modules.user.service", "UserService"),
            ("session", "dndtracker.core.modules.session.service", "SessionService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Process-wide context: config, MongoDB client, services and the stateless helpers built on them.

    Built once by App and passed by reference; nothing here is a module-level singleton.
    """

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    services: Services
    auth: AuthService
    redirect: RedirectValidator

    def __init__(self, config: Config) -> None:
        self.config = config
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
        self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:] or "dnd-tracker")
        self.services = Services(self.database)
        self.services.set_core(self)
        self.auth = AuthService(
            self.services.user,
            RetryPolicy.from_config(config),
            lag_backoff_base=config.auth_lag_backoff_base,
        )
        self.redirect = RedirectValidator(
            production=config.production, trusted_domains=config.trusted_redirect_domains
        )

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        await self.mongo_client.aclose()
