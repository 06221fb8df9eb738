import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from crudgeneric.errors import register_error_handlers
from crudgeneric.logging import configure_logging
from crudgeneric.mapping.checker import MappingChecker
from crudgeneric.mapping.registry import MappingRegistry

logger = logging.getLogger(__name__)


def crud_lifespan(registry: MappingRegistry, mappings: Iterable, services: Iterable):
    """Lifespan that configures and verifies the mapping registry before serving.

    A ConfigurationError raised here aborts application startup. When the
    registry is already configured (the app is started again) the services are
    only re-checked against it.
    """
    mappings = list(mappings)
    services = list(services)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            if registry.configured:
                MappingChecker(registry).check(services)
            else:
                registry.configure(mappings, services)
        except Exception:
            logger.exception("Refusing to start: mapping configuration failed")
            raise
        app.state.mapping_registry = registry
        yield

    return lifespan


def create_app(
    registry: MappingRegistry,
    mappings: Iterable,
    services: Iterable,
    routers: Iterable[APIRouter] = (),
    *,
    title: str = "crudgeneric",
    log_level: str | None = None,
) -> FastAPI:
    configure_logging(log_level)
    app = FastAPI(title=title, lifespan=crud_lifespan(registry, mappings, services))
    register_error_handlers(app)
    for router in routers:
        app.include_router(router)
    return app
