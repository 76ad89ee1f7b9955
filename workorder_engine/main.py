import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRoute

from workorder_engine.api.errors import register_error_handlers
from workorder_engine.api.main import api_router
from workorder_engine.core.clock import Clock, SystemClock
from workorder_engine.core.config import Settings, get_settings
from workorder_engine.core.db import init_db
from workorder_engine.core.logging import setup_logging
from workorder_engine.domain.work_orders.ports import (
    ChecklistLookup,
    CustomTaskChecklist,
    ResourceDirectory,
    StaticResourceDirectory,
)
from workorder_engine.infrastructure.database.unit_of_work import (
    UnitOfWorkFactory,
    unit_of_work_factory,
)

logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


def create_app(
    settings: Settings | None = None,
    uow_factory: UnitOfWorkFactory | None = None,
    clock: Clock | None = None,
    directory: ResourceDirectory | None = None,
    checklist: ChecklistLookup | None = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the API application.

    Collaborators default to the configured database, the system clock, an
    empty technician directory and the `custom_tasks` checklist.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings.LOG_LEVEL)
        if create_tables and uow_factory is None:
            init_db()
        logger.info(
            "Application started",
            extra={
                "project_name": settings.PROJECT_NAME,
                "environment": settings.ENVIRONMENT,
            },
        )
        yield
        logger.info("Shutting down application")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Work order lifecycle and technician scheduling API.",
        version="0.1.0",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.uow_factory = uow_factory or unit_of_work_factory()
    app.state.clock = clock or SystemClock()
    app.state.directory = directory or StaticResourceDirectory()
    app.state.checklist = checklist or CustomTaskChecklist()

    register_error_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
