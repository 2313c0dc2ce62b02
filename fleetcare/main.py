from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI

from fleetcare.api.routes import maintenance, parts, ping, schedules
from fleetcare.core.config import get_settings
from fleetcare.core.logging import configure_logging, init_tracer, shutdown_tracer
from fleetcare.maintenance.collaborators import PostgresIssueTicketCloser
from fleetcare.maintenance.errors import MaintenanceStoreError
from fleetcare.maintenance.inventory import PartsInventory
from fleetcare.maintenance.repository import MaintenanceRepository
from fleetcare.maintenance.schedule import ScheduleExpander
from fleetcare.maintenance.sequence import SequenceAllocator
from fleetcare.maintenance.service import MaintenanceService


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.maintenance_service = None
    app.state.parts_inventory = None
    pool = None
    try:
        pool = await asyncpg.create_pool(
            dsn=settings.postgres_dsn,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
        )
        repository = MaintenanceRepository(pool)
        await repository.ensure_schema()
        inventory = PartsInventory(repository)
        app.state.maintenance_service = MaintenanceService(
            repository,
            allocator=SequenceAllocator(repository, floor=settings.ticket_number_floor),
            expander=ScheduleExpander(
                max_occurrences=settings.schedule_max_occurrences,
                horizon=settings.schedule_horizon,
            ),
            originating_tickets=PostgresIssueTicketCloser(pool),
            inventory=inventory,
        )
        app.state.parts_inventory = inventory
        # No asset directory is wired here; occurrence asset names fall back to the asset id.
    except (MaintenanceStoreError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError):
        logger.exception("Maintenance service unavailable; starting without database")
        if pool is not None:
            await pool.close()
            pool = None
    try:
        yield
    finally:
        if pool is not None:
            await pool.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(maintenance.router)
    app.include_router(schedules.router)
    app.include_router(parts.router)
    return app


app = create_app()
