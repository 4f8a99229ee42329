import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from scout_agent.config import Settings, settings as default_settings
from scout_agent.database import init_db
from scout_agent.errors import ScoutAgentError
from scout_agent.scheduler.jobs import start_scheduler, stop_scheduler
from scout_agent.services import Services, build_services
from scout_agent.web.routes.admin import router as admin_router
from scout_agent.web.routes.cron import router as cron_router
from scout_agent.web.routes.emails import router as emails_router
from scout_agent.web.routes.execute import router as execute_router
from scout_agent.web.routes.executions import router as executions_router
from scout_agent.web.routes.firecrawl import router as firecrawl_router

logger = logging.getLogger(__name__)


def create_app(
    config: Settings = default_settings,
    services: Optional[Services] = None,
    run_scheduler: Optional[bool] = None,
) -> FastAPI:
    """Build the API. Passing ``services`` skips validation, DB init and the scheduler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            config.validate_required()
            init_db()
            app.state.services = build_services(config)
        app.state.services.queue.start()

        scheduler_on = config.scheduler_enabled if run_scheduler is None else run_scheduler
        if scheduler_on:
            start_scheduler(
                app.state.services.dispatcher,
                app.state.services.session_factory,
                config.scheduler_tick_minutes,
            )
        try:
            yield
        finally:
            if scheduler_on:
                stop_scheduler()
            app.state.services.queue.stop()

    app = FastAPI(title="Scout Agent", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    @app.exception_handler(ScoutAgentError)
    async def scout_agent_error_handler(request: Request, exc: ScoutAgentError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": str(exc) or "Internal server error"}, status_code=500)

    app.include_router(execute_router, prefix="/api/scout")
    app.include_router(executions_router, prefix="/api/scouts")
    app.include_router(firecrawl_router, prefix="/api/firecrawl")
    app.include_router(emails_router, prefix="/api")
    app.include_router(admin_router, prefix="/api/admin")
    app.include_router(cron_router, prefix="/functions")
    return app


app = create_app()
