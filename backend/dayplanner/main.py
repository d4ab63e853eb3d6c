"""Main FastAPI application for the day planner backend."""
from fastapi import FastAPI, Request

from dayplanner.api.routes.daily import router as daily_router
from dayplanner.api.routes.jobs import router as jobs_router
from dayplanner.api.routes.recurring import router as recurring_router
from dayplanner.api.routes.task import router as task_router
from dayplanner.api.routes.time_blocks import router as time_blocks_router
from dayplanner.core.config import settings
from dayplanner.core.logging import configure_logging
from dayplanner.core.middleware import RequestContextMiddleware
from dayplanner.observability.client import init_opik
from dayplanner.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestContextMiddleware)
app.include_router(time_blocks_router)
app.include_router(task_router)
app.include_router(recurring_router)
app.include_router(daily_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
