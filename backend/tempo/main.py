"""Main FastAPI application for the Tempo scheduling backend."""
from fastapi import FastAPI, Request

from tempo.api.errors import register_exception_handlers
from tempo.api.routes.activity import router as activity_router
from tempo.api.routes.completions import router as completions_router
from tempo.api.routes.jobs import router as jobs_router
from tempo.api.routes.plan_health import router as plan_health_router
from tempo.api.routes.plans import router as plans_router
from tempo.api.routes.preferences import router as preferences_router
from tempo.api.routes.reschedules import router as reschedules_router
from tempo.api.routes.schedule import router as schedule_router
from tempo.core.config import settings
from tempo.core.logging import configure_logging
from tempo.core.middleware import RequestIDMiddleware
from tempo.observability.client import init_opik
from tempo.observability.tracing import trace

configure_logging(log_level=settings.log_level, log_sql=settings.log_sql)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
register_exception_handlers(app)
app.include_router(plans_router)
app.include_router(schedule_router)
app.include_router(completions_router)
app.include_router(reschedules_router)
app.include_router(plan_health_router)
app.include_router(preferences_router)
app.include_router(activity_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness check")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can check the API is up."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok", "request_id": request.state.request_id}
