"""
Engula Operator — status API and process entrypoint.

Sets up FastAPI with:
  - Rate limiting (slowapi)
  - Controller state (/) and Prometheus metrics (/metrics)
  - Health check (/health)

Running the module starts kopf and uvicorn in one event loop; both share
the same State and Metrics instances.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import kopf
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from engula_operator import __version__
from engula_operator.config import settings
from engula_operator.models import HealthResponse
from engula_operator.routers.status import limiter, router as status_router
from engula_operator.state import Metrics, State
from engula_operator.telemetry import configure_logging

logger = logging.getLogger("engula-api")


# --- Lifespan ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Engula Operator status API starting...")
    yield
    logger.info("Engula Operator status API shutting down...")


# --- FastAPI app ---
app = FastAPI(
    title="Engula Operator",
    description="Status and metrics of the Journal/Storage reconciliation controller",
    version=__version__,
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)

# --- Rate Limiting ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(status_router)


# --- Health check ---
@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        version=__version__,
    )


# --- Global exception handler ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def bind_state(state: State, metrics: Metrics) -> FastAPI:
    """Attach the process-wide state and metrics to the app."""
    app.state.process_state = state
    app.state.metrics = metrics
    return app


async def run() -> None:
    # Registers the kopf handlers.
    from engula_operator import operator  # noqa: F401

    state = State(reporter=settings.REPORTER)
    metrics = Metrics()
    bind_state(state, metrics)

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    ))
    await asyncio.gather(
        kopf.operator(
            clusterwide=True,
            standalone=True,
            memo=kopf.Memo(state=state, metrics=metrics),
        ),
        server.serve(),
    )


def main() -> None:
    configure_logging()
    asyncio.run(run())


# --- Entry point ---
if __name__ == "__main__":
    main()
