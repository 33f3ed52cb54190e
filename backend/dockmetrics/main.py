"""dockmetrics - Docker container and host metrics collector."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from dockmetrics import __version__
from dockmetrics.config import get_settings
from dockmetrics.dependencies import init_app_state
from dockmetrics.exceptions import (
    ContainerNotFound,
    HostNotFound,
    InvalidControlAction,
    ProxyTargetRejected,
    ProxyUpstreamUnreachable,
    RuntimeUnavailable,
)
from dockmetrics.services.metrics import collect_store_metrics, get_content_type, get_metrics
from dockmetrics.utils.error_handling import error_payload
from dockmetrics.utils.security import sanitize_log_message

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class EndpointFilter(logging.Filter):
    """Filter to exclude specific endpoints from Granian access logs."""

    def __init__(self, excluded_paths: list[str]) -> None:
        super().__init__()
        self.excluded_paths = excluded_paths

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(path in message for path in self.excluded_paths)


# Health probes and Prometheus scrapes would flood the access log
logging.getLogger("granian.access").addFilter(EndpointFilter(["/health", "/metrics"]))

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting dockmetrics {__version__} on {settings.local_host_name}...")

    if not hasattr(app.state, "store"):
        init_app_state(app, settings)

    if settings.testing:
        logger.info("Testing mode - background collection disabled")
    else:
        await app.state.collector.start()
        logger.info("Metrics collector scheduled (waiting for local Docker runtime)")

    yield

    await app.state.collector.stop()
    logger.info("Shutting down dockmetrics...")


app = FastAPI(
    title="dockmetrics",
    description="Docker container and host metrics with pressure stall information",
    version=__version__,
    lifespan=lifespan,
)

cors_origins = settings.cors_origins
if cors_origins == ["*"]:
    logger.info("CORS configured with wildcard (*)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Cannot use allow_credentials=True with allow_origins=["*"]
    allow_credentials=cors_origins != ["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


@app.exception_handler(HostNotFound)
async def host_not_found_handler(request: Request, exc: HostNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ContainerNotFound)
async def container_not_found_handler(request: Request, exc: ContainerNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidControlAction)
async def invalid_action_handler(request: Request, exc: InvalidControlAction):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RuntimeUnavailable)
async def runtime_unavailable_handler(request: Request, exc: RuntimeUnavailable):
    logger.warning(f"Request to {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": f"Docker runtime on host '{exc.host_id}' is unavailable"},
    )


@app.exception_handler(ProxyTargetRejected)
async def proxy_rejected_handler(request: Request, exc: ProxyTargetRejected):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.exception_handler(ProxyUpstreamUnreachable)
async def proxy_unreachable_handler(request: Request, exc: ProxyUpstreamUnreachable):
    return JSONResponse(
        status_code=502,
        content={"error": "Failed to connect to agent", "details": exc.detail},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Generic exception handler to prevent stack trace exposure.

    Detailed errors are returned only when DOCKMETRICS_DEBUG=true.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {sanitize_log_message(str(exc))}",
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content=error_payload(exc, "An internal error occurred", debug=settings.debug),
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "dockmetrics"}


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint."""
    collect_store_metrics(request.app.state.store)
    return Response(content=get_metrics(), media_type=get_content_type())


@app.get("/")
async def root():
    return {"message": "dockmetrics API", "version": __version__, "docs": "/docs"}


from dockmetrics.api import api_router, proxy_router  # noqa: E402

app.include_router(api_router)
app.include_router(proxy_router)
