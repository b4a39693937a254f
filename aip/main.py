import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from aip.config import settings
from aip.core.dependencies import build_worker_deps, check_connections
from aip.core.logging_config import setup_logging
from aip.worker.pool import WorkerPool

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.deps = None
app.state.pool = None


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    deps = build_worker_deps()
    check_connections(deps)
    pool = WorkerPool(deps)
    pool.start()
    app.state.deps = deps
    app.state.pool = pool


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")
    pool = app.state.pool
    if pool is not None:
        pool.stop(timeout=settings.dequeue_timeout_sec + 5)
        app.state.pool = None


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


# Sync endpoint: the checks below are blocking I/O
@app.get("/ready")
def ready():
    """Readiness probe: queue and store reachable, every consumer thread alive."""
    deps = app.state.deps
    pool = app.state.pool
    if deps is None or pool is None:
        return JSONResponse(status_code=503, content={"status": "starting"})

    checks = check_connections(deps)
    checks["workers"] = pool.is_alive()
    if not all(checks.values()):
        return JSONResponse(status_code=503, content={"status": "not ready", "checks": checks})
    return {"status": "ready", "checks": checks, "queue_depth": deps.queue.depth()}
