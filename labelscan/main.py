import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from labelscan import __version__
from labelscan.api import notifications, scans, session
from labelscan.services.errors import LocalStorageError, TransientExternalFailure

logger = logging.getLogger(__name__)

app = FastAPI(title="Label Scan", version=__version__)


@app.exception_handler(LocalStorageError)
async def local_storage_exception_handler(request: Request, exc: LocalStorageError):
    """Cache removals that failed leave state untouched; the client may retry."""
    logger.error("Local cache failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Local storage unavailable, please try again"},
    )


@app.exception_handler(TransientExternalFailure)
async def external_failure_exception_handler(
    request: Request, exc: TransientExternalFailure
):
    logger.error("External service failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# Include routers
app.include_router(scans.router)
app.include_router(notifications.router)
app.include_router(session.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
