"""
Classic Hunt dashboard - main application.

A read-only FastAPI view over the tracker's record sets and report archive.
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracker.config import ConfigError
from tracker.store import ReportArchive, StateFileError

from .config import config
from .routes import listings_router, stats_router, ui_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log where the dashboard reads from; a missing config is not fatal here."""
    logger.info("Starting Classic Hunt dashboard...")
    try:
        config.validate()
        logger.info(f"State directory: {config.OUTPUT_DIR}, reports: {config.REPORTS_DIR}")
    except FileNotFoundError as e:
        # Data endpoints answer 503 until the file appears
        logger.warning(f"Startup check failed: {e}")
    yield
    logger.info("Shutting down Classic Hunt dashboard...")

app = FastAPI(
    title=config.API_TITLE,
    version=config.API_VERSION,
    description=config.API_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=config.CORS_ALLOW_CREDENTIALS,
    allow_methods=config.CORS_ALLOW_METHODS,
    allow_headers=config.CORS_ALLOW_HEADERS,
)

@app.exception_handler(ConfigError)
async def config_exception_handler(request, exc: ConfigError):
    """Missing or broken config.json."""
    logger.error(f"Configuration error: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Tracker configuration unavailable"}
    )

@app.exception_handler(StateFileError)
async def state_exception_handler(request, exc: StateFileError):
    """A record set on disk could not be read."""
    logger.error(f"State file error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Stored listing state is unreadable"}
    )

@app.exception_handler(Exception)
async def global_exception_handler(request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

@app.get("/health")
async def health_check():
    """Config presence plus the size of the report archive."""
    try:
        config.validate()
    except FileNotFoundError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")
    return {
        "status": "healthy",
        "version": config.API_VERSION,
        "config": config.CONFIG_PATH,
        "reports": len(ReportArchive(config.REPORTS_DIR).list_reports()),
    }

app.include_router(ui_router)
app.include_router(listings_router)
app.include_router(stats_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=config.LOG_LEVEL.lower()
    )
