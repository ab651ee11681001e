from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tvsync.config import setup_logging
from tvsync.database import close_db, init_db
from tvsync.errors import FormatError, QueryFailure, UnknownKeyError
from tvsync.services import get_logo_fetcher, sync_scheduler

from tvsync.routers import main_router


setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting TV Channel Sync...")

    try:
        await init_db()
        get_logo_fetcher().logo_store.ensure_directory()
        sync_scheduler.start()
        logger.info("TV Channel Sync started successfully")
    except Exception as e:
        logger.error(f"Failed to start TV Channel Sync: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down TV Channel Sync...")

    try:
        sync_scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)

    fetcher = get_logo_fetcher()
    if fetcher.pending:
        logger.info("Waiting for %s logo downloads", fetcher.pending)
        await fetcher.drain()

    await close_db()
    logger.info("TV Channel Sync stopped")


app = FastAPI(
    title="TV Channel Sync",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(main_router)


@app.exception_handler(QueryFailure)
async def query_failure_handler(request: Request, exc: QueryFailure):
    """Catalog store unavailable; nothing was committed"""
    logger.error(f"Catalog query failed for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(FormatError)
@app.exception_handler(UnknownKeyError)
async def catalog_data_error_handler(request: Request, exc: Exception):
    """Corrupt stored values and unknown keys are reported, never masked"""
    logger.error(f"Catalog data error for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with details"""
    logger.error(f"Validation error for {request.method} {request.url.path}")
    logger.error(f"Validation details: {exc.errors()}")

    try:
        body = await request.body()
        logger.error(f"Request body: {body.decode('utf-8')}")

    except (ValueError, UnicodeDecodeError, RuntimeError):
        logger.error("Could not read request body")

    errors = []
    for error in exc.errors():
        error_dict = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100]
        }
        errors.append(error_dict)

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors
        }
    )
