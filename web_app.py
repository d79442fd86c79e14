import logging
import sys
import time
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from zoneinfo import ZoneInfo

from services.config import config

# Log formatter that stamps records in the configured timezone
class ZonedFormatter(logging.Formatter):
    """Formatter using config.LOG_TIMEZONE for timestamps."""

    def __init__(self, *args, tz: str = "UTC", **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = ZoneInfo(tz)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime("%Y-%m-%d %H:%M:%S %Z")

    def format(self, record):
        result = super().format(record)
        # Indent continuation lines of long multi-line messages
        if len(record.message) > 100 and '\n' in record.message:
            lines = record.message.split('\n')
            indent = ' ' * 4
            formatted_msg = '\n'.join([lines[0]] + [indent + line for line in lines[1:]])
            result = result.replace(record.message, formatted_msg)
        return result

def setup_logging():
    """Configure application logging."""
    formatter = ZonedFormatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s',
        tz=config.LOG_TIMEZONE,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(config.LOG_LEVEL.upper())

    # Drop existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Daily rotated file, 30 days kept
    if config.LOG_DIR:
        log_dir = Path(config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=log_dir / "app.log",
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

setup_logging()
logger = logging.getLogger(__name__)

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from services.db.init import init_db
from services.errors import BreaktoolError, StorageFailure
from web.dependencies import limiter
from web.routers import reviews as reviews_router
from web.routers import trust_score as trust_score_router
from web.routers import verdict as verdict_router

START_TIME = datetime.now(ZoneInfo(config.LOG_TIMEZONE)).strftime("%Y-%m-%d %H:%M:%S")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Breaktool Web Service...")
    engine = init_db()
    logger.info(f"✓ Database initialized: {engine.url}")
    yield
    logger.info("Breaktool Web Service stopped")


app = FastAPI(title="Breaktool API", lifespan=lifespan)
app.state.limiter = limiter


# --- Error Handlers ---
async def service_error_handler(request: Request, exc: BreaktoolError):
    """Map service errors to their HTTP status."""
    if isinstance(exc, StorageFailure):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed request fields are a caller error (400)."""
    return JSONResponse(
        status_code=400,
        content={"error": "Missing or invalid request fields", "detail": jsonable_encoder(exc.errors())},
    )

async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Database operation failed"})

async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})

async def friendly_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Too many requests: friendly JSON instead of the plain-text default."""
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests, please wait a moment and try again",
            "detail": str(exc),
        },
    )

app.add_exception_handler(BreaktoolError, service_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)
app.add_exception_handler(RateLimitExceeded, friendly_rate_limit_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reviews_router.router)
app.include_router(trust_score_router.router)
app.include_router(verdict_router.router)


@app.head("/")
async def head_root():
    """Handle HEAD requests for uptime monitoring."""
    return Response(status_code=200)

@app.get("/health")
async def health_check():
    """Lightweight health check endpoint."""
    return {"status": "ok", "started_at": START_TIME, "timestamp": time.time()}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
