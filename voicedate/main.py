from pathlib import Path as _Path
# Load .env ASAP to ensure settings see env vars before any imports cache them
try:
    from dotenv import load_dotenv as _load_dotenv  # type: ignore
    _load_dotenv(dotenv_path=_Path(__file__).resolve().parent.parent / ".env", override=False)
except ImportError:
    pass

import logging
import time

from fastapi import FastAPI, Request
try:
    import orjson  # noqa: F401
    from fastapi.responses import ORJSONResponse as _DEFAULT_RESPONSE_CLS  # type: ignore
except ImportError:
    from fastapi.responses import JSONResponse as _DEFAULT_RESPONSE_CLS  # type: ignore
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from . import db as _db_module
from .config import get_settings
from .db import close_mongo_connection, connect_to_mongo
from .events import get_event_hub
from .realtime import attach_redis_bridge, event_stream_handler
from .redis_bus import start_consumer as redis_bus_start_consumer, stop as redis_bus_stop
from .repositories.exceptions import TransientStoreError
from .routers import conversations, feed, likes, profiles

LOGGER = logging.getLogger("uvicorn.error")

app = FastAPI(title="VoiceDate Matching API", default_response_class=_DEFAULT_RESPONSE_CLS)
settings = get_settings()

_allow_origins = settings.allowed_origins
LOGGER.info("[CORS] allow_origins=%s", _allow_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag"],
    allow_credentials=True,
)
app.add_middleware(GZipMiddleware, minimum_size=512)


# Simple slow-request logger
@app.middleware("http")
async def log_slow_requests(request: Request, call_next):
    t0 = time.time()
    response = await call_next(request)
    dt = (time.time() - t0) * 1000
    if dt >= get_settings().slow_request_ms:
        LOGGER.warning(
            "[perf] slow request %s %s %dms status=%s",
            request.method,
            request.url.path,
            int(dt),
            response.status_code,
        )
    return response


@app.exception_handler(TransientStoreError)
async def transient_store_error_handler(request: Request, exc: TransientStoreError):
    LOGGER.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Temporarily unavailable, please try again."},
    )


@app.on_event("startup")
async def startup():
    await connect_to_mongo()
    # Start Redis pub/sub bridge for live updates across instances (optional)
    try:
        if get_settings().redis_pubsub_enabled:
            attach_redis_bridge(get_event_hub())
            await redis_bus_start_consumer(event_stream_handler)
            LOGGER.info("[Events] Redis pub/sub listener started")
        else:
            LOGGER.info("[Events] Redis pub/sub disabled")
    except Exception as e:
        LOGGER.error("[Events] listener start failed (non-fatal): %s", e)


@app.on_event("shutdown")
async def shutdown():
    await close_mongo_connection()
    await redis_bus_stop()


# Routers
app.include_router(profiles.router, prefix="/api")
app.include_router(feed.router, prefix="/api")
app.include_router(likes.router, prefix="/api")
app.include_router(conversations.router, prefix="/api")


@app.get("/")
async def root():
    return {"status": "voicedate-api-ok"}


@app.get("/api/health/db")
async def db_health():
    return {
        "mongo": "connected" if _db_module.is_connected() else "disconnected",
        "db": str(get_settings().mongo_db),
    }
