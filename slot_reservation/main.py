import asyncio
import logging

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import config
from .db import get_engine, get_session
from .errors import BookingError
from .expiry_worker import expiry_loop
from .middleware import RequestLoggingMiddleware
from .publisher import EventPublisher
from .routes import router
from .service import BookingService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Slot Reservation Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)

_stop_event = asyncio.Event()
_expiry_task = None


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.get("/health")
async def health():
    publisher = getattr(app.state, "publisher", None)
    return {
        "status": "ok",
        "service": config.SERVICE_NAME,
        "events_enabled": bool(publisher and publisher.enabled),
    }


@app.on_event("startup")
async def startup():
    global _expiry_task
    if not config.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is not set")
    if not config.REDIS_URL:
        raise RuntimeError("REDIS_URL environment variable is not set")

    app.state.db_engine = get_engine(config.DATABASE_URL, echo=config.DB_ECHO)
    app.state.redis = redis.from_url(config.REDIS_URL, decode_responses=True)
    app.state.publisher = EventPublisher(config.RABBIT_URL, app_id=config.SERVICE_NAME)

    try:
        await app.state.publisher.connect()
    except Exception as e:
        logger.warning("[%s] RabbitMQ connect failed at startup; continuing: %s", config.SERVICE_NAME, e)

    app.state.booking_service = BookingService(
        get_session(app.state.db_engine),
        app.state.redis,
        publisher=app.state.publisher,
        hold_ttl_seconds=config.HOLD_TTL_SECONDS,
        confirm_status=config.CONFIRM_STATUS,
        reaper_batch_size=config.REAPER_BATCH_SIZE,
    )

    _stop_event.clear()
    _expiry_task = asyncio.create_task(
        expiry_loop(app.state.booking_service.reaper, _stop_event, config.REAPER_INTERVAL_SECONDS)
    )
    logger.info("[%s] started, hold ttl %ss", config.SERVICE_NAME, config.HOLD_TTL_SECONDS)


@app.on_event("shutdown")
async def shutdown():
    global _expiry_task
    _stop_event.set()
    if _expiry_task:
        try:
            await _expiry_task
        except Exception as e:
            logger.warning("[%s] expiry task ended with error: %s", config.SERVICE_NAME, e)
        _expiry_task = None
    try:
        await app.state.publisher.close()
    except Exception as e:
        logger.warning("[%s] publisher close failed: %s", config.SERVICE_NAME, e)
    await app.state.redis.aclose()
    await app.state.db_engine.dispose()
