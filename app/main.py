import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import (
    AUTO_CREATE_TABLES,
    CREDENTIALS_FILE,
    LOG_LEVEL,
    RABBIT_URL,
    RATE_LIMIT_PER_MINUTE,
    SERVICE_NAME,
)
from .consumer import CheckoutConsumer
from .credentials import CredentialStore
from .db import Base, SessionLocal, engine
from .errors import register_exception_handlers
from .event_log import EventLog
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .notifications import notifier
from .rabbitmq import publisher
from .redis_client import redis_client
from .routes import auth, manager, vendor

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

for noisy in ("httpx", "httpcore", "aio_pika", "aiormq"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Booking service starting up...")
    app.state.credentials = CredentialStore.from_file(CREDENTIALS_FILE)

    if AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    stop_event = asyncio.Event()
    consumer_task = None
    if RABBIT_URL:
        consumer = CheckoutConsumer(SessionLocal, app.state.event_log, app.state.notifier, redis_client)
        consumer_task = asyncio.create_task(consumer.start_with_retry(stop_event))
    else:
        logger.warning("RABBIT_URL not set, domain events disabled")

    yield

    logger.info("Booking service shutting down...")
    stop_event.set()
    if consumer_task:
        conn = await consumer_task
        if conn and not conn.is_closed:
            await conn.close()
    await publisher.close()
    if redis_client is not None:
        await redis_client.aclose()
    await engine.dispose()


app = FastAPI(title="Booking Service", lifespan=lifespan)

app.state.event_log = EventLog(SessionLocal, publisher)
app.state.notifier = notifier
app.state.credentials = CredentialStore()

register_exception_handlers(app)

if redis_client is not None and RATE_LIMIT_PER_MINUTE > 0:
    app.add_middleware(RateLimitMiddleware, redis_client=redis_client, max_per_minute=RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(auth.router)
app.include_router(manager.router)
app.include_router(vendor.router)


@app.get("/health")
async def health():
    return {"success": True, "status": "ok", "service": SERVICE_NAME}
