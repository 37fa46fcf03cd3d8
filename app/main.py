import asyncio
import logging
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, status

from app.api.v1.checkout import router as checkout_router
from app.api.v1.fulfillment import router as fulfillment_router
from app.api.v1.orders import router as orders_router
from app.api.v1.payments import router as payments_router
from app.consumers.outbox_poller import OutboxPublisher
from app.core.config import PROJECT_NAME, SERVICE_NAME, VERSION
from app.core.db import close_db, init_db
from app.core.exception_handlers import setup_exception_handlers
from app.messaging.broker import KafkaBroker

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connects the database, then the broker and the outbox publisher; tears down in reverse."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db()  # Connect to DB and generate schemas

    broker = KafkaBroker()
    publisher = OutboxPublisher(broker, source=SERVICE_NAME)
    await publisher.start()
    publisher_task = asyncio.create_task(publisher.run())
    app.state.broker = broker

    yield

    await publisher.stop()
    await publisher_task
    await broker.close()
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")


app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(CorrelationIdMiddleware, header_name="X-Correlation-ID")

# Include routers for modular API structure
app.include_router(checkout_router, prefix="/api/v1/checkout", tags=["Checkout"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(payments_router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(fulfillment_router, prefix="/api/v1/fulfillment", tags=["Fulfillment"])

setup_exception_handlers(app)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Health check: the service is up even when the broker is not; kafka reports which."""
    broker = getattr(app.state, "broker", None)
    return {
        "status": "ok",
        "app_name": PROJECT_NAME,
        "service": SERVICE_NAME,
        "kafka": "connected" if broker is not None and broker.is_connected else "disconnected",
    }
