from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import logging
import threading

from availability.config import settings
from availability.db.database import init_db, SessionLocal
from availability.api import cache, conflicts, health, stock
from availability.exceptions import CalculationTimeout, UpstreamUnavailable
from availability.kafka.invalidation_consumer import InvalidationEventConsumer
from availability.kafka.producer import event_producer
from availability.services.stock_cache import InvalidationBus
from availability.services.stock_engine import build_stock_engine

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _start_consumer_thread(consumer: InvalidationEventConsumer) -> threading.Thread:
    def run():
        try:
            consumer.start()
        except Exception as e:
            # Without the consumer, remote mutations are only picked up on TTL expiry
            logger.error(f"Invalidation consumer stopped: {e}", exc_info=True)

    consumer_thread = threading.Thread(target=run, daemon=True, name="invalidation-consumer")
    consumer_thread.start()
    logger.info(f"Started invalidation event consumer in background thread {consumer_thread.name}")
    return consumer_thread


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Availability Service...")
    await init_db()

    bus = InvalidationBus()
    app.state.stock_engine = build_stock_engine(settings, SessionLocal, bus)

    consumer = None
    if settings.kafka_consumer_enabled:
        logger.info(
            f"Kafka config - bootstrap_servers={settings.kafka_bootstrap_servers}, "
            f"mutations_topic={settings.kafka_mutations_topic}"
        )
        consumer = InvalidationEventConsumer(bus)
        _start_consumer_thread(consumer)
    else:
        logger.info("Kafka invalidation consumer disabled; cached results expire by TTL only")

    logger.info("Availability Service started successfully")
    yield
    # Shutdown
    logger.info("Shutting down Availability Service...")
    if consumer is not None:
        consumer.stop()
    event_producer.flush()


app = FastAPI(
    title="Availability Service",
    description="""
    Virtual inventory and conflict engine for rental equipment.

    **Features:**
    - Effective stock per equipment and date (base stock + subrentals - repairs)
    - Overbooking detection with severity and candidate solutions
    - Subrental suggestions ranked across external providers
    - Derived-result cache with synchronous invalidation
    - Kafka-driven invalidation across replicas
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable):
    logger.error(f"Upstream unavailable for {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Could not determine availability", "source": exc.source}
    )


@app.exception_handler(CalculationTimeout)
async def calculation_timeout_handler(request: Request, exc: CalculationTimeout):
    logger.warning(f"Calculation timeout for {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={"detail": str(exc)}
    )


# Global exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them properly"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error_type": type(exc).__name__,
            "message": str(exc)
        }
    )


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    logger.warning(
        f"Validation error: {exc.errors()}",
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()}
    )


# Include routers
app.include_router(health.router)
app.include_router(stock.router, prefix="/api/availability")
app.include_router(conflicts.router, prefix="/api/availability")
app.include_router(cache.router, prefix="/api/availability")


@app.get("/")
async def root():
    return {"service": settings.app_name, "version": "1.0.0"}
