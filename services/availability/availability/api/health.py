from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel, Field

from availability.config import settings

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy once the stock engine is wired, starting before", example="healthy")
    service: str = Field(..., description="Service name", example="availability-service")
    version: str = Field(..., description="Service version", example="1.0.0")
    engine_ready: bool = Field(..., description="Whether the stock engine accepts requests", example=True)
    cached_results: int = Field(0, description="Derived results currently held in the cache", example=42)
    invalidation_consumer: bool = Field(
        ..., description="Whether mutation events from Kafka keep the cache fresh", example=True
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="""
    Readiness check for monitoring and load balancers.

    Returns 503 until startup has run migrations and wired the stock engine, so
    traffic only reaches replicas that can answer availability queries.
    """,
    responses={
        200: {
            "description": "Service is ready",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "service": "availability-service",
                        "version": "1.0.0",
                        "engine_ready": True,
                        "cached_results": 42,
                        "invalidation_consumer": True
                    }
                }
            }
        },
        503: {"description": "Stock engine not wired yet"}
    }
)
async def health(request: Request, response: Response):
    """Health check endpoint"""
    engine = getattr(request.app.state, "stock_engine", None)
    if engine is None:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if engine is not None else "starting",
        service=settings.app_name,
        version="1.0.0",
        engine_ready=engine is not None,
        cached_results=len(engine.cache) if engine is not None else 0,
        invalidation_consumer=settings.kafka_consumer_enabled,
    )
