from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from availability.api.dependencies import get_stock_engine
from availability.kafka.producer import event_producer
from availability.schemas.filters import InvalidationScope
from availability.services.stock_engine import StockEngine

router = APIRouter(
    prefix="/cache",
    tags=["Cache"]
)


class InvalidationResponse(BaseModel):
    invalidated: bool
    kind: str


@router.post(
    "/invalidate",
    response_model=InvalidationResponse,
    status_code=status.HTTP_200_OK,
    summary="Invalidate derived results after an upstream mutation",
    description="""
    Call after committing a change to bookings, subrentals, repairs, equipment or
    providers. The local cache is cleared before the response is sent, so a read
    issued after this call returns never reflects pre-mutation state.

    The invalidation is then forwarded to Kafka for other replicas (best effort).
    """
)
async def invalidate(
    scope: InvalidationScope,
    engine: StockEngine = Depends(get_stock_engine)
):
    engine.invalidate(scope)
    event_producer.publish_invalidation(scope)
    return InvalidationResponse(invalidated=True, kind=scope.kind.value)
