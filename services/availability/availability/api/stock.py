from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List
from uuid import UUID
from datetime import date
from availability.api.dependencies import get_stock_engine
from availability.schemas.filters import DateRange
from availability.schemas.stock import (
    AvailabilityResponse,
    EffectiveStock,
    OverbookedResponse,
    StockBreakdown,
)
from availability.services.stock_engine import StockEngine

router = APIRouter(
    prefix="/stock",
    tags=["Stock"]
)

UPSTREAM_RESPONSES = {
    503: {"description": "Could not determine availability (upstream data unavailable)"},
    504: {"description": "Calculation timed out"},
}


@router.get(
    "/effective",
    response_model=List[EffectiveStock],
    summary="Effective stock for equipment over a date range",
    description="""
    Effective stock of every requested equipment on every date of an inclusive range.

    **Effective stock** = base stock + confirmed/delivered subrentals - in-repair orders,
    floored at zero. Each record also carries committed usage, remaining availability
    and the orders that contributed to it.

    Records whose upstream data could not be read are returned with `status: unknown`
    and no numeric fields; they never mean zero stock.
    """,
    responses={
        422: {"description": "Invalid date range or equipment ids"},
        **UPSTREAM_RESPONSES,
    }
)
async def get_effective_stock(
    equipment_ids: List[UUID] = Query(..., description="Equipment ids to calculate"),
    start_date: date = Query(..., description="First day (inclusive)"),
    end_date: date = Query(..., description="Last day (inclusive)"),
    engine: StockEngine = Depends(get_stock_engine)
):
    """Effective stock per (equipment, date)"""
    try:
        date_range = DateRange(start=start_date, end=end_date)
        return await engine.get_effective_stock(equipment_ids, date_range)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )


@router.get(
    "/{equipment_id}/availability",
    response_model=AvailabilityResponse,
    summary="Units available on a date",
    responses=UPSTREAM_RESPONSES
)
async def get_availability(
    equipment_id: UUID,
    on: date = Query(..., alias="date", description="Date to check"),
    engine: StockEngine = Depends(get_stock_engine)
):
    available = await engine.get_availability(equipment_id, on)
    return AvailabilityResponse(equipment_id=equipment_id, date=on, available=available)


@router.get(
    "/{equipment_id}/overbooked",
    response_model=OverbookedResponse,
    summary="Check whether equipment is overbooked on a date",
    description="""
    Returns whether committed usage, plus an optional hypothetical `additional_usage`,
    exceeds the effective stock on the given date. Use `additional_usage` to check a
    booking before committing it.
    """,
    responses=UPSTREAM_RESPONSES
)
async def is_overbooked(
    equipment_id: UUID,
    on: date = Query(..., alias="date", description="Date to check"),
    additional_usage: int = Query(0, ge=0, description="Units about to be booked"),
    engine: StockEngine = Depends(get_stock_engine)
):
    overbooked = await engine.is_overbooked(equipment_id, on, additional_usage)
    return OverbookedResponse(
        equipment_id=equipment_id,
        date=on,
        additional_usage=additional_usage,
        is_overbooked=overbooked
    )


@router.get(
    "/{equipment_id}/breakdown",
    response_model=StockBreakdown,
    summary="Stock breakdown for one equipment on one date",
    description="Effective stock together with the subrental and repair orders and the bookings behind it.",
    responses=UPSTREAM_RESPONSES
)
async def get_stock_breakdown(
    equipment_id: UUID,
    on: date = Query(..., alias="date", description="Date to inspect"),
    engine: StockEngine = Depends(get_stock_engine)
):
    return await engine.get_stock_breakdown(equipment_id, on)
