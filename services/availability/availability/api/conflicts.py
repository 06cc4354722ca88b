from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from uuid import UUID
from datetime import date
from availability.api.dependencies import get_stock_engine
from availability.schemas.filters import ConflictFilter, DateRange
from availability.schemas.stock import ConflictReport, Severity, SuggestionListResponse
from availability.services.stock_engine import StockEngine

router = APIRouter(
    prefix="/conflicts",
    tags=["Conflicts"]
)


@router.get(
    "",
    response_model=ConflictReport,
    summary="List overbooking conflicts",
    description="""
    Every (equipment, date) whose committed usage exceeds its effective stock.

    **Scope:**
    - Give either `dates` (repeatable) or both `start_date` and `end_date`
    - `equipment_ids` restricts the equipment checked (default: all equipment)
    - `severity` and `project_ids` only filter the returned conflicts; usage is always
      computed across all projects

    **Ordering:** high severity first, then larger deficit, then earlier date.

    Pairs whose availability could not be determined are listed under `unknown` and
    the report status is `unknown`; they are never reported as conflicts, and an empty
    `conflicts` list only means "no conflicts" when the status is `ok`.
    """,
    responses={
        422: {"description": "Missing or conflicting date filters"},
        504: {"description": "Calculation timed out"},
    }
)
async def get_conflicts(
    start_date: Optional[date] = Query(None, description="First day of the window (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last day of the window (inclusive)"),
    dates: Optional[List[date]] = Query(None, description="Specific dates to analyze"),
    equipment_ids: Optional[List[UUID]] = Query(None, description="Restrict to these equipment ids"),
    severity: Optional[List[Severity]] = Query(None, description="Only return these severities"),
    project_ids: Optional[List[UUID]] = Query(None, description="Only return conflicts affecting these projects"),
    engine: StockEngine = Depends(get_stock_engine)
):
    """Conflicts in a date window or on specific dates"""
    try:
        conflict_filter = ConflictFilter(
            equipment_ids=equipment_ids,
            dates=dates,
            date_range=_date_range(start_date, end_date),
            severity=severity,
            project_ids=project_ids,
        )
        return await engine.get_conflict_report(conflict_filter)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )


@router.get(
    "/suggestions",
    response_model=SuggestionListResponse,
    summary="Subrental suggestions for the visible window",
    description="""
    Actionable conflicts in the window with up to three external providers each.

    A conflict is actionable when its deficit is at least 2 units or more than one
    booking is affected. Providers are matched on the location of the first affected
    event: preferred providers first, then by reliability rating.

    When part of the window could not be checked the status is `unknown` and the
    affected pairs are listed under `unknown`.
    """,
    responses={
        422: {"description": "Invalid date window"},
        504: {"description": "Calculation timed out"},
    }
)
async def get_subrental_suggestions(
    start_date: date = Query(..., description="First visible day (inclusive)"),
    end_date: date = Query(..., description="Last visible day (inclusive)"),
    equipment_ids: Optional[List[UUID]] = Query(None, description="Restrict to these equipment ids"),
    engine: StockEngine = Depends(get_stock_engine)
):
    try:
        window = DateRange(start=start_date, end=end_date)
        report = await engine.get_suggestion_report(window, equipment_ids=equipment_ids)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )

    by_date = engine.suggestion_engine.group_by_date(report.suggestions)
    return SuggestionListResponse(
        status=report.status,
        suggestions=report.suggestions,
        suggestions_by_date=by_date,
        total_conflicts=len(report.suggestions),
        affected_dates=sorted(by_date),
        unknown=report.unknown,
    )


def _date_range(start_date: Optional[date], end_date: Optional[date]) -> Optional[DateRange]:
    if start_date is None and end_date is None:
        return None
    if start_date is None or end_date is None:
        raise ValueError("Both 'start_date' and 'end_date' are required for a date range")
    return DateRange(start=start_date, end=end_date)
