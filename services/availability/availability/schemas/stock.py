from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import date
from enum import Enum


class AvailabilityStatus(str, Enum):
    OK = "ok"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


class StockContribution(BaseModel):
    model_config = {"frozen": True}

    type: str = Field(..., description="subrental or repair", example="subrental")
    order_id: UUID
    order_name: str
    quantity: int = Field(..., description="Signed quantity: positive for additions, negative for reductions", example=2)
    start_date: date
    end_date: Optional[date] = None
    provider_name: Optional[str] = None
    facility_name: Optional[str] = None


class EffectiveStock(BaseModel):
    model_config = {"frozen": True}

    equipment_id: UUID
    equipment_name: Optional[str] = None
    date: date
    status: AvailabilityStatus = AvailabilityStatus.OK

    # Stock components; all None when status is unknown
    base_stock: Optional[int] = None
    virtual_additions: Optional[int] = None
    virtual_reductions: Optional[int] = None
    effective_stock: Optional[int] = None

    # Usage
    total_used: Optional[int] = None
    available: Optional[int] = Field(None, description="effective_stock - total_used, may be negative")
    is_overbooked: Optional[bool] = None
    deficit: Optional[int] = None

    contributions: List[StockContribution] = Field(default_factory=list)

    @property
    def is_known(self) -> bool:
        return self.status == AvailabilityStatus.OK


class BookingDetail(BaseModel):
    model_config = {"frozen": True}

    event_id: UUID
    event_name: str
    project_id: UUID
    project_name: str
    quantity: int
    date: date
    location: Optional[str] = None


class ConflictSolution(BaseModel):
    model_config = {"frozen": True}

    type: str = Field(..., description="subrental, reduce_quantity, substitute or reschedule")
    description: str
    estimated_cost: Optional[float] = None
    feasibility_score: int = Field(..., ge=0, le=100)


class ConflictAnalysis(BaseModel):
    model_config = {"frozen": True}

    equipment_id: UUID
    equipment_name: Optional[str] = None
    date: date
    severity: Severity
    deficit: int
    deficit_percentage: float
    affected_bookings: List[BookingDetail]
    potential_solutions: List[ConflictSolution] = Field(default_factory=list)
    stock_breakdown: EffectiveStock


class UnknownAvailability(BaseModel):
    """An (equipment, date) pair whose availability could not be determined"""
    model_config = {"frozen": True}

    equipment_id: UUID
    equipment_name: Optional[str] = None
    date: date


class ConflictReport(BaseModel):
    """Conflicts in scope plus the pairs that could not be checked

    ``status`` is ``unknown`` whenever ``unknown`` is non-empty: the absence of
    a conflict for those pairs means nothing.
    """
    model_config = {"frozen": True}

    status: AvailabilityStatus = AvailabilityStatus.OK
    conflicts: List[ConflictAnalysis] = Field(default_factory=list)
    unknown: List[UnknownAvailability] = Field(default_factory=list)


class StockBreakdown(BaseModel):
    equipment_id: UUID
    date: date
    effective_stock: EffectiveStock
    contributions: List[StockContribution]
    booking_details: List[BookingDetail]


class ProviderSuggestion(BaseModel):
    model_config = {"frozen": True}

    provider_id: UUID
    company_name: str
    geographic_coverage: List[str] = Field(default_factory=list)
    reliability_rating: Optional[float] = None
    preferred_status: bool = False
    contact_info: Optional[Dict[str, Any]] = None
    geographic_match: bool
    estimated_cost: float
    availability_confidence: int = Field(..., ge=0, le=100)


class SubrentalSuggestion(BaseModel):
    model_config = {"frozen": True}

    equipment_id: UUID
    equipment_name: Optional[str] = None
    date: date
    deficit: int
    severity: Severity
    affected_bookings: List[BookingDetail]
    suggested_providers: List[ProviderSuggestion]
    estimated_cost: float
    urgency_score: int = Field(..., ge=0, le=100)


class SuggestionReport(BaseModel):
    model_config = {"frozen": True}

    status: AvailabilityStatus = AvailabilityStatus.OK
    suggestions: List[SubrentalSuggestion] = Field(default_factory=list)
    unknown: List[UnknownAvailability] = Field(default_factory=list)


class SuggestionListResponse(BaseModel):
    status: AvailabilityStatus = Field(
        AvailabilityStatus.OK,
        description="unknown when availability could not be determined for part of the window",
    )
    suggestions: List[SubrentalSuggestion]
    suggestions_by_date: Dict[date, List[SubrentalSuggestion]]
    total_conflicts: int
    affected_dates: List[date]
    unknown: List[UnknownAvailability] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    equipment_id: UUID
    date: date
    available: int = Field(..., description="Units still free after committed usage, never negative", example=3)


class OverbookedResponse(BaseModel):
    equipment_id: UUID
    date: date
    additional_usage: int = 0
    is_overbooked: bool
