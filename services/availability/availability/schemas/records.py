"""Rows read from the upstream tables, as handed to the calculators"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import date


class EquipmentRecord(BaseModel):
    id: UUID
    name: str
    base_stock: int = Field(..., description="Manual stock, or available serial-numbered units")
    stock_calculation_method: str = "manual"


class BookingRecord(BaseModel):
    booking_id: UUID
    equipment_id: UUID
    event_id: UUID
    project_id: UUID
    date: date
    quantity: int
    event_name: str
    project_name: str
    location: Optional[str] = None


class SubrentalItemRecord(BaseModel):
    item_id: UUID
    order_id: UUID
    order_name: str
    equipment_id: UUID
    provider_id: UUID
    provider_name: Optional[str] = None
    start_date: date
    end_date: date
    quantity: int
    status: str


class RepairItemRecord(BaseModel):
    item_id: UUID
    order_id: UUID
    order_name: str
    equipment_id: UUID
    facility_name: Optional[str] = None
    start_date: date
    end_date: Optional[date] = Field(None, description="Actual or estimated end; None means open-ended")
    quantity: int
    status: str


class ProviderRecord(BaseModel):
    id: UUID
    company_name: str
    geographic_coverage: List[str] = Field(default_factory=list)
    reliability_rating: Optional[float] = None
    preferred_status: bool = False
    contact_info: Optional[Dict[str, Any]] = None
