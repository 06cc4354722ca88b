from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Tuple, Iterator
from uuid import UUID
from datetime import date, timedelta
from enum import Enum

from availability.schemas.stock import Severity


class DateRange(BaseModel):
    """Inclusive calendar date window"""
    start: date = Field(..., description="First day (inclusive)", example="2025-06-01")
    end: date = Field(..., description="Last day (inclusive)", example="2025-06-30")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_order(self):
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @classmethod
    def single(cls, day: date) -> "DateRange":
        return cls(start=day, end=day)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def iter_dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)


class ConflictFilter(BaseModel):
    """Scope of a conflict query.

    Exactly one of ``dates`` or ``date_range`` must be given. Usage is always
    computed across every project; ``project_ids`` only restricts which
    conflicts are returned to those touching one of the projects.
    """
    equipment_ids: Optional[List[UUID]] = Field(None, description="Restrict to these equipment ids (default: all)")
    dates: Optional[List[date]] = Field(None, description="Specific dates to analyze")
    date_range: Optional[DateRange] = Field(None, description="Inclusive date window to analyze")
    severity: Optional[List[Severity]] = Field(None, description="Only return conflicts of these severities")
    project_ids: Optional[List[UUID]] = Field(None, description="Only return conflicts affecting these projects")

    @model_validator(mode="after")
    def _check_dates(self):
        if (self.dates is None) == (self.date_range is None):
            raise ValueError("Exactly one of 'dates' or 'date_range' is required")
        if self.dates is not None and not self.dates:
            raise ValueError("'dates' must not be empty")
        if self.equipment_ids is not None and not self.equipment_ids:
            raise ValueError("'equipment_ids' must not be empty when given")
        return self

    def windows(self) -> List[DateRange]:
        """Requested days as contiguous runs, earliest first

        Sparse ``dates`` become one run per gap-free stretch, so days between
        them are never read or computed.
        """
        if self.date_range is not None:
            return [self.date_range]

        runs: List[DateRange] = []
        start = end = None
        for day in sorted(set(self.dates)):
            if end is not None and day == end + timedelta(days=1):
                end = day
                continue
            if start is not None:
                runs.append(DateRange(start=start, end=end))
            start = end = day
        runs.append(DateRange(start=start, end=end))
        return runs

    @property
    def days(self) -> int:
        """Number of distinct days in scope"""
        if self.date_range is not None:
            return self.date_range.days
        return len(set(self.dates))

    def cache_key(self) -> Tuple:
        return (
            tuple(sorted(str(e) for e in self.equipment_ids)) if self.equipment_ids else None,
            tuple(sorted(set(self.dates))) if self.dates else None,
            (self.date_range.start, self.date_range.end) if self.date_range else None,
            tuple(sorted(s.value for s in self.severity)) if self.severity else None,
            tuple(sorted(str(p) for p in self.project_ids)) if self.project_ids else None,
        )


class InvalidationKind(str, Enum):
    BOOKING = "booking"
    SUBRENTAL = "subrental"
    REPAIR = "repair"
    EQUIPMENT = "equipment"
    PROVIDER = "provider"
    ALL = "all"


class InvalidationScope(BaseModel):
    kind: InvalidationKind = Field(..., description="Which upstream table was mutated", example="booking")
    equipment_ids: Optional[List[UUID]] = Field(None, description="Equipment touched by the mutation, if known")
    project_id: Optional[UUID] = Field(None, description="Project touched by the mutation, if known")
