from typing import Iterable, List, Mapping, Optional
import logging

from pydantic import BaseModel

from availability.schemas.stock import (
    ConflictAnalysis,
    ConflictSolution,
    EffectiveStock,
    Severity,
    SEVERITY_RANK,
)
from availability.services.booking_aggregator import BookingBucket, BookingKey

logger = logging.getLogger(__name__)


class SeverityPolicy(BaseModel):
    """Maps deficit / effective stock onto a severity tier"""
    high_ratio: float = 0.5
    medium_ratio: float = 0.2

    def classify(self, deficit: int, effective_stock: int) -> Severity:
        # With no stock at all every shortfall is maximal
        ratio = 1.0 if effective_stock <= 0 else deficit / effective_stock
        if ratio > self.high_ratio:
            return Severity.HIGH
        if ratio > self.medium_ratio:
            return Severity.MEDIUM
        return Severity.LOW


class ConflictAnalyzer:
    """Compares committed usage with effective stock and reports overbookings"""

    def __init__(self, severity_policy: Optional[SeverityPolicy] = None, daily_unit_cost: float = 150.0):
        self.severity_policy = severity_policy or SeverityPolicy()
        self.daily_unit_cost = daily_unit_cost

    def analyze(
        self,
        stock: Iterable[EffectiveStock],
        usage: Mapping[BookingKey, BookingBucket],
    ) -> List[ConflictAnalysis]:
        """Return a ConflictAnalysis for every (equipment, date) whose usage exceeds effective stock

        Pairs with unknown stock are skipped, never reported as conflicts.
        Results keep the order of ``stock``.
        """
        conflicts: List[ConflictAnalysis] = []
        skipped = 0

        for record in stock:
            if not record.is_known or record.effective_stock is None:
                skipped += 1
                logger.warning(
                    f"Skipping conflict check for equipment {record.equipment_id} on {record.date}: availability unknown"
                )
                continue

            bucket = usage.get((record.equipment_id, record.date))
            total_used = bucket.total_used if bucket is not None else 0
            deficit = max(0, total_used - record.effective_stock)
            if deficit == 0:
                continue

            breakdown = record.model_copy(update={
                "total_used": total_used,
                "available": record.effective_stock - total_used,
                "is_overbooked": True,
                "deficit": deficit,
            })
            conflicts.append(ConflictAnalysis(
                equipment_id=record.equipment_id,
                equipment_name=record.equipment_name,
                date=record.date,
                severity=self.severity_policy.classify(deficit, record.effective_stock),
                deficit=deficit,
                deficit_percentage=round(deficit / total_used * 100, 2),
                affected_bookings=list(bucket.bookings),
                potential_solutions=self.generate_solutions(deficit),
                stock_breakdown=breakdown,
            ))

        if skipped:
            logger.info(f"Conflict analysis skipped {skipped} equipment/date pairs with unknown availability")
        return conflicts

    def generate_solutions(self, deficit: int) -> List[ConflictSolution]:
        solutions = [
            ConflictSolution(
                type="subrental",
                description=f"Rent {deficit} additional units from external provider",
                estimated_cost=deficit * self.daily_unit_cost,
                feasibility_score=85,
            ),
            ConflictSolution(
                type="substitute",
                description="Use alternative compatible equipment",
                estimated_cost=0,
                feasibility_score=50,
            ),
            ConflictSolution(
                type="reschedule",
                description="Reschedule conflicting events to different dates",
                estimated_cost=0,
                feasibility_score=40,
            ),
        ]
        if deficit <= 2:
            solutions.append(ConflictSolution(
                type="reduce_quantity",
                description=f"Reduce equipment requirements by {deficit} units",
                estimated_cost=0,
                feasibility_score=60,
            ))
        return sorted(solutions, key=lambda s: s.feasibility_score, reverse=True)

    @staticmethod
    def prioritize(conflicts: Iterable[ConflictAnalysis]) -> List[ConflictAnalysis]:
        """Most severe first, then largest deficit, then earliest date; ties keep input order"""
        return sorted(
            conflicts,
            key=lambda c: (-SEVERITY_RANK[c.severity], -c.deficit, c.date),
        )
