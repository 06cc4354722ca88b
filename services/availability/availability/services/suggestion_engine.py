"""Triage of overbooking conflicts and ranking of external providers to cover them"""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from datetime import date
import logging

from pydantic import BaseModel

from availability.schemas.filters import DateRange
from availability.schemas.records import ProviderRecord
from availability.schemas.stock import (
    ConflictAnalysis,
    ProviderSuggestion,
    Severity,
    SubrentalSuggestion,
)

logger = logging.getLogger(__name__)

URGENCY_BY_SEVERITY = {Severity.LOW: 10, Severity.MEDIUM: 20, Severity.HIGH: 30}


class SuggestionPolicy(BaseModel):
    """Which conflicts are worth surfacing and how many providers to propose"""
    min_deficit: int = 2
    min_bookings: int = 2
    max_providers: int = 3
    daily_unit_cost: float = 150.0


class SubrentalSuggestionEngine:
    """Proposes external providers for actionable conflicts.

    Ranking is deterministic: providers are ordered preferred first, then by
    reliability rating (missing ratings count as 0), and ties keep the order
    of the provider directory.
    """

    def __init__(self, policy: Optional[SuggestionPolicy] = None):
        self.policy = policy or SuggestionPolicy()

    def is_actionable(self, conflict: ConflictAnalysis) -> bool:
        """A single-unit shortfall caused by a single event is not worth a notice"""
        if conflict.deficit <= 0:
            return False
        return (
            len(conflict.affected_bookings) >= self.policy.min_bookings
            or conflict.deficit >= self.policy.min_deficit
        )

    def suggest(
        self,
        conflicts: Iterable[ConflictAnalysis],
        providers: Sequence[ProviderRecord],
        visible_window: DateRange,
        today: Optional[date] = None,
    ) -> List[SubrentalSuggestion]:
        """Return suggestions for actionable conflicts inside the visible window, in input order"""
        today = today or date.today()
        suggestions: List[SubrentalSuggestion] = []

        for conflict in conflicts:
            if not visible_window.contains(conflict.date) or not self.is_actionable(conflict):
                continue

            location = self.primary_location(conflict)
            ranked = self.rank_providers(location, providers, conflict.deficit)
            if not ranked:
                logger.info(
                    f"No provider covers '{location}' for equipment {conflict.equipment_id} on {conflict.date}"
                )

            suggestions.append(SubrentalSuggestion(
                equipment_id=conflict.equipment_id,
                equipment_name=conflict.equipment_name,
                date=conflict.date,
                deficit=conflict.deficit,
                severity=conflict.severity,
                affected_bookings=conflict.affected_bookings,
                suggested_providers=ranked,
                estimated_cost=self.estimate_cost(conflict.deficit),
                urgency_score=self.urgency_score(conflict, today),
            ))

        return suggestions

    @staticmethod
    def primary_location(conflict: ConflictAnalysis) -> Optional[str]:
        if not conflict.affected_bookings:
            return None
        location = conflict.affected_bookings[0].location
        return location.strip() if location and location.strip() else None

    def rank_providers(
        self,
        location: Optional[str],
        providers: Sequence[ProviderRecord],
        deficit: int,
    ) -> List[ProviderSuggestion]:
        matching = self.match_providers(location, providers)
        # sorted() is stable, so equal keys keep directory order
        matching = sorted(
            matching,
            key=lambda pair: (not pair[0].preferred_status, -(pair[0].reliability_rating or 0)),
        )
        return [
            ProviderSuggestion(
                provider_id=provider.id,
                company_name=provider.company_name,
                geographic_coverage=provider.geographic_coverage,
                reliability_rating=provider.reliability_rating,
                preferred_status=provider.preferred_status,
                contact_info=provider.contact_info,
                geographic_match=geographic_match,
                estimated_cost=self.estimate_provider_cost(provider, deficit),
                availability_confidence=self.availability_confidence(provider),
            )
            for provider, geographic_match in matching[: self.policy.max_providers]
        ]

    @staticmethod
    def match_providers(
        location: Optional[str],
        providers: Sequence[ProviderRecord],
    ) -> List[Tuple[ProviderRecord, bool]]:
        """Providers eligible for a location, paired with whether they are known to serve it

        Providers without coverage serve everywhere. Without a location there is
        nothing to filter on, so every provider is eligible.
        """
        eligible: List[Tuple[ProviderRecord, bool]] = []
        needle = location.lower() if location else None

        for provider in providers:
            coverage = [c.strip().lower() for c in provider.geographic_coverage if c and c.strip()]
            if not coverage:
                eligible.append((provider, True))
            elif needle is None:
                eligible.append((provider, False))
            elif any(region in needle or needle in region for region in coverage):
                eligible.append((provider, True))

        return eligible

    def estimate_cost(self, quantity: int) -> float:
        return quantity * self.policy.daily_unit_cost

    def estimate_provider_cost(self, provider: ProviderRecord, quantity: int) -> float:
        rating = provider.reliability_rating if provider.reliability_rating is not None else 3
        preferred_multiplier = 1.1 if provider.preferred_status else 1.0
        reliability_multiplier = 1 + (rating - 3) * 0.1
        return float(round(self.estimate_cost(quantity) * preferred_multiplier * reliability_multiplier))

    @staticmethod
    def availability_confidence(provider: ProviderRecord) -> int:
        rating = provider.reliability_rating if provider.reliability_rating is not None else 3
        confidence = 70 + (15 if provider.preferred_status else 0) + rating * 5
        return int(min(100, max(0, confidence)))

    @staticmethod
    def urgency_score(conflict: ConflictAnalysis, today: date) -> int:
        score = URGENCY_BY_SEVERITY[conflict.severity]

        days_until = (conflict.date - today).days
        if days_until <= 3:
            score += 30
        elif days_until <= 7:
            score += 20
        elif days_until <= 14:
            score += 10

        total_used = conflict.stock_breakdown.total_used or 0
        ratio = conflict.deficit / total_used if total_used else 1.0
        if ratio >= 0.5:
            score += 30
        elif ratio >= 0.3:
            score += 20
        elif ratio >= 0.1:
            score += 10

        return min(100, score)

    @staticmethod
    def group_by_date(suggestions: Iterable[SubrentalSuggestion]) -> Dict[date, List[SubrentalSuggestion]]:
        grouped: Dict[date, List[SubrentalSuggestion]] = {}
        for suggestion in suggestions:
            grouped.setdefault(suggestion.date, []).append(suggestion)
        return grouped
