from datetime import date, timedelta
from typing import Optional
from uuid import uuid4

from availability.schemas.filters import DateRange
from availability.schemas.records import ProviderRecord
from availability.schemas.stock import BookingDetail, EffectiveStock, Severity
from availability.services.booking_aggregator import BookingBucket
from availability.services.conflict_analyzer import ConflictAnalyzer
from availability.services.suggestion_engine import SubrentalSuggestionEngine, SuggestionPolicy
from fakes import FakeStockSource, JUNE_1, JUNE_2, JUNE_5

JUNE = DateRange(start=JUNE_1, end=date(2025, 6, 30))
TODAY = date(2025, 5, 1)


def _conflict(effective: int, quantities, day: date = JUNE_2, location: Optional[str] = "Berlin"):
    stock = EffectiveStock(
        equipment_id=uuid4(),
        equipment_name="Subwoofer",
        date=day,
        base_stock=effective,
        virtual_additions=0,
        virtual_reductions=0,
        effective_stock=effective,
    )
    bucket = BookingBucket(total_used=sum(quantities), bookings=[
        BookingDetail(
            event_id=uuid4(),
            event_name=f"Event {i}",
            project_id=uuid4(),
            project_name="Project",
            quantity=quantity,
            date=day,
            location=location,
        )
        for i, quantity in enumerate(quantities)
    ])
    (conflict,) = ConflictAnalyzer().analyze([stock], {(stock.equipment_id, day): bucket})
    return conflict


def _provider(name: str, coverage=(), rating=None, preferred=False) -> ProviderRecord:
    return ProviderRecord(
        id=uuid4(),
        company_name=name,
        geographic_coverage=list(coverage),
        reliability_rating=rating,
        preferred_status=preferred,
    )


def test_single_booking_with_deficit_of_one_is_not_actionable():
    engine = SubrentalSuggestionEngine()

    assert not engine.is_actionable(_conflict(5, [6]))
    assert engine.is_actionable(_conflict(5, [7]))
    assert engine.is_actionable(_conflict(7, [5, 3]))


def test_triage_thresholds_are_configurable():
    engine = SubrentalSuggestionEngine(SuggestionPolicy(min_deficit=5, min_bookings=3))

    assert not engine.is_actionable(_conflict(5, [7]))
    assert not engine.is_actionable(_conflict(7, [5, 3]))
    assert engine.is_actionable(_conflict(5, [10]))


def test_suggest_keeps_input_order_and_window():
    engine = SubrentalSuggestionEngine()
    later = _conflict(5, [10], day=JUNE_5)
    earlier = _conflict(7, [5, 3], day=JUNE_2)
    outside = _conflict(5, [10], day=date(2025, 7, 1))
    skipped = _conflict(5, [6], day=JUNE_1)

    suggestions = engine.suggest([later, earlier, outside, skipped], [], JUNE, today=TODAY)

    assert [s.date for s in suggestions] == [JUNE_5, JUNE_2]
    assert suggestions[0].estimated_cost == 750
    assert suggestions[0].suggested_providers == []


def test_providers_ranked_preferred_then_rating():
    engine = SubrentalSuggestionEngine()
    providers = [
        _provider("Unrated"),
        _provider("Solid", rating=4),
        _provider("Favourite", rating=3, preferred=True),
        _provider("Best", rating=5),
        _provider("Also solid", rating=4),
    ]

    ranked = engine.rank_providers("Berlin", providers, 2)

    assert [p.company_name for p in ranked] == ["Favourite", "Best", "Solid"]


def test_max_providers_is_configurable():
    engine = SubrentalSuggestionEngine(SuggestionPolicy(max_providers=5))
    providers = [_provider(f"P{i}", rating=i) for i in range(7)]

    ranked = engine.rank_providers(None, providers, 2)

    assert [p.company_name for p in ranked] == ["P6", "P5", "P4", "P3", "P2"]


def test_geographic_matching():
    providers = [
        _provider("Berlin only", coverage=["berlin"]),
        _provider("Hamburg only", coverage=["Hamburg"]),
        _provider("Anywhere"),
        _provider("Brandenburg area", coverage=["Berlin Mitte", "Potsdam"]),
    ]

    berlin = dict((p.company_name, match) for p, match in SubrentalSuggestionEngine.match_providers("Berlin", providers))
    assert berlin == {"Berlin only": True, "Anywhere": True, "Brandenburg area": True}

    nowhere = dict((p.company_name, match) for p, match in SubrentalSuggestionEngine.match_providers(None, providers))
    assert nowhere == {"Berlin only": False, "Hamburg only": False, "Anywhere": True, "Brandenburg area": False}


def test_primary_location_is_first_affected_booking():
    conflict = _conflict(5, [10], location="  ")

    assert SubrentalSuggestionEngine.primary_location(conflict) is None
    assert SubrentalSuggestionEngine.primary_location(_conflict(5, [10], location="Köln")) == "Köln"


def test_provider_cost_and_confidence():
    engine = SubrentalSuggestionEngine()

    preferred = _provider("Preferred", rating=5, preferred=True)
    assert engine.estimate_provider_cost(preferred, 2) == 396.0
    assert engine.availability_confidence(preferred) == 100

    plain = _provider("Plain")
    assert engine.estimate_provider_cost(plain, 2) == 300.0
    assert engine.availability_confidence(plain) == 85

    poor = _provider("Poor", rating=1)
    assert engine.estimate_provider_cost(poor, 2) == 240.0
    assert engine.availability_confidence(poor) == 75


def test_urgency_score():
    engine = SubrentalSuggestionEngine()
    high = _conflict(5, [10], day=JUNE_5)           # high, deficit ratio 0.5
    low = _conflict(7, [5, 3], day=JUNE_2)          # low, deficit ratio 0.125

    assert engine.urgency_score(high, JUNE_5 - timedelta(days=2)) == 90
    assert engine.urgency_score(high, JUNE_5 - timedelta(days=30)) == 60
    assert engine.urgency_score(low, JUNE_2 - timedelta(days=10)) == 30
    assert high.severity == Severity.HIGH


def test_group_by_date():
    engine = SubrentalSuggestionEngine()
    source = FakeStockSource()
    source.add_provider("Anyone")
    conflicts = [_conflict(5, [10], day=JUNE_5), _conflict(7, [5, 3]), _conflict(4, [9], day=JUNE_5)]

    grouped = engine.group_by_date(engine.suggest(conflicts, source.providers, JUNE, today=TODAY))

    assert sorted(grouped) == [JUNE_2, JUNE_5]
    assert len(grouped[JUNE_5]) == 2
