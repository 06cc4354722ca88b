from datetime import date
from uuid import uuid4

import pytest

from availability.schemas.stock import AvailabilityStatus, BookingDetail, EffectiveStock, Severity
from availability.services.booking_aggregator import BookingBucket
from availability.services.conflict_analyzer import ConflictAnalyzer, SeverityPolicy
from fakes import JUNE_1, JUNE_2, JUNE_3


def _stock(effective: int, day: date = JUNE_1, equipment_id=None) -> EffectiveStock:
    return EffectiveStock(
        equipment_id=equipment_id or uuid4(),
        equipment_name="Wireless mic",
        date=day,
        base_stock=effective,
        virtual_additions=0,
        virtual_reductions=0,
        effective_stock=effective,
        total_used=0,
        available=effective,
        is_overbooked=False,
        deficit=0,
    )


def _usage(stock: EffectiveStock, *quantities: int):
    bucket = BookingBucket()
    for quantity in quantities:
        bucket.total_used += quantity
        bucket.bookings.append(BookingDetail(
            event_id=uuid4(),
            event_name="Show",
            project_id=uuid4(),
            project_name="Tour",
            quantity=quantity,
            date=stock.date,
        ))
    return {(stock.equipment_id, stock.date): bucket}


@pytest.mark.parametrize("deficit, expected", [
    (1, Severity.LOW),
    (2, Severity.LOW),
    (3, Severity.MEDIUM),
    (5, Severity.MEDIUM),
    (6, Severity.HIGH),
    (40, Severity.HIGH),
])
def test_severity_thresholds(deficit, expected):
    assert SeverityPolicy().classify(deficit, 10) == expected


def test_zero_effective_stock_is_high():
    assert SeverityPolicy().classify(1, 0) == Severity.HIGH


def test_severity_never_decreases_with_deficit():
    policy = SeverityPolicy()
    ranks = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}
    for effective in range(1, 25):
        tiers = [ranks[policy.classify(deficit, effective)] for deficit in range(1, 60)]
        assert tiers == sorted(tiers)


def test_custom_thresholds():
    policy = SeverityPolicy(high_ratio=0.9, medium_ratio=0.05)

    assert policy.classify(1, 10) == Severity.MEDIUM
    assert policy.classify(6, 10) == Severity.MEDIUM
    assert policy.classify(10, 10) == Severity.HIGH


def test_reports_only_overbooked_pairs():
    analyzer = ConflictAnalyzer()
    ok = _stock(7)
    over = _stock(7, day=JUNE_2)
    usage = {**_usage(ok, 4, 3), **_usage(over, 5, 3)}

    conflicts = analyzer.analyze([ok, over], usage)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.date == JUNE_2
    assert conflict.deficit == 1
    assert conflict.severity == Severity.LOW
    assert conflict.deficit_percentage == 12.5
    assert len(conflict.affected_bookings) == 2
    assert conflict.stock_breakdown.total_used == 8
    assert conflict.stock_breakdown.available == -1
    assert conflict.stock_breakdown.is_overbooked is True


def test_unknown_stock_is_never_a_conflict():
    unknown = EffectiveStock(equipment_id=uuid4(), date=JUNE_1, status=AvailabilityStatus.UNKNOWN)
    usage = {(unknown.equipment_id, JUNE_1): BookingBucket(total_used=50)}

    assert ConflictAnalyzer().analyze([unknown], usage) == []


def test_small_deficit_offers_reducing_quantity():
    solutions = ConflictAnalyzer(daily_unit_cost=100).generate_solutions(2)

    assert [s.type for s in solutions] == ["subrental", "reduce_quantity", "substitute", "reschedule"]
    assert solutions[0].estimated_cost == 200
    assert solutions[0].feasibility_score == 85


def test_large_deficit_does_not_offer_reducing_quantity():
    solutions = ConflictAnalyzer().generate_solutions(3)

    assert "reduce_quantity" not in [s.type for s in solutions]
    assert solutions[0].estimated_cost == 450


def test_prioritize_orders_by_severity_deficit_then_date():
    analyzer = ConflictAnalyzer()
    equipment_id = uuid4()
    stocks = [_stock(10, day, equipment_id) for day in (JUNE_1, JUNE_2, JUNE_3)]
    usage = {}
    usage.update(_usage(stocks[0], 11))   # deficit 1, low
    usage.update(_usage(stocks[1], 20))   # deficit 10, high
    usage.update(_usage(stocks[2], 11))   # deficit 1, low

    ordered = analyzer.prioritize(analyzer.analyze(stocks, usage))

    assert [(c.date, c.severity) for c in ordered] == [
        (JUNE_2, Severity.HIGH),
        (JUNE_1, Severity.LOW),
        (JUNE_3, Severity.LOW),
    ]
