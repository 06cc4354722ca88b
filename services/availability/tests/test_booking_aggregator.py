from availability.schemas.filters import DateRange
from availability.services.booking_aggregator import BookingAggregator
from fakes import FakeStockSource, JUNE_1, JUNE_2, JUNE_5


def test_sums_quantities_per_equipment_and_date():
    source = FakeStockSource()
    speaker = source.add_equipment("Speaker", 4)
    amp = source.add_equipment("Amp", 4)
    source.add_booking(speaker, JUNE_1, 2, event_name="Wedding")
    source.add_booking(speaker, JUNE_1, 3, event_name="Concert")
    source.add_booking(speaker, JUNE_2, 1)
    source.add_booking(amp, JUNE_1, 4)

    buckets = BookingAggregator().aggregate(source.bookings)

    assert buckets[(speaker, JUNE_1)].total_used == 5
    assert [b.event_name for b in buckets[(speaker, JUNE_1)].bookings] == ["Wedding", "Concert"]
    assert buckets[(speaker, JUNE_2)].total_used == 1
    assert buckets[(amp, JUNE_1)].total_used == 4


def test_skips_rows_outside_window_and_bad_quantities(caplog):
    source = FakeStockSource()
    speaker = source.add_equipment("Speaker", 4)
    source.add_booking(speaker, JUNE_1, 2)
    source.add_booking(speaker, JUNE_1, 0)
    negative = source.add_booking(speaker, JUNE_1, -3)
    source.add_booking(speaker, JUNE_5, 7)

    buckets = BookingAggregator().aggregate(source.bookings, DateRange(start=JUNE_1, end=JUNE_2))

    assert list(buckets) == [(speaker, JUNE_1)]
    assert buckets[(speaker, JUNE_1)].total_used == 2
    assert len(buckets[(speaker, JUNE_1)].bookings) == 1
    assert str(negative.booking_id) in caplog.text
