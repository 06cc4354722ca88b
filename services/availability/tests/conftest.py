import pytest

from availability.services.stock_cache import DerivedResultCache, InvalidationBus
from availability.services.stock_engine import StockEngine
from fakes import FakeStockSource, JUNE_1, JUNE_2, JUNE_3, JUNE_5, JUNE_10


@pytest.fixture
def source():
    return FakeStockSource()


@pytest.fixture
def rental_floor(source):
    """Equipment with base stock 5 and three overlapping situations in June 2025

    - a confirmed subrental adds 2 units on 06-01..06-03
    - 06-02: two events book 5 + 3 units
    - 06-05: a single event books 10 units
    - a repair removes 6 units on 06-10
    """
    equipment_id = source.add_equipment("Moving head", 5)
    source.add_subrental(equipment_id, JUNE_1, JUNE_3, 2)
    source.add_booking(equipment_id, JUNE_2, 5, event_name="Gala", location="Berlin Mitte")
    source.add_booking(equipment_id, JUNE_2, 3, event_name="Launch", location="Potsdam")
    source.add_booking(equipment_id, JUNE_5, 10, event_name="Festival", location="Hamburg")
    source.add_repair(equipment_id, JUNE_10, JUNE_10, 6)
    return equipment_id


@pytest.fixture
def bus():
    return InvalidationBus()


@pytest.fixture
def engine(source, bus):
    return StockEngine(source, DerivedResultCache(), bus=bus, timeout_seconds=5.0)
