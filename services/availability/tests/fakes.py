"""In-memory stand-ins for the upstream tables"""
from collections import Counter
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Set
from uuid import UUID, uuid4
import time

from availability.exceptions import UpstreamUnavailable
from availability.schemas.filters import DateRange
from availability.schemas.records import (
    BookingRecord,
    EquipmentRecord,
    ProviderRecord,
    RepairItemRecord,
    SubrentalItemRecord,
)
from availability.services.stock_source import (
    ACTIVE_REPAIR_STATUSES,
    ACTIVE_SUBRENTAL_STATUSES,
    StockDataSource,
)

JUNE_1 = date(2025, 6, 1)
JUNE_2 = date(2025, 6, 2)
JUNE_3 = date(2025, 6, 3)
JUNE_5 = date(2025, 6, 5)
JUNE_10 = date(2025, 6, 10)


class FakeStockSource(StockDataSource):
    """Applies the same window and status filters as SqlAlchemyStockSource"""

    def __init__(self):
        self.equipment: Dict[UUID, EquipmentRecord] = {}
        self.bookings: List[BookingRecord] = []
        self.subrental_items: List[SubrentalItemRecord] = []
        self.repair_items: List[RepairItemRecord] = []
        self.providers: List[ProviderRecord] = []

        self.unavailable: Set[str] = set()
        self.delay = 0.0
        self.on_fetch: Optional[Callable[[str], None]] = None
        self.calls: Counter = Counter()

    # Builders

    def add_equipment(self, name: str, stock: int) -> UUID:
        equipment_id = uuid4()
        self.equipment[equipment_id] = EquipmentRecord(id=equipment_id, name=name, base_stock=stock)
        return equipment_id

    def add_booking(
        self,
        equipment_id: UUID,
        day: date,
        quantity: int,
        event_name: str = "Event",
        project_id: Optional[UUID] = None,
        location: Optional[str] = None,
    ) -> BookingRecord:
        booking = BookingRecord(
            booking_id=uuid4(),
            equipment_id=equipment_id,
            event_id=uuid4(),
            project_id=project_id or uuid4(),
            date=day,
            quantity=quantity,
            event_name=event_name,
            project_name=f"{event_name} project",
            location=location,
        )
        self.bookings.append(booking)
        return booking

    def add_subrental(
        self,
        equipment_id: UUID,
        start: date,
        end: date,
        quantity: int,
        status: str = "confirmed",
    ) -> SubrentalItemRecord:
        item = SubrentalItemRecord(
            item_id=uuid4(),
            order_id=uuid4(),
            order_name="Borrow-in",
            equipment_id=equipment_id,
            provider_id=uuid4(),
            provider_name="Rent-A-Rig",
            start_date=start,
            end_date=end,
            quantity=quantity,
            status=status,
        )
        self.subrental_items.append(item)
        return item

    def add_repair(
        self,
        equipment_id: UUID,
        start: date,
        end: Optional[date],
        quantity: int,
        status: str = "in_repair",
    ) -> RepairItemRecord:
        item = RepairItemRecord(
            item_id=uuid4(),
            order_id=uuid4(),
            order_name="Service",
            equipment_id=equipment_id,
            facility_name="Workshop",
            start_date=start,
            end_date=end,
            quantity=quantity,
            status=status,
        )
        self.repair_items.append(item)
        return item

    def add_provider(
        self,
        company_name: str,
        coverage: Sequence[str] = (),
        rating: Optional[float] = None,
        preferred: bool = False,
    ) -> ProviderRecord:
        provider = ProviderRecord(
            id=uuid4(),
            company_name=company_name,
            geographic_coverage=list(coverage),
            reliability_rating=rating,
            preferred_status=preferred,
        )
        self.providers.append(provider)
        return provider

    # StockDataSource

    def _read(self, source: str) -> None:
        self.calls[source] += 1
        if self.delay:
            time.sleep(self.delay)
        if self.on_fetch is not None:
            self.on_fetch(source)
        if source in self.unavailable:
            raise UpstreamUnavailable(source, "connection refused")

    def list_equipment_ids(self) -> List[UUID]:
        self._read("equipment")
        return list(self.equipment)

    def fetch_equipment(self, equipment_ids: Sequence[UUID]) -> Dict[UUID, EquipmentRecord]:
        self._read("equipment")
        return {e: self.equipment[e] for e in equipment_ids if e in self.equipment}

    def fetch_bookings(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[BookingRecord]:
        self._read("bookings")
        wanted = set(equipment_ids)
        return [b for b in self.bookings if b.equipment_id in wanted and window.contains(b.date)]

    def fetch_subrental_items(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[SubrentalItemRecord]:
        self._read("subrental_orders")
        wanted = set(equipment_ids)
        return [
            i for i in self.subrental_items
            if i.equipment_id in wanted
            and i.status in ACTIVE_SUBRENTAL_STATUSES
            and i.start_date <= window.end
            and i.end_date >= window.start
        ]

    def fetch_repair_items(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[RepairItemRecord]:
        self._read("repair_orders")
        wanted = set(equipment_ids)
        return [
            i for i in self.repair_items
            if i.equipment_id in wanted
            and i.status in ACTIVE_REPAIR_STATUSES
            and i.start_date <= window.end
            and (i.end_date is None or i.end_date >= window.start)
        ]

    def fetch_providers(self) -> List[ProviderRecord]:
        self._read("external_providers")
        return list(self.providers)
