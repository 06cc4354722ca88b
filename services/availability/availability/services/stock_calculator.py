"""Virtual stock: base stock plus confirmed subrentals minus active repairs, per equipment and date"""
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID
from datetime import date
import logging

from availability.exceptions import InconsistentInput
from availability.schemas.filters import DateRange
from availability.schemas.records import EquipmentRecord, SubrentalItemRecord, RepairItemRecord
from availability.schemas.stock import AvailabilityStatus, EffectiveStock, StockContribution
from availability.services.booking_aggregator import BookingBucket, BookingKey
from availability.services.stock_source import ACTIVE_SUBRENTAL_STATUSES, ACTIVE_REPAIR_STATUSES

logger = logging.getLogger(__name__)

# (first day, last day or None for open-ended, contribution)
_Interval = Tuple[date, Optional[date], StockContribution]


class VirtualStockCalculator:
    """Computes EffectiveStock records from pre-fetched upstream rows.

    Pure: all reads happen before the calculator is called, so a batch over
    many dates costs one pass over each equipment's orders rather than one
    query per date.
    """

    def calculate_batch(
        self,
        equipment_ids: Sequence[UUID],
        window: DateRange,
        equipment: Mapping[UUID, EquipmentRecord],
        subrental_items: Iterable[SubrentalItemRecord],
        repair_items: Iterable[RepairItemRecord],
        usage: Optional[Mapping[BookingKey, BookingBucket]] = None,
    ) -> List[EffectiveStock]:
        """Return one EffectiveStock per (equipment, date), equipment order first, dates ascending"""
        usage = usage or {}
        additions = self._group_subrentals(subrental_items)
        reductions = self._group_repairs(repair_items)

        results: List[EffectiveStock] = []
        for equipment_id in equipment_ids:
            record = equipment.get(equipment_id)
            if record is None:
                logger.warning(f"Equipment {equipment_id} not found in directory; availability unknown")
                results.extend(unknown_stock([equipment_id], window))
                continue

            for day in window.iter_dates():
                results.append(self._calculate_day(
                    record,
                    day,
                    additions.get(equipment_id, []),
                    reductions.get(equipment_id, []),
                    usage.get((equipment_id, day)),
                ))
        return results

    def calculate(
        self,
        record: EquipmentRecord,
        day: date,
        subrental_items: Iterable[SubrentalItemRecord],
        repair_items: Iterable[RepairItemRecord],
        usage: Optional[BookingBucket] = None,
    ) -> EffectiveStock:
        """EffectiveStock of one equipment on one date"""
        results = self.calculate_batch(
            [record.id],
            DateRange.single(day),
            {record.id: record},
            subrental_items,
            repair_items,
            {(record.id, day): usage} if usage is not None else None,
        )
        return results[0]

    def _calculate_day(
        self,
        record: EquipmentRecord,
        day: date,
        additions: List[_Interval],
        reductions: List[_Interval],
        usage: Optional[BookingBucket],
    ) -> EffectiveStock:
        contributions: List[StockContribution] = []
        virtual_additions = 0
        for start, end, contribution in additions:
            if _covers(start, end, day):
                virtual_additions += contribution.quantity
                contributions.append(contribution)

        virtual_reductions = 0
        for start, end, contribution in reductions:
            if _covers(start, end, day):
                virtual_reductions += -contribution.quantity
                contributions.append(contribution)

        effective_stock = max(0, record.base_stock + virtual_additions - virtual_reductions)
        total_used = usage.total_used if usage is not None else 0

        return EffectiveStock(
            equipment_id=record.id,
            equipment_name=record.name,
            date=day,
            status=AvailabilityStatus.OK,
            base_stock=record.base_stock,
            virtual_additions=virtual_additions,
            virtual_reductions=virtual_reductions,
            effective_stock=effective_stock,
            total_used=total_used,
            available=effective_stock - total_used,
            is_overbooked=total_used > effective_stock,
            deficit=max(0, total_used - effective_stock),
            contributions=contributions,
        )

    def _group_subrentals(self, items: Iterable[SubrentalItemRecord]) -> Dict[UUID, List[_Interval]]:
        grouped: Dict[UUID, List[_Interval]] = defaultdict(list)
        for item in items:
            if item.status not in ACTIVE_SUBRENTAL_STATUSES:
                continue
            try:
                _check_interval("subrental order item", item.item_id, item.start_date, item.end_date, item.quantity)
            except InconsistentInput as e:
                logger.warning(str(e))
                continue
            grouped[item.equipment_id].append((
                item.start_date,
                item.end_date,
                StockContribution(
                    type="subrental",
                    order_id=item.order_id,
                    order_name=item.order_name,
                    quantity=item.quantity,
                    start_date=item.start_date,
                    end_date=item.end_date,
                    provider_name=item.provider_name,
                ),
            ))
        return grouped

    def _group_repairs(self, items: Iterable[RepairItemRecord]) -> Dict[UUID, List[_Interval]]:
        grouped: Dict[UUID, List[_Interval]] = defaultdict(list)
        for item in items:
            if item.status not in ACTIVE_REPAIR_STATUSES:
                continue
            try:
                _check_interval("repair order item", item.item_id, item.start_date, item.end_date, item.quantity)
            except InconsistentInput as e:
                logger.warning(str(e))
                continue
            grouped[item.equipment_id].append((
                item.start_date,
                item.end_date,
                StockContribution(
                    type="repair",
                    order_id=item.order_id,
                    order_name=item.order_name,
                    quantity=-item.quantity,
                    start_date=item.start_date,
                    end_date=item.end_date,
                    facility_name=item.facility_name,
                ),
            ))
        return grouped


def unknown_stock(equipment_ids: Iterable[UUID], window: DateRange, names: Optional[Mapping[UUID, str]] = None) -> List[EffectiveStock]:
    """Placeholder records for pairs whose availability could not be determined"""
    names = names or {}
    return [
        EffectiveStock(
            equipment_id=equipment_id,
            equipment_name=names.get(equipment_id),
            date=day,
            status=AvailabilityStatus.UNKNOWN,
        )
        for equipment_id in equipment_ids
        for day in window.iter_dates()
    ]


def _covers(start: date, end: Optional[date], day: date) -> bool:
    return start <= day and (end is None or day <= end)


def _check_interval(record_type: str, record_id, start: date, end: Optional[date], quantity: int) -> None:
    if end is not None and end < start:
        raise InconsistentInput(record_type, record_id, f"end date {end} before start date {start}")
    if quantity < 0:
        raise InconsistentInput(record_type, record_id, f"negative quantity {quantity}")
