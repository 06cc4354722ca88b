from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID
from datetime import date
import logging

from pydantic import BaseModel, Field

from availability.exceptions import InconsistentInput
from availability.schemas.filters import DateRange
from availability.schemas.records import BookingRecord
from availability.schemas.stock import BookingDetail

logger = logging.getLogger(__name__)

BookingKey = Tuple[UUID, date]


class BookingBucket(BaseModel):
    """Committed usage of one equipment on one date"""
    total_used: int = 0
    bookings: List[BookingDetail] = Field(default_factory=list)


class BookingAggregator:
    """Groups booking rows by (equipment, date), summing quantities"""

    def aggregate(
        self,
        bookings: Iterable[BookingRecord],
        window: Optional[DateRange] = None
    ) -> Dict[BookingKey, BookingBucket]:
        buckets: Dict[BookingKey, BookingBucket] = {}

        for booking in bookings:
            if window is not None and not window.contains(booking.date):
                continue

            try:
                self._validate(booking)
            except InconsistentInput as e:
                logger.warning(str(e))
                continue

            if booking.quantity == 0:
                logger.debug(f"Ignoring zero-quantity booking {booking.booking_id}")
                continue

            key = (booking.equipment_id, booking.date)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = BookingBucket()

            bucket.total_used += booking.quantity
            bucket.bookings.append(BookingDetail(
                event_id=booking.event_id,
                event_name=booking.event_name,
                project_id=booking.project_id,
                project_name=booking.project_name,
                quantity=booking.quantity,
                date=booking.date,
                location=booking.location,
            ))

        return buckets

    @staticmethod
    def _validate(booking: BookingRecord) -> None:
        if booking.quantity < 0:
            raise InconsistentInput("booking", booking.booking_id, f"negative quantity {booking.quantity}")
