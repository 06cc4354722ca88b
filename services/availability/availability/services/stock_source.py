"""Bulk readers over the upstream equipment, booking, subrental, repair and provider tables"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Sequence
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from availability.exceptions import UpstreamUnavailable
from availability.models.equipment import Equipment, EquipmentSerialNumber
from availability.models.booking import Project, ProjectEvent, ProjectEventEquipment
from availability.models.subrental import SubrentalOrder, SubrentalOrderItem
from availability.models.repair import RepairOrder, RepairOrderItem
from availability.models.provider import ExternalProvider
from availability.schemas.filters import DateRange
from availability.schemas.records import (
    EquipmentRecord,
    BookingRecord,
    SubrentalItemRecord,
    RepairItemRecord,
    ProviderRecord,
)

logger = logging.getLogger(__name__)

ACTIVE_SUBRENTAL_STATUSES = ("confirmed", "delivered")
ACTIVE_REPAIR_STATUSES = ("in_repair",)
CANCELLED_EVENT_STATUS = "cancelled"
SERIAL_AVAILABLE_STATUS = "available"


class StockDataSource(ABC):
    """Abstract read interface over the upstream tables.

    Every method is one bulk query for a set of equipment ids and a date
    window. Implementations raise ``UpstreamUnavailable`` when the store
    cannot be read.
    """

    @abstractmethod
    def list_equipment_ids(self) -> List[UUID]:
        pass

    @abstractmethod
    def fetch_equipment(self, equipment_ids: Sequence[UUID]) -> Dict[UUID, EquipmentRecord]:
        pass

    @abstractmethod
    def fetch_bookings(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[BookingRecord]:
        pass

    @abstractmethod
    def fetch_subrental_items(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[SubrentalItemRecord]:
        """Items of confirmed/delivered orders whose interval overlaps the window"""
        pass

    @abstractmethod
    def fetch_repair_items(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[RepairItemRecord]:
        """Items of in-repair orders whose interval overlaps the window"""
        pass

    @abstractmethod
    def fetch_providers(self) -> List[ProviderRecord]:
        pass


class SqlAlchemyStockSource(StockDataSource):
    """Stock data source backed by the service database"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _run(self, source: str, query: Callable[[Session], object]):
        db = self.session_factory()
        try:
            return query(db)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {source}: {e}", exc_info=True)
            raise UpstreamUnavailable(source, str(e)) from e
        finally:
            db.close()

    def list_equipment_ids(self) -> List[UUID]:
        def query(db: Session):
            return [row[0] for row in db.query(Equipment.id).order_by(Equipment.name, Equipment.id).all()]

        return self._run("equipment", query)

    def fetch_equipment(self, equipment_ids: Sequence[UUID]) -> Dict[UUID, EquipmentRecord]:
        if not equipment_ids:
            return {}

        def query(db: Session):
            serial_counts = (
                db.query(
                    EquipmentSerialNumber.equipment_id.label("equipment_id"),
                    func.count(EquipmentSerialNumber.id).label("available_units"),
                )
                .filter(
                    EquipmentSerialNumber.equipment_id.in_(list(equipment_ids)),
                    EquipmentSerialNumber.status == SERIAL_AVAILABLE_STATUS,
                )
                .group_by(EquipmentSerialNumber.equipment_id)
                .subquery()
            )
            rows = (
                db.query(Equipment, func.coalesce(serial_counts.c.available_units, 0))
                .outerjoin(serial_counts, Equipment.id == serial_counts.c.equipment_id)
                .filter(Equipment.id.in_(list(equipment_ids)))
                .all()
            )
            equipment = {}
            for item, available_units in rows:
                if item.stock_calculation_method == "serial_numbers":
                    base_stock = int(available_units or 0)
                else:
                    base_stock = int(item.stock or 0)
                equipment[item.id] = EquipmentRecord(
                    id=item.id,
                    name=item.name,
                    base_stock=base_stock,
                    stock_calculation_method=item.stock_calculation_method,
                )
            return equipment

        return self._run("equipment", query)

    def fetch_bookings(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[BookingRecord]:
        if not equipment_ids:
            return []

        def query(db: Session):
            rows = (
                db.query(ProjectEventEquipment, ProjectEvent, Project)
                .join(ProjectEvent, ProjectEventEquipment.event_id == ProjectEvent.id)
                .join(Project, ProjectEvent.project_id == Project.id)
                .filter(
                    ProjectEventEquipment.equipment_id.in_(list(equipment_ids)),
                    ProjectEvent.date >= window.start,
                    ProjectEvent.date <= window.end,
                    ProjectEvent.status != CANCELLED_EVENT_STATUS,
                )
                .order_by(ProjectEvent.date, ProjectEvent.name, ProjectEventEquipment.id)
                .all()
            )
            return [
                BookingRecord(
                    booking_id=booking.id,
                    equipment_id=booking.equipment_id,
                    event_id=event.id,
                    project_id=project.id,
                    date=event.date,
                    quantity=booking.quantity or 0,
                    event_name=event.name,
                    project_name=project.name,
                    location=event.location,
                )
                for booking, event, project in rows
            ]

        return self._run("bookings", query)

    def fetch_subrental_items(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[SubrentalItemRecord]:
        if not equipment_ids:
            return []

        def query(db: Session):
            rows = (
                db.query(SubrentalOrderItem, SubrentalOrder, ExternalProvider.company_name)
                .join(SubrentalOrder, SubrentalOrderItem.subrental_order_id == SubrentalOrder.id)
                .outerjoin(ExternalProvider, SubrentalOrder.provider_id == ExternalProvider.id)
                .filter(
                    SubrentalOrderItem.equipment_id.in_(list(equipment_ids)),
                    SubrentalOrder.status.in_(ACTIVE_SUBRENTAL_STATUSES),
                    SubrentalOrder.start_date <= window.end,
                    SubrentalOrder.end_date >= window.start,
                )
                .order_by(SubrentalOrder.start_date, SubrentalOrderItem.id)
                .all()
            )
            return [
                SubrentalItemRecord(
                    item_id=item.id,
                    order_id=order.id,
                    order_name=order.name,
                    equipment_id=item.equipment_id,
                    provider_id=order.provider_id,
                    provider_name=provider_name,
                    start_date=order.start_date,
                    end_date=order.end_date,
                    quantity=item.quantity or 0,
                    status=order.status,
                )
                for item, order, provider_name in rows
            ]

        return self._run("subrental_orders", query)

    def fetch_repair_items(self, equipment_ids: Sequence[UUID], window: DateRange) -> List[RepairItemRecord]:
        if not equipment_ids:
            return []

        def query(db: Session):
            end_date = func.coalesce(RepairOrder.actual_end_date, RepairOrder.estimated_end_date)
            rows = (
                db.query(RepairOrderItem, RepairOrder, end_date)
                .join(RepairOrder, RepairOrderItem.repair_order_id == RepairOrder.id)
                .filter(
                    RepairOrderItem.equipment_id.in_(list(equipment_ids)),
                    RepairOrder.status.in_(ACTIVE_REPAIR_STATUSES),
                    RepairOrder.start_date <= window.end,
                    (end_date.is_(None)) | (end_date >= window.start),
                )
                .order_by(RepairOrder.start_date, RepairOrderItem.id)
                .all()
            )
            return [
                RepairItemRecord(
                    item_id=item.id,
                    order_id=order.id,
                    order_name=order.name,
                    equipment_id=item.equipment_id,
                    facility_name=order.facility_name,
                    start_date=order.start_date,
                    end_date=order.actual_end_date or order.estimated_end_date,
                    quantity=item.quantity or 0,
                    status=order.status,
                )
                for item, order, _ in rows
            ]

        return self._run("repair_orders", query)

    def fetch_providers(self) -> List[ProviderRecord]:
        def query(db: Session):
            providers = db.query(ExternalProvider).order_by(ExternalProvider.company_name, ExternalProvider.id).all()
            return [
                ProviderRecord(
                    id=provider.id,
                    company_name=provider.company_name,
                    geographic_coverage=[c for c in (provider.geographic_coverage or []) if isinstance(c, str)],
                    reliability_rating=provider.reliability_rating,
                    preferred_status=bool(provider.preferred_status),
                    contact_info=provider.contact_info,
                )
                for provider in providers
            ]

        return self._run("external_providers", query)
