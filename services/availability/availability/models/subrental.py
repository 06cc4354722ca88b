from sqlalchemy import Column, String, Integer, Text, Date, Numeric, ForeignKey, CheckConstraint, Index, Uuid
from sqlalchemy.orm import relationship
import uuid
from availability.db.database import Base


class SubrentalOrder(Base):
    """Equipment borrowed in from an external provider for a date interval"""
    __tablename__ = "subrental_orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    provider_id = Column(Uuid(as_uuid=True), ForeignKey('external_providers.id'), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_cost = Column(Numeric(12, 2))
    status = Column(String(20), nullable=False, default="confirmed")
    notes = Column(Text)

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'delivered', 'returned', 'cancelled')",
            name="subrental_status_valid"
        ),
        Index("idx_subrental_orders_dates", "start_date", "end_date"),
    )

    provider = relationship("ExternalProvider")
    items = relationship("SubrentalOrderItem", back_populates="order")


class SubrentalOrderItem(Base):
    __tablename__ = "subrental_order_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subrental_order_id = Column(Uuid(as_uuid=True), ForeignKey('subrental_orders.id', ondelete='CASCADE'), nullable=False)
    equipment_id = Column(Uuid(as_uuid=True), ForeignKey('equipment.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_cost = Column(Numeric(12, 2))
    temporary_serial = Column(Text)

    __table_args__ = (
        Index("idx_subrental_items_equipment", "equipment_id"),
    )

    order = relationship("SubrentalOrder", back_populates="items")
