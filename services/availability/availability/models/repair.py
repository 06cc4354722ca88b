from sqlalchemy import Column, String, Integer, Text, Date, Numeric, ForeignKey, CheckConstraint, Index, Uuid
from sqlalchemy.orm import relationship
import uuid
from availability.db.database import Base


class RepairOrder(Base):
    """Equipment taken out of service while at a repair facility

    The order reduces stock from ``start_date`` until ``actual_end_date``,
    falling back to ``estimated_end_date``; with neither set it is open-ended.
    """
    __tablename__ = "repair_orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    facility_name = Column(Text)
    start_date = Column(Date, nullable=False)
    estimated_end_date = Column(Date)
    actual_end_date = Column(Date)
    total_cost = Column(Numeric(12, 2))
    status = Column(String(20), nullable=False, default="in_repair")

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_repair', 'completed', 'cancelled')",
            name="repair_status_valid"
        ),
    )

    items = relationship("RepairOrderItem", back_populates="order")


class RepairOrderItem(Base):
    __tablename__ = "repair_order_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    repair_order_id = Column(Uuid(as_uuid=True), ForeignKey('repair_orders.id', ondelete='CASCADE'), nullable=False)
    equipment_id = Column(Uuid(as_uuid=True), ForeignKey('equipment.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    issue_description = Column(Text)

    __table_args__ = (
        Index("idx_repair_items_equipment", "equipment_id"),
    )

    order = relationship("RepairOrder", back_populates="items")
