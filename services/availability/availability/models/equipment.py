from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, CheckConstraint, Index, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from availability.db.database import Base


class Equipment(Base):
    """Rentable equipment as maintained by equipment management.

    Base stock is either the manual ``stock`` count or, for
    ``serial_numbers`` equipment, the number of serial-numbered units whose
    status is ``available``.
    """
    __tablename__ = "equipment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    stock_calculation_method = Column(String(20), nullable=False, default="manual")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="non_negative_stock"),
        CheckConstraint(
            "stock_calculation_method IN ('manual', 'serial_numbers')",
            name="stock_calculation_method_valid"
        ),
    )

    serial_numbers = relationship("EquipmentSerialNumber", back_populates="equipment")


class EquipmentSerialNumber(Base):
    __tablename__ = "equipment_serial_numbers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    equipment_id = Column(Uuid(as_uuid=True), ForeignKey('equipment.id', ondelete='CASCADE'), nullable=False)
    serial_number = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="available")

    __table_args__ = (
        Index("idx_serial_equipment_status", "equipment_id", "status"),
    )

    equipment = relationship("Equipment", back_populates="serial_numbers")
