from sqlalchemy import Column, String, Integer, Text, Date, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
import uuid
from availability.db.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    owner_id = Column(Uuid(as_uuid=True))

    events = relationship("ProjectEvent", back_populates="project")


class ProjectEvent(Base):
    __tablename__ = "project_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid(as_uuid=True), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    location = Column(Text)
    status = Column(String(20), nullable=False, default="confirmed")

    __table_args__ = (
        Index("idx_project_events_date", "date"),
    )

    project = relationship("Project", back_populates="events")
    equipment = relationship("ProjectEventEquipment", back_populates="event")


class ProjectEventEquipment(Base):
    """A committed booking of ``quantity`` units of equipment for one event day"""
    __tablename__ = "project_event_equipment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid(as_uuid=True), ForeignKey('project_events.id', ondelete='CASCADE'), nullable=False)
    equipment_id = Column(Uuid(as_uuid=True), ForeignKey('equipment.id', ondelete='CASCADE'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("idx_event_equipment_equipment", "equipment_id"),
    )

    event = relationship("ProjectEvent", back_populates="equipment")
