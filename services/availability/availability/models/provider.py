from sqlalchemy import Column, Boolean, Float, Text, JSON, Uuid
import uuid
from availability.db.database import Base


class ExternalProvider(Base):
    __tablename__ = "external_providers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_name = Column(Text, nullable=False)
    geographic_coverage = Column(JSON)  # List of region names; empty or null means no restriction
    reliability_rating = Column(Float)
    preferred_status = Column(Boolean, nullable=False, default=False)
    contact_info = Column(JSON)
