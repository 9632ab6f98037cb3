import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime
from portal.db import Base


class Application(Base):
    __tablename__ = "application"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    step = Column(Integer, default=0)
    company_name = Column(String, nullable=False)
    owner_first_name = Column(String, nullable=False)
    owner_last_name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    phone_number = Column(String, nullable=True)
    facility_address1 = Column(String, nullable=True)
    facility_address2 = Column(String, nullable=True)
    facility_city = Column(String, nullable=True)
    facility_state = Column(String, nullable=True)
    facility_zip = Column(String, nullable=True)
    services_json = Column(Text, nullable=True)  # {"open247": bool, "schedule": {...}, ...}
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
