from sqlalchemy import Column, String, DateTime
from ..core.db import Base
from ..domain.clock import utcnow

class AppSetting(Base):
    __tablename__ = "AppSetting"

    Key       = Column(String(100), primary_key=True)
    Value     = Column(String(500), nullable=False)
    UpdatedAt = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
