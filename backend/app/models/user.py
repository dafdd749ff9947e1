from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, CheckConstraint, text
)
from ..core.db import Base
from ..domain.clock import utcnow

ALLOWED_ROLES = ("viewer", "operator", "manager", "admin")

class AppUser(Base):
    __tablename__ = "AppUser"

    UserID         = Column(Integer, primary_key=True, autoincrement=True)
    Username       = Column(String(50),  nullable=False, unique=True)
    FullName       = Column(String(100))
    Email          = Column(String(200))
    HashedPassword = Column(String(255), nullable=False)
    Role           = Column(String(20),  nullable=False, default="viewer", server_default=text("'viewer'"))
    IsActive       = Column(Boolean,     nullable=False, default=True, server_default=text("1"))
    CreatedAt      = Column(DateTime,    nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "Role in ('viewer','operator','manager','admin')",
            name="CK_AppUser_Role"
        ),
    )
