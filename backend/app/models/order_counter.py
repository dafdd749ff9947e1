from sqlalchemy import Column, Integer, CheckConstraint, text
from ..core.db import Base

class OrderCounter(Base):
    """Last purchase-order sequence handed out for a calendar year."""
    __tablename__ = "OrderCounter"

    Year    = Column(Integer, primary_key=True, autoincrement=False)
    LastSeq = Column(Integer, nullable=False, default=0, server_default=text("0"))

    __table_args__ = (
        CheckConstraint("LastSeq >= 0", name="CK_OrderCounter_LastSeq_NonNeg"),
    )
