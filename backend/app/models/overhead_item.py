from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, DECIMAL, CheckConstraint, text
from ..core.db import Base
from ..domain.clock import utcnow

class OverheadItem(Base):
    __tablename__ = "OverheadItem"

    ItemID           = Column(Integer, primary_key=True, autoincrement=True)
    Label            = Column(String(200), nullable=False, unique=True)
    MonthlyAmountHT  = Column(DECIMAL(12, 2), nullable=False)
    MonthlyAmountTTC = Column(DECIMAL(12, 2), nullable=False)
    Category         = Column(String(30), nullable=False, default="AUTRE", server_default=text("'AUTRE'"))
    DisplayOrder     = Column(Integer, nullable=False, default=0, server_default=text("0"))
    IsActive         = Column(Boolean, nullable=False, default=True, server_default=text("1"), index=True)
    StartDate        = Column(Date)
    EndDate          = Column(Date, index=True)
    Comment          = Column(String(1000))
    Version          = Column(Integer, nullable=False, default=1)
    UpdatedAt        = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("MonthlyAmountHT >= 0", name="CK_Overhead_HT_NonNeg"),
        CheckConstraint("MonthlyAmountTTC >= 0", name="CK_Overhead_TTC_NonNeg"),
        CheckConstraint("EndDate IS NULL OR StartDate IS NULL OR EndDate >= StartDate", name="CK_Overhead_Window"),
    )

    # optimistic locking: concurrent edits of the same row raise StaleDataError
    __mapper_args__ = {"version_id_col": Version}
