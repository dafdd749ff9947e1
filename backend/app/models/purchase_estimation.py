from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, ForeignKey, CheckConstraint, UniqueConstraint, text
from sqlalchemy.orm import relationship
from ..core.db import Base
from ..domain.clock import utcnow

class PurchaseEstimation(Base):
    __tablename__ = "PurchaseEstimation"

    EstimationID = Column(Integer, primary_key=True, autoincrement=True)
    JobID        = Column(Integer, ForeignKey("Job.JobID"), nullable=False, unique=True)
    TargetPct    = Column(DECIMAL(5, 2),  nullable=False)
    TargetAmount = Column(DECIMAL(12, 2), nullable=False)
    UpdatedAt    = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("TargetPct >= 0 AND TargetPct <= 100", name="CK_Estimation_Pct_Range"),
    )

    job        = relationship("Job", back_populates="purchase_estimation")
    categories = relationship(
        "EstimationCategory",
        back_populates="estimation",
        cascade="all, delete-orphan",
        order_by="EstimationCategory.Position",
    )


class EstimationCategory(Base):
    __tablename__ = "EstimationCategory"

    LineID       = Column(Integer, primary_key=True, autoincrement=True)
    EstimationID = Column(Integer, ForeignKey("PurchaseEstimation.EstimationID", ondelete="CASCADE"), nullable=False)
    CategoryID   = Column(Integer, ForeignKey("PurchaseCategory.CategoryID"), nullable=False)
    Position     = Column(Integer, nullable=False, default=0)
    Mode         = Column(String(10), nullable=False, default="percent", server_default=text("'percent'"))
    # in amount mode this keeps the percentage restored on switching back
    Percent      = Column(DECIMAL(7, 2), nullable=False, default=0)
    FixedAmount  = Column(DECIMAL(12, 2))

    __table_args__ = (
        UniqueConstraint("EstimationID", "CategoryID", name="UQ_EstimationCategory"),
        CheckConstraint("Mode IN ('percent','amount')", name="CK_EstimationCategory_Mode"),
        CheckConstraint("Percent >= 0", name="CK_EstimationCategory_Percent_NonNeg"),
        CheckConstraint("FixedAmount IS NULL OR FixedAmount >= 0", name="CK_EstimationCategory_Amount_NonNeg"),
    )

    estimation = relationship("PurchaseEstimation", back_populates="categories")
    category   = relationship("PurchaseCategory")
