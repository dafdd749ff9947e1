from sqlalchemy import Column, Integer, String, Date, DateTime, DECIMAL, ForeignKey, CheckConstraint, text
from sqlalchemy.orm import relationship
from ..core.db import Base
from ..domain.clock import utcnow

class Job(Base):
    __tablename__ = "Job"

    JobID           = Column(Integer, primary_key=True, autoincrement=True)
    Number          = Column(String(30),  nullable=False, unique=True)
    Label           = Column(String(200), nullable=False)
    Client          = Column(String(200))
    TargetRevenue   = Column(DECIMAL(12, 2), nullable=False, default=0)
    TargetHoursFab  = Column(DECIMAL(10, 2), nullable=False, default=0)
    TargetHoursSer  = Column(DECIMAL(10, 2), nullable=False, default=0)
    TargetHoursPose = Column(DECIMAL(10, 2), nullable=False, default=0)
    HourlyRate      = Column(DECIMAL(10, 2), nullable=False, default=0)
    PlannedStart    = Column(Date)
    PlannedEnd      = Column(Date)
    ActualStart     = Column(Date)
    ActualEnd       = Column(Date)
    # maintained by purchase_service.recompute_job_purchase_totals
    TotalOrdered    = Column(DECIMAL(12, 2), nullable=False, default=0, server_default=text("0"))
    TotalReceived   = Column(DECIMAL(12, 2), nullable=False, default=0, server_default=text("0"))
    CreatedAt       = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("TargetRevenue >= 0", name="CK_Job_TargetRevenue_NonNeg"),
        CheckConstraint("HourlyRate >= 0", name="CK_Job_HourlyRate_NonNeg"),
    )

    purchase_orders     = relationship("PurchaseOrder", back_populates="job")
    purchase_estimation = relationship("PurchaseEstimation", back_populates="job", uselist=False)
    quotes              = relationship("Quote",     back_populates="job")
    time_entries        = relationship("TimeEntry", back_populates="job")


class Quote(Base):
    __tablename__ = "Quote"

    QuoteID  = Column(Integer, primary_key=True, autoincrement=True)
    JobID    = Column(Integer, ForeignKey("Job.JobID"), nullable=False, index=True)
    Number   = Column(String(30), nullable=False)
    AmountHT = Column(DECIMAL(12, 2), nullable=False)
    Status_s = Column(String(20), nullable=False, default="DRAFT", server_default=text("'DRAFT'"))

    __table_args__ = (
        CheckConstraint("AmountHT >= 0", name="CK_Quote_Amount_NonNeg"),
        CheckConstraint("Status_s IN ('DRAFT','VALIDATED','DONE','REJECTED')", name="CK_Quote_Status"),
    )

    job = relationship("Job", back_populates="quotes")


class TimeEntry(Base):
    __tablename__ = "TimeEntry"

    EntryID   = Column(Integer, primary_key=True, autoincrement=True)
    JobID     = Column(Integer, ForeignKey("Job.JobID"), nullable=False, index=True)
    Phase     = Column(String(10), nullable=False)
    Hours     = Column(DECIMAL(8, 2), nullable=False)
    EntryDate = Column(Date, nullable=False)
    Operator  = Column(String(100))

    __table_args__ = (
        CheckConstraint("Hours > 0", name="CK_TimeEntry_Hours_Positive"),
        CheckConstraint("Phase IN ('FAB','SER','POSE')", name="CK_TimeEntry_Phase"),
    )

    job = relationship("Job", back_populates="time_entries")
