from sqlalchemy import Column, Integer, String, Date, DateTime, DECIMAL, ForeignKey, CheckConstraint, text
from sqlalchemy.orm import relationship
from ..core.db import Base
from ..domain.clock import utcnow

class PurchaseOrder(Base):
    __tablename__ = "PurchaseOrder"

    OrderID               = Column(Integer, primary_key=True, autoincrement=True)
    Number                = Column(String(30),  nullable=False, unique=True)
    SupplierName          = Column(String(200), nullable=False)
    JobID                 = Column(Integer, ForeignKey("Job.JobID"),                           nullable=False, index=True)
    CategoryID            = Column(Integer, ForeignKey("PurchaseCategory.CategoryID"),         nullable=False, index=True)
    AmountHT              = Column(DECIMAL(12, 2), nullable=False)
    OrderDate             = Column(Date, nullable=False)
    RequestedDeliveryDate = Column(Date)
    # set only by receive_po; wins over Status_s (see domain.order_states)
    ReceptionDate         = Column(Date)
    Comment               = Column(String(1000))
    Status_s              = Column(String(20), nullable=False, default="PENDING", server_default=text("'PENDING'"))
    AttachmentPath        = Column(String(500))

    CreatedBy   = Column(String(50))
    CreatedAt   = Column(DateTime, nullable=False, default=utcnow)
    ValidatedBy = Column(String(50))
    ValidatedAt = Column(DateTime)
    CancelledBy = Column(String(50))
    CancelledAt = Column(DateTime)
    ReceivedBy  = Column(String(50))

    __table_args__ = (
        CheckConstraint("AmountHT >= 0", name="CK_PO_Amount_NonNeg"),
        CheckConstraint("Status_s IN ('PENDING','VALIDATED','RECEIVED','CANCELLED')", name="CK_PO_Status"),
    )

    job      = relationship("Job",              back_populates="purchase_orders")
    category = relationship("PurchaseCategory", back_populates="purchase_orders")
