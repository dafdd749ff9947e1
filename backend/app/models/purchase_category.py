from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship
from ..core.db import Base

class PurchaseCategory(Base):
    __tablename__ = "PurchaseCategory"

    CategoryID = Column(Integer, primary_key=True, autoincrement=True)
    Code       = Column(String(30),  nullable=False, unique=True)
    Label      = Column(String(150), nullable=False)

    purchase_orders = relationship("PurchaseOrder", back_populates="category")
