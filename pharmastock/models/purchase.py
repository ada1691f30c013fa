"""Purchase model (acquisition header)."""
from datetime import date
from sqlalchemy import Column, BigInteger, String, Date, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmastock.database import Base, BigIntPK
import enum


class PurchaseStatus(str, enum.Enum):
    """Payment status of a vendor bill."""
    PAID = 'Paid'
    UNPAID = 'Unpaid'


class Purchase(Base):
    """Purchase (vendor bill)."""

    __tablename__ = 'purchases'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    vendor_id = Column(BigInteger, ForeignKey('vendors.id'), nullable=False)
    bill_number = Column(String, nullable=False)
    purchase_date = Column(Date, nullable=False, default=date.today)
    overall_discount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False)
    is_credit = Column(Boolean, nullable=False, default=False)
    due_date = Column(Date, nullable=True)
    status = Column(String(10), nullable=False, default=PurchaseStatus.UNPAID.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    vendor = relationship('Vendor', back_populates='purchases')
    items = relationship('PurchaseItem', back_populates='purchase', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Purchase(id={self.id}, bill_number='{self.bill_number}', status={self.status})>"
