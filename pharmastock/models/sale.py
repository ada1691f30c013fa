"""Sale model (consumption header)."""
from datetime import datetime
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmastock.database import Base, BigIntPK
import enum


class PaymentMethod(str, enum.Enum):
    """How the customer paid at the terminal."""
    CASH = 'Cash'
    ONLINE = 'Online'
    MIXED = 'Mixed'


class Sale(Base):
    """Sale (confirmed at the terminal)."""

    __tablename__ = 'sales'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey('customers.id'), nullable=True)
    sale_date = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)
    cash_amount = Column(Numeric(14, 2), nullable=False, default=0)
    online_amount = Column(Numeric(14, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False)
    doctor_name = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='Completed')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Sale(id={self.id}, total_amount={self.total_amount}, payment_method={self.payment_method})>"
