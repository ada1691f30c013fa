"""Vendor model."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmastock.database import Base, BigIntPK


VENDOR_STATUSES = ('Active', 'Pending', 'Suspended')


class Vendor(Base):
    """Vendor (supplier of stock)."""

    __tablename__ = 'vendors'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    full_name = Column(String(50), nullable=False)
    business_name = Column(String, nullable=True)
    phone_number = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    website = Column(String, nullable=True)
    status = Column(String(20), nullable=False, default='Active', server_default='Active')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    products = relationship('Product', back_populates='vendor')
    purchases = relationship('Purchase', back_populates='vendor')

    def __repr__(self):
        return f"<Vendor(id={self.id}, full_name='{self.full_name}')>"

    @property
    def display_name(self) -> str:
        return self.business_name or self.full_name
