"""Product model."""
from decimal import Decimal
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmastock.database import Base, BigIntPK


def pack_unit_value(value) -> Decimal:
    """Base units per pack; missing, zero or negative values count as 1."""
    if value is None or value == '':
        return Decimal('1')
    try:
        unit_value = Decimal(str(value))
    except (ArithmeticError, ValueError):
        return Decimal('1')
    if not unit_value.is_finite() or unit_value <= 0:
        return Decimal('1')
    return unit_value


class Product(Base):
    """Product (sellable item, stocked in packs)."""

    __tablename__ = 'products'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    dosage_form = Column(String, nullable=True)
    unit_value = Column(Numeric(12, 3), nullable=True)  # base units per pack
    unit_type = Column(String(20), nullable=True)  # mg, ml, pcs...
    emoji = Column(String(16), nullable=True)
    description = Column(Text, nullable=True)
    vendor_id = Column(BigInteger, ForeignKey('vendors.id'), nullable=True)
    # Denormalized running counter (base units) kept by purchase writes only.
    # The sale terminal never reads it; see services.stock_projector.
    current_stock = Column(Numeric(14, 3), nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    vendor = relationship('Vendor', back_populates='products')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', unit_value={self.unit_value})>"

    @property
    def pack_size(self) -> Decimal:
        """Base units per pack, safe to use as a divisor."""
        return pack_unit_value(self.unit_value)
