"""Sale Item model."""
from sqlalchemy import Column, BigInteger, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pharmastock.database import Base, BigIntPK


class SaleItem(Base):
    """Sale line item, bound to one batch of one product."""

    __tablename__ = 'sale_items'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sales.id'), nullable=False)
    product_id = Column(BigInteger, ForeignKey('products.id'), nullable=False)
    batch_code = Column(String, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)  # packs
    unit_price = Column(Numeric(14, 2), nullable=False)  # per pack
    subtotal = Column(Numeric(14, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<SaleItem(id={self.id}, product_id={self.product_id}, batch_code='{self.batch_code}', quantity={self.quantity})>"
