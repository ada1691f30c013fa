"""Purchase Item model."""
from sqlalchemy import Column, BigInteger, String, Date, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pharmastock.database import Base, BigIntPK


class PurchaseItem(Base):
    """Purchase line item: one batch received from a vendor."""

    __tablename__ = 'purchase_items'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    purchase_id = Column(BigInteger, ForeignKey('purchases.id'), nullable=False)
    product_id = Column(BigInteger, ForeignKey('products.id'), nullable=False)
    batch_code = Column(String, nullable=False)
    expiry_date = Column(Date, nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)  # packs
    free_quantity = Column(Numeric(12, 3), nullable=False, default=0)  # bonus packs
    purchase_price = Column(Numeric(14, 4), nullable=False, default=0)  # per pack
    mrp = Column(Numeric(14, 2), nullable=False, default=0)  # per pack
    # Snapshot of the product's pack definition at purchase time
    unit_value = Column(Numeric(12, 3), nullable=True)
    unit_type = Column(String(20), nullable=True)

    # Relationships
    purchase = relationship('Purchase', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<PurchaseItem(id={self.id}, product_id={self.product_id}, batch_code='{self.batch_code}')>"
