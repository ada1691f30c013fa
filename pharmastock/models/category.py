"""Product category model."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from pharmastock.database import Base, BigIntPK


class ProductCategory(Base):
    """Product Category."""

    __tablename__ = 'product_categories'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<ProductCategory(id={self.id}, name='{self.name}')>"
