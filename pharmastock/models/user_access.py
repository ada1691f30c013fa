"""User access model (role lookup for the admin gate)."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from pharmastock.database import Base, BigIntPK


class UserAccess(Base):
    """Maps an authenticated user id to a role."""

    __tablename__ = 'user_access'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    uid = Column(String(64), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default='staff')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<UserAccess(uid='{self.uid}', role='{self.role}')>"
