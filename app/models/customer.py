"""Customer model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


class Customer(Base):
    """Shop customer (buyer)."""
    
    __tablename__ = 'customer'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    shop_id = Column(BigInteger, ForeignKey('shop.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    shop = relationship('Shop')
    orders = relationship('Order', back_populates='customer')
    
    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
