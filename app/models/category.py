"""Category model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


class Category(Base):
    """Product Category."""
    
    __tablename__ = 'category'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    shop_id = Column(BigInteger, ForeignKey('shop.id'), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    shop = relationship('Shop')
    products = relationship('Product', secondary='product_category', back_populates='categories')
    
    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
