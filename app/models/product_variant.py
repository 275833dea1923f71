"""Product Variant model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


class ProductVariant(Base):
    """
    Product Variant - a purchasable configuration of a product (size, color...).
    
    Price, tax rate, SKU and barcode override the product's when set.
    """
    
    __tablename__ = 'product_variant'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String, nullable=False)
    sku = Column(String, nullable=True)
    barcode = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    tva = Column(Numeric(5, 2), nullable=True)
    images = Column(JSON, nullable=False, default=list)
    options = Column(JSON, nullable=False, default=dict)  # e.g. {"size": "M", "color": "red"}
    inventory = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    # Relationships
    product = relationship('Product', back_populates='variants')
    
    def __repr__(self):
        return f"<ProductVariant(id={self.id}, product_id={self.product_id}, name='{self.name}')>"
    
    @property
    def first_image(self):
        return self.images[0] if self.images else None
