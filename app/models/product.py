"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, ForeignKey, Table, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


product_category = Table(
    'product_category',
    Base.metadata,
    Column('product_id', BigInteger, ForeignKey('product.id', ondelete='CASCADE'), primary_key=True),
    Column('category_id', BigInteger, ForeignKey('category.id', ondelete='CASCADE'), primary_key=True),
)


class Product(Base):
    """Product model."""
    
    __tablename__ = 'product'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    shop_id = Column(BigInteger, ForeignKey('shop.id'), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String, nullable=True)
    barcode = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    tva = Column(Numeric(5, 2), nullable=True)  # Tax rate; NULL uses the shop default
    images = Column(JSON, nullable=False, default=list)
    inventory = Column(Integer, nullable=False, default=0)  # Used when the product has no variants
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    shop = relationship('Shop')
    categories = relationship('Category', secondary=product_category, back_populates='products')
    variants = relationship('ProductVariant', back_populates='product', cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"
    
    @property
    def category_ids(self):
        """IDs of the categories this product belongs to."""
        return [category.id for category in self.categories]
    
    @property
    def first_image(self):
        return self.images[0] if self.images else None
