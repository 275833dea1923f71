"""Shop model - each tenant of the back-office."""
from sqlalchemy import Column, String, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


class Shop(Base):
    """Shop (tenant). All catalog and order data is scoped by shop_id."""
    
    __tablename__ = 'shop'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    
    # Pricing settings; NULL falls back to the app config defaults
    tax_rate = Column(Numeric(5, 2), nullable=True)
    shipping_fee = Column(Numeric(10, 2), nullable=True)
    default_item_tax_rate = Column(Numeric(5, 2), nullable=True)
    
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<Shop(id={self.id}, slug='{self.slug}', name='{self.name}')>"
