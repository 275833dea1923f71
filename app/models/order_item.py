"""Order Item model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, ForeignKey, JSON
from sqlalchemy.orm import relationship
from app.database import Base, BigIntPK


class OrderItem(Base):
    """
    Order Item - one priced line of an order.
    
    The product_* columns are a snapshot taken at pricing time so the order
    keeps displaying correctly after the product changes or is deleted.
    """
    
    __tablename__ = 'order_item'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('shop_order.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id', ondelete='SET NULL'), nullable=True)
    variant_id = Column(BigInteger, ForeignKey('product_variant.id', ondelete='SET NULL'), nullable=True)
    
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_code = Column(String(50), nullable=True)
    total = Column(Numeric(10, 2), nullable=False)
    
    # Snapshot
    product_name = Column(String, nullable=False)
    product_sku = Column(String, nullable=True)
    product_barcode = Column(String, nullable=True)
    product_description = Column(Text, nullable=True)
    product_image = Column(String, nullable=True)
    product_tva = Column(Numeric(5, 2), nullable=False)
    product_options = Column(JSON, nullable=False, default=dict)
    
    # Relationships
    order = relationship('Order', back_populates='items')
    
    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
    
    def to_dict(self):
        return {
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'original_price': self.original_price,
            'discount_percentage': self.discount_percentage,
            'discount_code': self.discount_code,
            'total': self.total,
            'product_name': self.product_name,
            'product_sku': self.product_sku,
        }
