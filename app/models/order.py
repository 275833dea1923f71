"""Order model."""
import enum
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntPK


class OrderSource(str, enum.Enum):
    """Channel an order was placed through."""
    ONLINE = 'ONLINE'
    IN_STORE = 'IN_STORE'
    PHONE = 'PHONE'


class OrderStatus(enum.Enum):
    """Order status enum."""
    PENDING = 'PENDING'
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'


class Order(Base):
    """Order - committed checkout. Amounts are frozen at commit time."""
    
    __tablename__ = 'shop_order'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    shop_id = Column(BigInteger, ForeignKey('shop.id'), nullable=False, index=True)
    order_number = Column(String(32), nullable=False, unique=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    address_id = Column(BigInteger, nullable=True)
    order_source = Column(Enum(OrderSource, name='order_source'), nullable=False, default=OrderSource.ONLINE)
    status = Column(Enum(OrderStatus, name='order_status'), nullable=False, default=OrderStatus.PENDING)
    
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    shipping = Column(Numeric(10, 2), nullable=False, default=0)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    
    discount_code_id = Column(BigInteger, ForeignKey('discount_code.id'), nullable=True)
    discount_code_value = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    shop = relationship('Shop')
    customer = relationship('Customer', back_populates='orders')
    discount_code = relationship('DiscountCode')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', total={self.total})>"
    
    def to_dict(self):
        return {
            'id': self.id,
            'order_number': self.order_number,
            'status': self.status.value,
            'order_source': self.order_source.value,
            'customer_id': self.customer_id,
            'subtotal': self.subtotal,
            'tax': self.tax,
            'shipping': self.shipping,
            'discount': self.discount,
            'total': self.total,
            'discount_code': self.discount_code_value,
            'notes': self.notes,
            'items': [item.to_dict() for item in self.items],
        }
