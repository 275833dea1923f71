"""Discount Code model (coupons)."""
from sqlalchemy import (
    Column, BigInteger, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey, Table, Enum,
    UniqueConstraint
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from app.database import Base, BigIntPK
from app.models.discount import TargetingMixin
from app.models.targeting import LifecycleStatus


discount_code_products = Table(
    'discount_code_product',
    Base.metadata,
    Column('discount_code_id', BigInteger, ForeignKey('discount_code.id', ondelete='CASCADE'), primary_key=True),
    Column('product_id', BigInteger, ForeignKey('product.id', ondelete='CASCADE'), primary_key=True),
)

discount_code_variants = Table(
    'discount_code_variant',
    Base.metadata,
    Column('discount_code_id', BigInteger, ForeignKey('discount_code.id', ondelete='CASCADE'), primary_key=True),
    Column('variant_id', BigInteger, ForeignKey('product_variant.id', ondelete='CASCADE'), primary_key=True),
)

discount_code_customers = Table(
    'discount_code_customer',
    Base.metadata,
    Column('discount_code_id', BigInteger, ForeignKey('discount_code.id', ondelete='CASCADE'), primary_key=True),
    Column('customer_id', BigInteger, ForeignKey('customer.id', ondelete='CASCADE'), primary_key=True),
)


def normalize_code(code) -> str:
    """Canonical form of a discount code: trimmed and upper-cased."""
    return (code or '').strip().upper()


class DiscountCode(TargetingMixin, Base):
    """
    Discount Code - coupon typed in at checkout.
    
    Codes are unique per shop and stored upper-cased so matching is
    case-insensitive. used_count never exceeds usage_limit when a limit is set.
    """
    
    __tablename__ = 'discount_code'
    __table_args__ = (
        UniqueConstraint('shop_id', 'code', name='uq_discount_code_shop_code'),
    )
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    shop_id = Column(BigInteger, ForeignKey('shop.id'), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    title = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    percentage = Column(Numeric(5, 2), nullable=False)
    status = Column(Enum(LifecycleStatus, name='discount_code_status'), nullable=False, default=LifecycleStatus.ACTIVE)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    usage_limit = Column(Integer, nullable=True)  # NULL = unlimited
    used_count = Column(Integer, nullable=False, default=0)
    available_online = Column(Boolean, nullable=False, default=True)
    available_in_store = Column(Boolean, nullable=False, default=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id', ondelete='SET NULL'), nullable=True)  # Legacy single customer
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    shop = relationship('Shop')
    category = relationship('Category')
    products = relationship('Product', secondary=discount_code_products)
    variants = relationship('ProductVariant', secondary=discount_code_variants)
    customers = relationship('Customer', secondary=discount_code_customers)
    
    def __repr__(self):
        return f"<DiscountCode(id={self.id}, code='{self.code}', used={self.used_count}/{self.usage_limit})>"
    
    @validates('code')
    def _normalize_code(self, key, value):
        return normalize_code(value)
    
    @property
    def is_active(self):
        return self.status is LifecycleStatus.ACTIVE
    
    @property
    def is_deleted(self):
        return self.status is LifecycleStatus.DELETED
    
    @property
    def customer_ids(self):
        """Customers allowed to redeem the code; empty means everyone."""
        ids = {c.id for c in self.customers}
        if self.customer_id is not None:
            ids.add(self.customer_id)
        return frozenset(ids)
    
    @property
    def usage_remaining(self):
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - (self.used_count or 0), 0)
