"""Discount model - automatic percentage discounts on catalog items."""
from sqlalchemy import (
    Column, BigInteger, String, Text, Numeric, Boolean, DateTime, ForeignKey, Table, Enum
)
from sqlalchemy.orm import relationship, declared_attr
from sqlalchemy.sql import func
from app.database import Base, BigIntPK
from app.models.targeting import (
    TargetType, LifecycleStatus, AllProducts, CategoryTarget, ProductsTarget, SingleTarget,
    DiscountRule
)


discount_products = Table(
    'discount_product',
    Base.metadata,
    Column('discount_id', BigInteger, ForeignKey('discount.id', ondelete='CASCADE'), primary_key=True),
    Column('product_id', BigInteger, ForeignKey('product.id', ondelete='CASCADE'), primary_key=True),
)

discount_variants = Table(
    'discount_variant',
    Base.metadata,
    Column('discount_id', BigInteger, ForeignKey('discount.id', ondelete='CASCADE'), primary_key=True),
    Column('variant_id', BigInteger, ForeignKey('product_variant.id', ondelete='CASCADE'), primary_key=True),
)


class TargetingMixin:
    """
    Columns shared by discounts and discount codes to persist a Targeting.
    
    PRODUCTS targets live in association tables exposed by the concrete
    class as `products` and `variants`; SINGLE uses the legacy
    product_id/variant_id columns.
    """
    
    target_type = Column(Enum(TargetType, name='target_type'), nullable=False, default=TargetType.ALL)
    
    @declared_attr
    def category_id(cls):
        return Column(BigInteger, ForeignKey('category.id', ondelete='SET NULL'), nullable=True)
    
    @declared_attr
    def product_id(cls):
        return Column(BigInteger, ForeignKey('product.id', ondelete='SET NULL'), nullable=True)
    
    @declared_attr
    def variant_id(cls):
        return Column(BigInteger, ForeignKey('product_variant.id', ondelete='SET NULL'), nullable=True)
    
    @property
    def targeting(self):
        """Build the targeting variant from the stored columns."""
        if self.target_type is TargetType.CATEGORY:
            return CategoryTarget(self.category_id)
        if self.target_type is TargetType.PRODUCTS:
            return ProductsTarget(
                frozenset(p.id for p in self.products),
                frozenset(v.id for v in self.variants),
            )
        if self.target_type is TargetType.SINGLE:
            return SingleTarget(self.product_id, self.variant_id)
        return AllProducts()
    
    def set_targeting(self, targeting, products=(), variants=()):
        """
        Store `targeting`, resetting the columns of the other variants.
        
        `products`/`variants` are the already-loaded rows for a PRODUCTS target.
        """
        self.target_type = targeting.target_type
        self.category_id = getattr(targeting, 'category_id', None)
        self.product_id = None
        self.variant_id = None
        self.products = []
        self.variants = []
        
        if targeting.target_type is TargetType.SINGLE:
            self.product_id = targeting.product_id
            self.variant_id = targeting.variant_id
        elif targeting.target_type is TargetType.PRODUCTS:
            self.products = list(products)
            self.variants = list(variants)


class Discount(TargetingMixin, Base):
    """
    Discount - percentage off applied automatically to targeted items.
    
    Active only while status is ACTIVE and start_date <= now <= end_date.
    """
    
    __tablename__ = 'discount'
    
    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    shop_id = Column(BigInteger, ForeignKey('shop.id'), nullable=False, index=True)
    title = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    percentage = Column(Numeric(5, 2), nullable=False)
    status = Column(Enum(LifecycleStatus, name='discount_status'), nullable=False, default=LifecycleStatus.ACTIVE)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    available_online = Column(Boolean, nullable=False, default=True)
    available_in_store = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    shop = relationship('Shop')
    category = relationship('Category')
    products = relationship('Product', secondary=discount_products)
    variants = relationship('ProductVariant', secondary=discount_variants)
    
    def __repr__(self):
        return f"<Discount(id={self.id}, percentage={self.percentage}, status={self.status})>"
    
    @property
    def enabled(self):
        return self.status is LifecycleStatus.ACTIVE
    
    @property
    def is_deleted(self):
        return self.status is LifecycleStatus.DELETED
    
    def to_rule(self) -> DiscountRule:
        """Detached copy used by the resolver and the cache."""
        return DiscountRule(
            id=self.id,
            percentage=self.percentage,
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            available_online=self.available_online,
            available_in_store=self.available_in_store,
            targeting=self.targeting,
            created_at=self.created_at,
        )
