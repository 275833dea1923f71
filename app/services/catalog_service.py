"""
Catalog reads consumed by the pricing core (shop-scoped).

The pricing engine only talks to an object exposing:

- get_product(product_id, shop_id)
- get_variant(variant_id)
- get_active_discounts_for_shop(shop_id, now)
- get_coupon_by_code(code, shop_id)

SqlCatalog implements them on top of a SQLAlchemy session.
"""
import logging
from datetime import datetime
from typing import List, Optional

from flask import current_app, has_app_context
from sqlalchemy.orm import Session, selectinload

from app.models import (
    Product, ProductVariant, Discount, DiscountCode, DiscountRule, LifecycleStatus, normalize_code
)

logger = logging.getLogger(__name__)

DISCOUNTS_CACHE_MODULE = 'discounts'


def _get_cache_or_none():
    from app.services.cache_service import get_cache
    try:
        return get_cache()
    except RuntimeError:
        return None


def invalidate_discount_cache(shop_id: int) -> None:
    """Drop the cached discount rules of a shop after an admin write."""
    cache = _get_cache_or_none()
    if cache is not None:
        cache.invalidate(shop_id, DISCOUNTS_CACHE_MODULE)


class SqlCatalog:
    """Catalog lookups backed by the ORM."""
    
    def __init__(self, session: Session):
        self.session = session
    
    def get_product(self, product_id: int, shop_id: int) -> Optional[Product]:
        return self.session.query(Product).options(
            selectinload(Product.categories),
            selectinload(Product.variants)
        ).filter(
            Product.id == product_id,
            Product.shop_id == shop_id
        ).first()
    
    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        return self.session.get(ProductVariant, variant_id)
    
    def get_coupon_by_code(self, code: str, shop_id: int) -> Optional[DiscountCode]:
        """Case-insensitive lookup; soft-deleted codes are returned too."""
        return self.session.query(DiscountCode).filter(
            DiscountCode.shop_id == shop_id,
            DiscountCode.code == normalize_code(code)
        ).first()
    
    def load_discount_rules(self, shop_id: int) -> List[DiscountRule]:
        """Every non-deleted discount of the shop, whatever its window."""
        discounts = self.session.query(Discount).options(
            selectinload(Discount.products),
            selectinload(Discount.variants)
        ).filter(
            Discount.shop_id == shop_id,
            Discount.status != LifecycleStatus.DELETED
        ).all()
        return [discount.to_rule() for discount in discounts]
    
    def get_active_discounts_for_shop(self, shop_id: int, now: datetime) -> List[DiscountRule]:
        """Enabled discounts whose window contains `now`."""
        rules = self._cached_discount_rules(shop_id)
        return [
            rule for rule in rules
            if rule.enabled and rule.start_date <= now <= rule.end_date
        ]
    
    def _cached_discount_rules(self, shop_id: int) -> List[DiscountRule]:
        cache = _get_cache_or_none()
        if cache is None or not has_app_context():
            return self.load_discount_rules(shop_id)
        
        payload = cache.memoize(
            shop_id,
            DISCOUNTS_CACHE_MODULE,
            lambda: [rule.to_dict() for rule in self.load_discount_rules(shop_id)],
            ttl=current_app.config.get('CACHE_DISCOUNTS_TTL')
        )
        return [DiscountRule.from_dict(item) for item in payload]
