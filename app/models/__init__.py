"""Models package - exports all SQLAlchemy models."""
# Tenancy
from app.models.shop import Shop
from app.models.customer import Customer

# Catalog
from app.models.category import Category
from app.models.product import Product, product_category
from app.models.product_variant import ProductVariant

# Discounts
from app.models.targeting import (
    TargetType, LifecycleStatus, AllProducts, CategoryTarget, ProductsTarget, SingleTarget,
    DiscountRule, targeting_from_dict
)
from app.models.discount import Discount
from app.models.discount_code import DiscountCode, normalize_code

# Orders
from app.models.order import Order, OrderSource, OrderStatus
from app.models.order_item import OrderItem

__all__ = [
    'Shop', 'Customer',
    'Category', 'Product', 'product_category', 'ProductVariant',
    'TargetType', 'LifecycleStatus', 'AllProducts', 'CategoryTarget', 'ProductsTarget', 'SingleTarget',
    'DiscountRule', 'targeting_from_dict',
    'Discount', 'DiscountCode', 'normalize_code',
    'Order', 'OrderSource', 'OrderStatus', 'OrderItem',
]
