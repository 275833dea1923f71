"""
Checkout orchestration - turns a JSON payload into a quote or an order.

    payload -> CheckoutRequest -> coupon check -> price_cart -> (commit_order)
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app

from app.exceptions import BusinessLogicError, NotFoundError, ProductNotFoundError, VariantNotFoundError
from app.models import Customer, Order, OrderSource, Shop
from app.services.catalog_service import SqlCatalog
from app.services.coupon_service import require_valid_coupon
from app.services.discount_resolver import resolve_active_discount_for_shop
from app.services.order_service import commit_order
from app.services.pricing_service import CartLine, PricingPolicy, PricingResult, parse_cart, price_cart
from app.utils.dates import utcnow
from app.utils.money import apply_percentage_off, to_money, ZERO

logger = logging.getLogger(__name__)


def optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'{key} must be an integer')


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BusinessLogicError(f'{key} must be a string')
    return value.strip() or None


def parse_order_source(value) -> OrderSource:
    if value in (None, ''):
        return OrderSource.ONLINE
    try:
        return OrderSource(str(value).upper())
    except ValueError:
        raise BusinessLogicError(f'Unknown order_source: {value}')


@dataclass(frozen=True)
class CheckoutRequest:
    items: List[CartLine]
    coupon_code: Optional[str] = None
    order_source: OrderSource = OrderSource.ONLINE
    customer_id: Optional[int] = None
    address_id: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> 'CheckoutRequest':
        if not isinstance(payload, dict):
            raise BusinessLogicError('Request body must be a JSON object')
        return cls(
            items=parse_cart(payload.get('items')),
            coupon_code=_optional_str(payload, 'coupon_code'),
            order_source=parse_order_source(payload.get('order_source')),
            customer_id=optional_int(payload, 'customer_id'),
            address_id=optional_int(payload, 'address_id'),
            notes=_optional_str(payload, 'notes'),
        )


def load_pricing_policy(session, shop_id: int) -> PricingPolicy:
    shop = session.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError('Shop not found')
    return PricingPolicy.from_shop(shop, current_app.config)


def _check_customer(session, customer_id: Optional[int], shop_id: int) -> None:
    if customer_id is None:
        return
    customer = session.query(Customer).filter_by(id=customer_id, shop_id=shop_id).first()
    if customer is None:
        raise NotFoundError(f'Customer {customer_id} not found', payload={'customer_id': customer_id})


def quote_checkout(session, request: CheckoutRequest, shop_id: int, now=None) -> Tuple[PricingResult, Any]:
    """
    Price a checkout request without writing anything.
    
    Returns:
        (PricingResult, coupon or None)
    
    Raises:
        CouponInvalidError: the supplied code cannot be used
    """
    now = now or utcnow()
    catalog = SqlCatalog(session)
    _check_customer(session, request.customer_id, shop_id)
    
    coupon = None
    if request.coupon_code:
        coupon = require_valid_coupon(
            catalog, request.coupon_code, shop_id,
            order_source=request.order_source,
            customer_id=request.customer_id,
            now=now
        )
    
    result = price_cart(
        request.items,
        shop_id,
        catalog,
        policy=load_pricing_policy(session, shop_id),
        coupon=coupon,
        now=now,
        order_source=request.order_source,
    )
    return result, coupon


def place_order(session, request: CheckoutRequest, shop_id: int, now=None) -> Order:
    """Quote the request and commit it as an order."""
    result, coupon = quote_checkout(session, request, shop_id, now=now)
    return commit_order(
        session,
        result,
        shop_id,
        customer_id=request.customer_id,
        address_id=request.address_id,
        order_source=request.order_source,
        coupon=coupon,
        notes=request.notes,
    )


def preview_product_price(session, shop_id: int, product_id: int, variant_id: Optional[int] = None,
                          order_source: OrderSource = OrderSource.ONLINE, now=None) -> Dict[str, Any]:
    """
    Shelf price of one product (or variant) with its automatic discount.
    
    Coupons are not considered; this is what a point-of-sale lookup shows
    before a cart exists.
    """
    now = now or utcnow()
    catalog = SqlCatalog(session)
    product = catalog.get_product(product_id, shop_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    
    variant = None
    if variant_id is not None:
        variant = catalog.get_variant(variant_id)
        if variant is None or variant.product_id != product.id:
            raise VariantNotFoundError(variant_id, product.id)
    
    base_price = to_money(variant.price if variant is not None and variant.price is not None else product.price)
    discount = resolve_active_discount_for_shop(
        catalog, shop_id, product.id, variant_id, product.category_ids, now, order_source
    )
    
    percentage = to_money(discount.percentage) if discount is not None else ZERO
    final_price = apply_percentage_off(base_price, percentage) if discount is not None else base_price
    return {
        'product_id': product.id,
        'variant_id': variant_id,
        'order_source': order_source.value,
        'base_price': base_price,
        'discount_id': discount.id if discount is not None else None,
        'discount_percentage': percentage,
        'final_price': final_price,
    }
