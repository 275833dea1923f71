"""
Pricing engine - prices a cart for one shop.

    subtotal -> per-item discount -> coupon override -> tax -> shipping -> total

The engine is a pure function of its inputs and of the catalog/discount state
it reads: it writes nothing, and pricing the same cart twice against the same
state yields equal results. Discounts never stack: on every line the single
highest percentage (automatic discount or coupon) wins. Every amount is
rounded half-up to cents.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.exceptions import InvalidCartError, ProductNotFoundError, VariantNotFoundError
from app.models import OrderSource
from app.services.discount_resolver import resolve_active_discount, targets_item
from app.utils.dates import utcnow
from app.utils.money import ZERO, to_decimal, to_money, apply_percentage_off, percentage_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    variant_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        """
        Parse one item of a checkout payload.
        
        Raises:
            InvalidCartError: missing ids or a quantity that is not a positive integer.
        """
        if not isinstance(data, dict):
            raise InvalidCartError('Each item must be an object')
        try:
            product_id = int(data['product_id'])
            variant_id = data.get('variant_id')
            variant_id = int(variant_id) if variant_id not in (None, '') else None
        except (KeyError, TypeError, ValueError):
            raise InvalidCartError('Each item needs a valid product_id')
        
        quantity = data.get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidCartError('Quantity must be a positive integer')
        return cls(product_id=product_id, quantity=quantity, variant_id=variant_id)


def parse_cart(items) -> List[CartLine]:
    """Parse the `items` list of a checkout payload."""
    if not items or not isinstance(items, list):
        raise InvalidCartError()
    return [CartLine.from_dict(item) for item in items]


@dataclass(frozen=True)
class ProductSnapshot:
    """Descriptive product data copied onto the order line at pricing time."""
    name: str
    sku: Optional[str]
    barcode: Optional[str]
    description: Optional[str]
    image: Optional[str]
    options: Tuple[Tuple[str, Any], ...]
    tax_rate: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'sku': self.sku,
            'barcode': self.barcode,
            'description': self.description,
            'image': self.image,
            'options': dict(self.options),
            'tax_rate': self.tax_rate,
        }


@dataclass(frozen=True)
class ResolvedLine:
    product_id: int
    variant_id: Optional[int]
    quantity: int
    unit_price: Decimal
    original_unit_price: Decimal
    line_total: Decimal
    product_snapshot: ProductSnapshot
    discount_percentage: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    discount_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'original_unit_price': self.original_unit_price,
            'discount_percentage': self.discount_percentage,
            'discount_amount': self.discount_amount,
            'discount_code': self.discount_code,
            'line_total': self.line_total,
            'product_snapshot': self.product_snapshot.to_dict(),
        }


@dataclass(frozen=True)
class PricingPolicy:
    """Shop-level tax and shipping settings."""
    tax_rate: Decimal = Decimal('10')
    shipping_fee: Decimal = Decimal('10.00')
    default_item_tax_rate: Decimal = Decimal('19')

    @classmethod
    def from_shop(cls, shop, config) -> 'PricingPolicy':
        """Shop values win; NULL columns fall back to the app config defaults."""
        def pick(value, key):
            return to_decimal(value if value is not None else config[key])
        return cls(
            tax_rate=pick(shop.tax_rate, 'DEFAULT_TAX_RATE'),
            shipping_fee=to_money(pick(shop.shipping_fee, 'DEFAULT_SHIPPING_FEE')),
            default_item_tax_rate=pick(shop.default_item_tax_rate, 'DEFAULT_ITEM_TAX_RATE'),
        )

    def shipping_for(self, order_source: OrderSource) -> Decimal:
        """In-store sales are handed over at the counter."""
        if OrderSource(order_source) is OrderSource.IN_STORE:
            return ZERO
        return to_money(self.shipping_fee)

    def tax_for(self, amount: Decimal) -> Decimal:
        return percentage_of(amount, self.tax_rate)


@dataclass(frozen=True)
class PricingResult:
    lines: Tuple[ResolvedLine, ...]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    coupon_discount: Decimal
    total: Decimal
    coupon_code: Optional[str] = None

    @property
    def merchandise_total(self) -> Decimal:
        """Sum of the final line totals (subtotal minus the coupon)."""
        return self.subtotal - self.coupon_discount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lines': [line.to_dict() for line in self.lines],
            'subtotal': self.subtotal,
            'tax': self.tax,
            'shipping': self.shipping,
            'coupon_discount': self.coupon_discount,
            'coupon_code': self.coupon_code,
            'total': self.total,
        }


def _snapshot(product, variant, policy: PricingPolicy) -> ProductSnapshot:
    if variant is not None:
        name = f"{product.name} - {variant.name}"
        options = tuple(sorted((str(k), v) for k, v in (variant.options or {}).items()))
        image = variant.first_image or product.first_image
        tax_rate = variant.tva if variant.tva is not None else product.tva
    else:
        name = product.name
        options = ()
        image = product.first_image
        tax_rate = product.tva
    
    return ProductSnapshot(
        name=name,
        sku=(variant.sku if variant is not None and variant.sku else product.sku) or None,
        barcode=(variant.barcode if variant is not None and variant.barcode else product.barcode) or None,
        description=product.description,
        image=image,
        options=options,
        tax_rate=to_decimal(tax_rate if tax_rate is not None else policy.default_item_tax_rate),
    )


def _priced_line(line: ResolvedLine, percentage: Optional[Decimal], code: Optional[str] = None) -> ResolvedLine:
    """Recompute a line's prices for `percentage` (None = full price)."""
    base = line.original_unit_price
    if percentage is None:
        unit_price = base
        discount_amount = None
    else:
        unit_price = apply_percentage_off(base, percentage)
        discount_amount = to_money((base - unit_price) * line.quantity)
    
    return replace(
        line,
        unit_price=unit_price,
        line_total=to_money(unit_price * line.quantity),
        discount_percentage=percentage,
        discount_amount=discount_amount,
        discount_code=code,
    )


def _resolve_line(cart_line: CartLine, shop_id, catalog, discounts, policy, now, order_source):
    product = catalog.get_product(cart_line.product_id, shop_id)
    if product is None:
        raise ProductNotFoundError(cart_line.product_id)
    
    variant = None
    if cart_line.variant_id is not None:
        variant = catalog.get_variant(cart_line.variant_id)
        if variant is None or variant.product_id != product.id:
            raise VariantNotFoundError(cart_line.variant_id, product.id)
    
    base_price = variant.price if variant is not None and variant.price is not None else product.price
    base_price = to_money(base_price)
    category_ids = tuple(product.category_ids)
    
    discount = resolve_active_discount(
        discounts, product.id, cart_line.variant_id, category_ids, now, order_source
    )
    
    line = ResolvedLine(
        product_id=product.id,
        variant_id=cart_line.variant_id,
        quantity=cart_line.quantity,
        unit_price=base_price,
        original_unit_price=base_price,
        line_total=to_money(base_price * cart_line.quantity),
        product_snapshot=_snapshot(product, variant, policy),
    )
    if discount is not None:
        line = _priced_line(line, to_decimal(discount.percentage))
    return line, category_ids


def _apply_coupon(priced: Sequence[Tuple[ResolvedLine, Tuple[int, ...]]], coupon) -> List[ResolvedLine]:
    """Give the coupon's percentage to targeted lines whose own discount is lower."""
    coupon_percentage = to_decimal(coupon.percentage)
    lines = []
    for line, category_ids in priced:
        current = line.discount_percentage or ZERO
        if current < coupon_percentage and targets_item(coupon, line.product_id, line.variant_id, category_ids):
            line = _priced_line(line, coupon_percentage, code=coupon.code)
        lines.append(line)
    return lines


def _sum_lines(lines: Iterable[ResolvedLine]) -> Decimal:
    return to_money(sum((line.line_total for line in lines), ZERO))


def price_cart(
    lines: Sequence[CartLine],
    shop_id: int,
    catalog,
    policy: Optional[PricingPolicy] = None,
    coupon=None,
    now: Optional[datetime] = None,
    order_source: OrderSource = OrderSource.ONLINE
) -> PricingResult:
    """
    Price a cart.
    
    Args:
        lines: cart lines (at least one, positive quantities)
        shop_id: shop whose catalog the lines must belong to
        catalog: catalog reader (see app.services.catalog_service)
        policy: tax/shipping settings of the shop
        coupon: an already validated discount code, if any
        now: point in time used for discount windows
        order_source: channel; filters channel-restricted discounts and shipping
    
    Raises:
        InvalidCartError: empty cart or bad quantity
        ProductNotFoundError: a product is not in the shop's catalog
        VariantNotFoundError: a variant does not belong to its product
    """
    if not lines:
        raise InvalidCartError()
    for cart_line in lines:
        if isinstance(cart_line.quantity, bool) or not isinstance(cart_line.quantity, int) or cart_line.quantity <= 0:
            raise InvalidCartError('Quantity must be a positive integer')
    
    policy = policy or PricingPolicy()
    now = now or utcnow()
    
    discounts = catalog.get_active_discounts_for_shop(shop_id, now)
    priced = [
        _resolve_line(cart_line, shop_id, catalog, discounts, policy, now, order_source)
        for cart_line in lines
    ]
    
    subtotal = _sum_lines(line for line, _ in priced)
    final_lines = [line for line, _ in priced]
    coupon_code = None
    
    if coupon is not None:
        final_lines = _apply_coupon(priced, coupon)
        if any(line.discount_code for line in final_lines):
            coupon_code = coupon.code
    
    merchandise = _sum_lines(final_lines)
    coupon_discount = subtotal - merchandise
    tax = policy.tax_for(merchandise)
    shipping = policy.shipping_for(order_source)
    total = max(subtotal + tax + shipping - coupon_discount, ZERO)
    
    logger.debug(
        f"Priced cart for shop {shop_id}: {len(final_lines)} lines, subtotal={subtotal}, "
        f"coupon={coupon_code} (-{coupon_discount}), total={total}"
    )
    
    return PricingResult(
        lines=tuple(final_lines),
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        coupon_discount=coupon_discount,
        total=to_money(total),
        coupon_code=coupon_code,
    )
