"""
Order commit and lifecycle - persists a priced cart in one transaction.

Inventory decrement, coupon usage increment and the order rows either all
land or none do. Both counters are moved with conditional UPDATEs so two
concurrent checkouts cannot oversell a product or over-redeem a code.

After commit an order moves through PENDING -> PROCESSING -> SHIPPED ->
DELIVERED; cancelling puts its stock back and is final.
"""
import logging
import secrets
from collections import OrderedDict
from typing import Optional

from sqlalchemy import update, or_

from app.exceptions import BusinessLogicError, CouponInvalidError, InventoryUnavailableError, NotFoundError
from app.models import (
    Product, ProductVariant, DiscountCode, Order, OrderItem, OrderSource, OrderStatus, LifecycleStatus
)
from app.services.pricing_service import PricingResult
from app.utils.dates import utcnow
from app.utils.money import ZERO

logger = logging.getLogger(__name__)


def generate_order_number(now=None) -> str:
    """ORD-YYYYMMDD-XXXXXX with a random hex suffix."""
    now = now or utcnow()
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def _inventory_demand(pricing: PricingResult):
    """
    Quantities to take out of stock, keyed by the row that holds the stock.
    
    Variant lines draw on the variant's inventory, plain lines on the product's.
    """
    demand = OrderedDict()
    for line in pricing.lines:
        if line.variant_id is not None:
            key = (ProductVariant, line.variant_id)
        else:
            key = (Product, line.product_id)
        name, qty = demand.get(key, (line.product_snapshot.name, 0))
        demand[key] = (name, qty + line.quantity)
    return demand


def _reserve_inventory(session, pricing: PricingResult) -> None:
    for (model, row_id), (name, qty) in _inventory_demand(pricing).items():
        result = session.execute(
            update(model)
            .where(model.id == row_id, model.inventory >= qty)
            .values(inventory=model.inventory - qty)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InventoryUnavailableError(name, qty)


def _redeem_coupon(session, coupon) -> None:
    result = session.execute(
        update(DiscountCode)
        .where(
            DiscountCode.id == coupon.id,
            DiscountCode.status == LifecycleStatus.ACTIVE,
            or_(DiscountCode.usage_limit.is_(None), DiscountCode.used_count < DiscountCode.usage_limit)
        )
        .values(used_count=DiscountCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise CouponInvalidError('USAGE_LIMIT_REACHED')


def _order_item(line) -> OrderItem:
    snapshot = line.product_snapshot
    return OrderItem(
        product_id=line.product_id,
        variant_id=line.variant_id,
        quantity=line.quantity,
        unit_price=line.unit_price,
        original_price=line.original_unit_price,
        discount_percentage=line.discount_percentage or ZERO,
        discount_amount=line.discount_amount or ZERO,
        discount_code=line.discount_code,
        total=line.line_total,
        product_name=snapshot.name,
        product_sku=snapshot.sku,
        product_barcode=snapshot.barcode,
        product_description=snapshot.description,
        product_image=snapshot.image,
        product_tva=snapshot.tax_rate,
        product_options=dict(snapshot.options),
    )


def commit_order(
    session,
    pricing: PricingResult,
    shop_id: int,
    customer_id: Optional[int] = None,
    address_id: Optional[int] = None,
    order_source: OrderSource = OrderSource.ONLINE,
    coupon=None,
    notes: Optional[str] = None
) -> Order:
    """
    Persist an order for an already priced cart.
    
    Raises:
        InventoryUnavailableError: a line asks for more than is in stock
        CouponInvalidError: the code ran out of uses (or was disabled) meanwhile
    
    Nothing is written when an exception is raised.
    """
    try:
        _reserve_inventory(session, pricing)
        
        if coupon is not None and pricing.coupon_code is not None:
            _redeem_coupon(session, coupon)
        
        order = Order(
            shop_id=shop_id,
            order_number=generate_order_number(),
            customer_id=customer_id,
            address_id=address_id,
            order_source=OrderSource(order_source),
            status=OrderStatus.PENDING,
            subtotal=pricing.subtotal,
            tax=pricing.tax,
            shipping=pricing.shipping,
            discount=pricing.coupon_discount,
            total=pricing.total,
            discount_code_id=coupon.id if coupon is not None and pricing.coupon_code else None,
            discount_code_value=pricing.coupon_code,
            notes=notes,
        )
        order.items = [_order_item(line) for line in pricing.lines]
        session.add(order)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(f"Order commit rolled back for shop {shop_id}: {e}")
        raise
    
    logger.info(
        f"Order {order.order_number} committed for shop {shop_id}: "
        f"{len(pricing.lines)} lines, total={pricing.total}, coupon={pricing.coupon_code}"
    )
    return order


def get_order(session, order_id: int, shop_id: int) -> Order:
    order = session.query(Order).filter(
        Order.id == order_id,
        Order.shop_id == shop_id
    ).first()
    if order is None:
        raise NotFoundError('Order not found', payload={'order_id': order_id})
    return order


def _parse_order_status(value) -> OrderStatus:
    if not isinstance(value, str):
        raise BusinessLogicError('status must be a string')
    try:
        status = OrderStatus(value.strip().upper())
    except ValueError:
        raise BusinessLogicError(f'Unknown order status: {value}')
    if status is OrderStatus.CANCELLED:
        raise BusinessLogicError('Use DELETE to cancel an order')
    return status


def update_order(session, order_id: int, shop_id: int, data) -> Order:
    """
    Change the status and/or notes of an order (shop-scoped).
    
    Cancellation is not a status update: it goes through cancel_order so the
    stock is restored.
    
    Raises:
        NotFoundError: no such order in the shop
        BusinessLogicError: bad payload, or the order is already cancelled
    """
    if not isinstance(data, dict):
        raise BusinessLogicError('Request body must be a JSON object')
    
    try:
        order = get_order(session, order_id, shop_id)
        if order.status is OrderStatus.CANCELLED:
            raise BusinessLogicError(f'Order {order.order_number} is cancelled and cannot be updated')
        
        if data.get('status') is not None:
            order.status = _parse_order_status(data['status'])
        
        if 'notes' in data:
            notes = data['notes']
            if notes is not None and not isinstance(notes, str):
                raise BusinessLogicError('notes must be a string')
            order.notes = notes
        
        session.commit()
    except Exception:
        session.rollback()
        raise
    
    logger.info(f"Order {order.order_number} updated for shop {shop_id}: status={order.status.value}")
    return order


def _restock_demand(items):
    """Quantities to give back, keyed like _inventory_demand."""
    demand = OrderedDict()
    for item in items:
        if item.variant_id is not None:
            key = (ProductVariant, item.variant_id)
        elif item.product_id is not None:
            key = (Product, item.product_id)
        else:
            # Product deleted since the order was placed
            continue
        demand[key] = demand.get(key, 0) + item.quantity
    return demand


def cancel_order(session, order_id: int, shop_id: int) -> Order:
    """
    Cancel an order and return its quantities to stock in one transaction.
    
    The order row and its items are kept for history.
    
    Raises:
        NotFoundError: no such order in the shop
        BusinessLogicError: the order is already cancelled
    """
    try:
        order = get_order(session, order_id, shop_id)
        if order.status is OrderStatus.CANCELLED:
            raise BusinessLogicError(f'Order {order.order_number} is already cancelled')
        
        claimed = session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status != OrderStatus.CANCELLED)
            .values(status=OrderStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise BusinessLogicError(f'Order {order.order_number} is already cancelled')
        
        restocked = _restock_demand(order.items)
        for (model, row_id), qty in restocked.items():
            session.execute(
                update(model)
                .where(model.id == row_id)
                .values(inventory=model.inventory + qty)
                .execution_options(synchronize_session=False)
            )
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(f"Order {order_id} cancellation rolled back for shop {shop_id}: {e}")
        raise
    
    logger.info(f"Order {order.order_number} cancelled for shop {shop_id}: {len(restocked)} stock rows restored")
    return order
