"""Checkout API - quotes and orders for the current shop."""
from flask import Blueprint, request, jsonify, current_app, g

from app.database import get_session
from app.decorators.permissions import Feature, Role, require_feature, require_role
from app.exceptions import CouponInvalidError, ShopError
from app.services.checkout_service import (
    CheckoutRequest, parse_order_source, place_order, preview_product_price, quote_checkout, optional_int
)
from app.services.order_service import cancel_order, get_order as load_order, update_order
from app.blueprints.metrics import checkout_quotes_total, coupon_rejections_total, orders_committed_total

checkout_bp = Blueprint('checkout', __name__, url_prefix='/api')


def _count_failure(error: ShopError) -> None:
    checkout_quotes_total.labels(outcome=type(error).__name__).inc()
    if isinstance(error, CouponInvalidError):
        coupon_rejections_total.labels(reason=error.reason).inc()


@checkout_bp.route('/checkout/quote', methods=['POST'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def quote():
    """
    Price a cart without placing an order.
    
    Body: {"items": [{"product_id", "variant_id"?, "quantity"}], "coupon_code"?,
           "order_source"?, "customer_id"?}
    """
    db_session = get_session()
    try:
        checkout = CheckoutRequest.from_payload(request.get_json(silent=True))
        result, _ = quote_checkout(db_session, checkout, g.shop_id)
    except ShopError as e:
        _count_failure(e)
        raise
    
    checkout_quotes_total.labels(outcome='ok').inc()
    return jsonify(result.to_dict())


@checkout_bp.route('/orders', methods=['POST'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def create_order():
    """Price the cart and commit it as an order (201)."""
    db_session = get_session()
    try:
        checkout = CheckoutRequest.from_payload(request.get_json(silent=True))
        order = place_order(db_session, checkout, g.shop_id)
    except ShopError as e:
        _count_failure(e)
        raise
    
    checkout_quotes_total.labels(outcome='ok').inc()
    orders_committed_total.labels(order_source=order.order_source.value).inc()
    current_app.logger.info(f"Order {order.order_number} placed by user {g.get('user_id')}")
    return jsonify(order.to_dict()), 201


@checkout_bp.route('/orders/<int:order_id>', methods=['GET'])
@require_feature(Feature.ORDERS_VIEW)
def get_order(order_id):
    order = load_order(get_session(), order_id, g.shop_id)
    return jsonify(order.to_dict())


@checkout_bp.route('/orders/<int:order_id>', methods=['PATCH'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def edit_order(order_id):
    """
    Update an order's status and/or notes.
    
    Body: {"status"?: "PROCESSING" | "SHIPPED" | "DELIVERED" | "PENDING", "notes"?}
    """
    order = update_order(get_session(), order_id, g.shop_id, request.get_json(silent=True))
    return jsonify(order.to_dict())


@checkout_bp.route('/orders/<int:order_id>', methods=['DELETE'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def delete_order(order_id):
    """Cancel the order and put its stock back. The order row is kept."""
    order = cancel_order(get_session(), order_id, g.shop_id)
    current_app.logger.info(f"Order {order.order_number} cancelled by user {g.get('user_id')}")
    return jsonify({'status': 'success', 'message': 'Order has been cancelled', 'order': order.to_dict()})


@checkout_bp.route('/products/<int:product_id>/price', methods=['GET'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def product_price(product_id):
    """
    Price lookup for the counter.
    
    Query: ?variant_id=&order_source=IN_STORE
    """
    preview = preview_product_price(
        get_session(),
        g.shop_id,
        product_id,
        variant_id=optional_int(request.args, 'variant_id'),
        order_source=parse_order_source(request.args.get('order_source')),
    )
    return jsonify(preview)
