"""Discount and discount code API (shop admin) plus public code validation."""
from flask import Blueprint, request, jsonify, g

from app.database import get_session
from app.decorators.permissions import Role, require_role
from app.exceptions import BusinessLogicError
from app.middleware import require_shop
from app.services import discount_service
from app.services.catalog_service import SqlCatalog
from app.services.checkout_service import parse_order_source
from app.services.coupon_service import validate_coupon
from app.blueprints.metrics import coupon_rejections_total

discounts_bp = Blueprint('discounts', __name__, url_prefix='/api/discounts')
discount_codes_bp = Blueprint('discount_codes', __name__, url_prefix='/api/discount-codes')


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BusinessLogicError('Request body must be a JSON object')
    return data


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------

@discounts_bp.route('', methods=['GET'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def list_discounts():
    discounts = discount_service.list_discounts(get_session(), g.shop_id)
    return jsonify([discount_service.serialize_discount(d) for d in discounts])


@discounts_bp.route('', methods=['POST'])
@require_role(Role.SHOP_ADMIN)
def create_discount():
    discount = discount_service.create_discount(get_session(), g.shop_id, _json_body())
    return jsonify(discount_service.serialize_discount(discount)), 201


@discounts_bp.route('/<int:discount_id>', methods=['GET'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def get_discount(discount_id):
    discount = discount_service.get_discount(get_session(), g.shop_id, discount_id)
    return jsonify(discount_service.serialize_discount(discount))


@discounts_bp.route('/<int:discount_id>', methods=['PATCH'])
@require_role(Role.SHOP_ADMIN)
def update_discount(discount_id):
    discount = discount_service.update_discount(get_session(), g.shop_id, discount_id, _json_body())
    return jsonify(discount_service.serialize_discount(discount))


@discounts_bp.route('/<int:discount_id>', methods=['DELETE'])
@require_role(Role.SHOP_ADMIN)
def delete_discount(discount_id):
    discount_service.delete_discount(get_session(), g.shop_id, discount_id)
    return jsonify({'status': 'ok', 'message': 'Discount deleted'})


# ---------------------------------------------------------------------------
# Discount codes
# ---------------------------------------------------------------------------

@discount_codes_bp.route('', methods=['GET'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def list_discount_codes():
    codes = discount_service.list_discount_codes(get_session(), g.shop_id)
    return jsonify([discount_service.serialize_discount_code(c) for c in codes])


@discount_codes_bp.route('', methods=['POST'])
@require_role(Role.SHOP_ADMIN)
def create_discount_code():
    code = discount_service.create_discount_code(get_session(), g.shop_id, _json_body())
    return jsonify(discount_service.serialize_discount_code(code)), 201


@discount_codes_bp.route('/<int:code_id>', methods=['GET'])
@require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
def get_discount_code(code_id):
    code = discount_service.get_discount_code(get_session(), g.shop_id, code_id)
    return jsonify(discount_service.serialize_discount_code(code))


@discount_codes_bp.route('/<int:code_id>', methods=['PATCH'])
@require_role(Role.SHOP_ADMIN)
def update_discount_code(code_id):
    code = discount_service.update_discount_code(get_session(), g.shop_id, code_id, _json_body())
    return jsonify(discount_service.serialize_discount_code(code))


@discount_codes_bp.route('/<int:code_id>', methods=['DELETE'])
@require_role(Role.SHOP_ADMIN)
def delete_discount_code(code_id):
    discount_service.delete_discount_code(get_session(), g.shop_id, code_id)
    return jsonify({'status': 'ok', 'message': 'Discount code deleted'})


@discount_codes_bp.route('/validate', methods=['POST'])
@require_shop
def validate_discount_code():
    """
    Check a code before checkout.
    
    Body: {"code", "order_source"?, "customer_id"?}. Always 200; an unusable
    code comes back as {"valid": false, "reason": ...}.
    """
    data = _json_body()
    customer_id = data.get('customer_id')
    try:
        customer_id = int(customer_id) if customer_id not in (None, '') else None
    except (TypeError, ValueError):
        raise BusinessLogicError('customer_id must be an integer')
    
    result = validate_coupon(
        SqlCatalog(get_session()),
        data.get('code') or '',
        g.shop_id,
        order_source=parse_order_source(data.get('order_source')),
        customer_id=customer_id,
    )
    if not result.valid:
        coupon_rejections_total.labels(reason=result.reason.value).inc()
    return jsonify(result.to_dict())
