"""
Discount and discount code administration (shop-scoped).

Records are never removed: delete moves them to DELETED so past orders and
analytics keep pointing at them, and a deleted record cannot be edited or
switched back on. Every write drops the shop's cached discount rules.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from app.exceptions import BusinessLogicError, NotFoundError
from app.models import (
    Category, Customer, Discount, DiscountCode, LifecycleStatus, Product, ProductVariant,
    TargetType, normalize_code, targeting_from_dict
)
from app.services.catalog_service import invalidate_discount_cache
from app.utils.dates import parse_datetime
from app.utils.money import HUNDRED, to_decimal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------

def _parse_percentage(value) -> Decimal:
    try:
        percentage = to_decimal(value)
    except ValueError:
        raise BusinessLogicError('Percentage must be a number')
    if not (Decimal('0') < percentage <= HUNDRED):
        raise BusinessLogicError('Percentage must be greater than 0 and at most 100')
    return percentage


def _parse_date(data: Dict[str, Any], key: str):
    try:
        value = parse_datetime(data.get(key))
    except ValueError:
        value = None
    if value is None:
        raise BusinessLogicError(f"{key} must be an ISO 8601 date")
    return value


def _parse_bool(data: Dict[str, Any], key: str, default: bool = True) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise BusinessLogicError(f'{key} must be true or false')
    return value


def _parse_status(record, enabled: bool) -> LifecycleStatus:
    target = LifecycleStatus.ACTIVE if enabled else LifecycleStatus.DISABLED
    try:
        return (record.status or LifecycleStatus.ACTIVE).transition_to(target)
    except ValueError as e:
        raise BusinessLogicError(str(e))


def _resolve_targeting(session, shop_id: int, data):
    """
    Parse a targeting payload and check every referenced row is in the shop.
    
    Returns:
        (targeting, products, variants) ready for TargetingMixin.set_targeting
    """
    try:
        targeting = targeting_from_dict(data)
    except ValueError as e:
        raise BusinessLogicError(str(e))
    
    products, variants = [], []
    if targeting.target_type is TargetType.CATEGORY:
        if targeting.category_id is None or not session.query(Category).filter_by(
            id=targeting.category_id, shop_id=shop_id
        ).first():
            raise BusinessLogicError("Category not found or doesn't belong to your shop")
    
    elif targeting.target_type is TargetType.PRODUCTS:
        if not targeting.product_ids and not targeting.variant_ids:
            raise BusinessLogicError('At least one product or variant must be selected')
        if targeting.product_ids:
            products = session.query(Product).filter(
                Product.id.in_(targeting.product_ids), Product.shop_id == shop_id
            ).all()
            if len(products) != len(targeting.product_ids):
                raise BusinessLogicError("Some products don't belong to your shop")
        if targeting.variant_ids:
            variants = session.query(ProductVariant).join(Product).filter(
                ProductVariant.id.in_(targeting.variant_ids), Product.shop_id == shop_id
            ).all()
            if len(variants) != len(targeting.variant_ids):
                raise BusinessLogicError("Some variants don't belong to your shop")
    
    elif targeting.target_type is TargetType.SINGLE:
        if targeting.product_id is None and targeting.variant_id is None:
            raise BusinessLogicError('A product or variant must be selected')
        if targeting.product_id is not None and not session.query(Product).filter_by(
            id=targeting.product_id, shop_id=shop_id
        ).first():
            raise BusinessLogicError("Product doesn't belong to your shop")
        if targeting.variant_id is not None:
            variant = session.query(ProductVariant).join(Product).filter(
                ProductVariant.id == targeting.variant_id, Product.shop_id == shop_id
            ).first()
            if variant is None or (targeting.product_id is not None and variant.product_id != targeting.product_id):
                raise BusinessLogicError("Variant doesn't belong to your shop")
    
    return targeting, products, variants


def _apply_common(session, record, shop_id: int, data: Dict[str, Any], enabled_key: str, creating: bool):
    """Copy the fields shared by discounts and codes from `data` onto `record`."""
    if creating or 'percentage' in data:
        if data.get('percentage') in (None, ''):
            raise BusinessLogicError('Percentage is required')
        record.percentage = _parse_percentage(data['percentage'])
    
    for key in ('title', 'description'):
        if key in data:
            setattr(record, key, data[key] or None)
    
    if creating or 'start_date' in data:
        record.start_date = _parse_date(data, 'start_date')
    if creating or 'end_date' in data:
        record.end_date = _parse_date(data, 'end_date')
    if record.start_date >= record.end_date:
        raise BusinessLogicError('start_date must be before end_date')
    
    for key in ('available_online', 'available_in_store'):
        if key in data:
            setattr(record, key, _parse_bool(data, key))
        elif creating:
            setattr(record, key, True)
    if not record.available_online and not record.available_in_store:
        raise BusinessLogicError('At least one availability option (online or in-store) must be selected')
    
    if creating or enabled_key in data:
        record.status = _parse_status(record, _parse_bool(data, enabled_key))
    
    if creating or 'targeting' in data:
        targeting, products, variants = _resolve_targeting(session, shop_id, data.get('targeting'))
        record.set_targeting(targeting, products, variants)


def _save(session, shop_id: int, record, apply_fields=None) -> None:
    """Apply the pending field changes and commit; nothing is kept on failure."""
    try:
        if apply_fields is not None:
            apply_fields()
        session.add(record)
        session.commit()
    except Exception:
        session.rollback()
        raise
    invalidate_discount_cache(shop_id)


def _require_editable(record, label: str) -> None:
    if record.is_deleted:
        raise BusinessLogicError(f'{label} has been deleted and cannot be modified')


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------

def serialize_discount(discount: Discount) -> Dict[str, Any]:
    return {
        'id': discount.id,
        'title': discount.title,
        'description': discount.description,
        'percentage': discount.percentage,
        'status': discount.status.value,
        'enabled': discount.enabled,
        'start_date': discount.start_date.isoformat(),
        'end_date': discount.end_date.isoformat(),
        'available_online': discount.available_online,
        'available_in_store': discount.available_in_store,
        'targeting': discount.targeting.to_dict(),
    }


def list_discounts(session, shop_id: int) -> List[Discount]:
    """Non-deleted discounts of the shop, newest first."""
    return session.query(Discount).filter(
        Discount.shop_id == shop_id,
        Discount.status != LifecycleStatus.DELETED
    ).order_by(Discount.created_at.desc(), Discount.id.desc()).all()


def get_discount(session, shop_id: int, discount_id: int) -> Discount:
    discount = session.query(Discount).filter(
        Discount.id == discount_id,
        Discount.shop_id == shop_id,
        Discount.status != LifecycleStatus.DELETED
    ).first()
    if discount is None:
        raise NotFoundError('Discount not found')
    return discount


def create_discount(session, shop_id: int, data: Dict[str, Any]) -> Discount:
    discount = Discount(shop_id=shop_id)
    _save(session, shop_id, discount, lambda: _apply_common(session, discount, shop_id, data, 'enabled', creating=True))
    logger.info(f"Discount {discount.id} created for shop {shop_id} ({discount.percentage}%)")
    return discount


def update_discount(session, shop_id: int, discount_id: int, data: Dict[str, Any]) -> Discount:
    discount = session.query(Discount).filter_by(id=discount_id, shop_id=shop_id).first()
    if discount is None:
        raise NotFoundError('Discount not found')
    _require_editable(discount, 'Discount')
    _save(session, shop_id, discount, lambda: _apply_common(session, discount, shop_id, data, 'enabled', creating=False))
    return discount


def delete_discount(session, shop_id: int, discount_id: int) -> None:
    """Soft delete: the row stays for order history and analytics."""
    discount = get_discount(session, shop_id, discount_id)
    discount.status = discount.status.transition_to(LifecycleStatus.DELETED)
    _save(session, shop_id, discount)
    logger.info(f"Discount {discount_id} of shop {shop_id} soft-deleted")


# ---------------------------------------------------------------------------
# Discount codes
# ---------------------------------------------------------------------------

def serialize_discount_code(code: DiscountCode) -> Dict[str, Any]:
    return {
        'id': code.id,
        'code': code.code,
        'title': code.title,
        'description': code.description,
        'percentage': code.percentage,
        'status': code.status.value,
        'is_active': code.is_active,
        'start_date': code.start_date.isoformat(),
        'end_date': code.end_date.isoformat(),
        'usage_limit': code.usage_limit,
        'used_count': code.used_count,
        'available_online': code.available_online,
        'available_in_store': code.available_in_store,
        'customer_ids': sorted(code.customer_ids),
        'targeting': code.targeting.to_dict(),
    }


def _parse_usage_limit(value) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError('usage_limit must be an integer')
    if limit <= 0:
        raise BusinessLogicError('usage_limit must be greater than 0')
    return limit


def _resolve_customers(session, shop_id: int, customer_ids) -> List[Customer]:
    try:
        ids = {int(cid) for cid in (customer_ids or ())}
    except (TypeError, ValueError):
        raise BusinessLogicError('customer_ids must be integers')
    if not ids:
        return []
    customers = session.query(Customer).filter(
        Customer.id.in_(ids), Customer.shop_id == shop_id
    ).all()
    if len(customers) != len(ids):
        raise BusinessLogicError("Some customers don't belong to your shop")
    return customers


def _apply_code_fields(session, code: DiscountCode, shop_id: int, data: Dict[str, Any], creating: bool):
    if creating or 'code' in data:
        value = normalize_code(data.get('code'))
        if not value:
            raise BusinessLogicError('Code is required')
        duplicates = session.query(DiscountCode).filter(
            DiscountCode.shop_id == shop_id,
            DiscountCode.code == value
        )
        if code.id is not None:
            duplicates = duplicates.filter(DiscountCode.id != code.id)
        if duplicates.first() is not None:
            raise BusinessLogicError('Discount code already exists')
        code.code = value
    
    _apply_common(session, code, shop_id, data, 'is_active', creating)
    
    if creating or 'usage_limit' in data:
        limit = _parse_usage_limit(data.get('usage_limit'))
        if limit is not None and (code.used_count or 0) > limit:
            raise BusinessLogicError('usage_limit cannot be lower than the times the code was already used')
        code.usage_limit = limit
    
    if creating or 'customer_ids' in data:
        code.customers = _resolve_customers(session, shop_id, data.get('customer_ids'))
        code.customer_id = None


def list_discount_codes(session, shop_id: int) -> List[DiscountCode]:
    return session.query(DiscountCode).filter(
        DiscountCode.shop_id == shop_id,
        DiscountCode.status != LifecycleStatus.DELETED
    ).order_by(DiscountCode.created_at.desc(), DiscountCode.id.desc()).all()


def get_discount_code(session, shop_id: int, code_id: int) -> DiscountCode:
    code = session.query(DiscountCode).filter(
        DiscountCode.id == code_id,
        DiscountCode.shop_id == shop_id,
        DiscountCode.status != LifecycleStatus.DELETED
    ).first()
    if code is None:
        raise NotFoundError('Discount code not found')
    return code


def create_discount_code(session, shop_id: int, data: Dict[str, Any]) -> DiscountCode:
    code = DiscountCode(shop_id=shop_id, used_count=0)
    _save(session, shop_id, code, lambda: _apply_code_fields(session, code, shop_id, data, creating=True))
    logger.info(f"Discount code {code.code} created for shop {shop_id}")
    return code


def update_discount_code(session, shop_id: int, code_id: int, data: Dict[str, Any]) -> DiscountCode:
    code = session.query(DiscountCode).filter_by(id=code_id, shop_id=shop_id).first()
    if code is None:
        raise NotFoundError('Discount code not found')
    _require_editable(code, 'Discount code')
    _save(session, shop_id, code, lambda: _apply_code_fields(session, code, shop_id, data, creating=False))
    return code


def delete_discount_code(session, shop_id: int, code_id: int) -> None:
    """Soft delete; the code can no longer be redeemed or edited."""
    code = get_discount_code(session, shop_id, code_id)
    code.status = code.status.transition_to(LifecycleStatus.DELETED)
    _save(session, shop_id, code)
    logger.info(f"Discount code {code.code} of shop {shop_id} soft-deleted")
