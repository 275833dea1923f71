"""Discount code (coupon) validation."""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from app.exceptions import CouponInvalidError
from app.models import OrderSource
from app.services.discount_resolver import available_for_source
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class CouponRejection(str, enum.Enum):
    """Why a discount code cannot be used. Values are part of the API."""
    NOT_FOUND = 'NOT_FOUND'
    INACTIVE = 'INACTIVE'
    NOT_YET_ACTIVE = 'NOT_YET_ACTIVE'
    EXPIRED = 'EXPIRED'
    WRONG_CHANNEL = 'WRONG_CHANNEL'
    USAGE_LIMIT_REACHED = 'USAGE_LIMIT_REACHED'
    CUSTOMER_NOT_ELIGIBLE = 'CUSTOMER_NOT_ELIGIBLE'


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    coupon: Any = None
    reason: Optional[CouponRejection] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.valid:
            return {
                'valid': False,
                'reason': self.reason.value,
                'error': CouponInvalidError.MESSAGES[self.reason.value],
            }
        return {
            'valid': True,
            'discount_code': {
                'id': self.coupon.id,
                'code': self.coupon.code,
                'percentage': self.coupon.percentage,
                'title': self.coupon.title,
                'description': self.coupon.description,
            },
        }


def check_coupon(
    coupon,
    order_source: Optional[OrderSource],
    customer_id: Optional[int],
    now: datetime
) -> Optional[CouponRejection]:
    """
    Run the checks on an already loaded code, stopping at the first failure.
    
    Returns:
        None when the code can be applied, otherwise the rejection reason.
    """
    if coupon is None or coupon.is_deleted:
        return CouponRejection.NOT_FOUND
    if not coupon.is_active:
        return CouponRejection.INACTIVE
    if now < coupon.start_date:
        return CouponRejection.NOT_YET_ACTIVE
    if now > coupon.end_date:
        return CouponRejection.EXPIRED
    if not available_for_source(coupon, order_source):
        return CouponRejection.WRONG_CHANNEL
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        return CouponRejection.USAGE_LIMIT_REACHED
    allowed_customers = coupon.customer_ids
    if allowed_customers and customer_id not in allowed_customers:
        return CouponRejection.CUSTOMER_NOT_ELIGIBLE
    return None


def validate_coupon(
    catalog,
    code: str,
    shop_id: int,
    order_source: OrderSource = OrderSource.ONLINE,
    customer_id: Optional[int] = None,
    now: Optional[datetime] = None
) -> CouponValidation:
    """
    Validate a discount code for a shop, channel and (optionally) customer.
    
    Args:
        catalog: object providing get_coupon_by_code(code, shop_id)
        code: code as typed by the user (any case)
        shop_id: shop the order belongs to
        order_source: channel of the order
        customer_id: buyer, required for customer-restricted codes
        now: point in time for the activity window
    """
    if now is None:
        now = utcnow()
    
    coupon = catalog.get_coupon_by_code(code, shop_id) if code else None
    reason = check_coupon(coupon, order_source, customer_id, now)
    
    if reason is not None:
        logger.info(f"Discount code {code!r} rejected for shop {shop_id}: {reason.value}")
        return CouponValidation(valid=False, reason=reason)
    return CouponValidation(valid=True, coupon=coupon)


def require_valid_coupon(catalog, code, shop_id, order_source, customer_id=None, now=None):
    """Like validate_coupon but returns the code or raises CouponInvalidError."""
    result = validate_coupon(catalog, code, shop_id, order_source, customer_id, now)
    if not result.valid:
        raise CouponInvalidError(result.reason)
    return result.coupon
