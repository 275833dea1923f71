"""
Discount targeting resolver.

Picks the automatic discount that applies to one catalog item. Among all
matching discounts the highest percentage wins; ties go to the most recently
created discount, then to the highest id, so the choice is deterministic.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from app.models import OrderSource
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def available_for_source(record, order_source: Optional[OrderSource]) -> bool:
    """
    Channel check shared by discounts and discount codes.
    
    Phone orders are taken by staff, so they follow the in-store flag.
    A missing order_source means "any channel".
    """
    if order_source is None:
        return True
    if OrderSource(order_source) is OrderSource.ONLINE:
        return bool(record.available_online)
    return bool(record.available_in_store)


def is_discount_active(discount, now: datetime, order_source: Optional[OrderSource] = None) -> bool:
    """Enabled, not deleted, inside its window and offered on the channel."""
    if not discount.enabled or discount.is_deleted:
        return False
    if not (discount.start_date <= now <= discount.end_date):
        return False
    return available_for_source(discount, order_source)


def targets_item(record, product_id, variant_id=None, category_ids: Iterable = ()) -> bool:
    """
    Whether a discount/code targeting covers the item.
    
    Records whose targeting cannot be read are treated as non-matching.
    """
    try:
        return record.targeting.matches(product_id, variant_id, category_ids)
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring discount {getattr(record, 'id', None)} with unreadable targeting: {e}")
        return False


def _selection_key(discount):
    return (
        discount.percentage,
        discount.created_at or datetime.min,
        discount.id or 0,
    )


def resolve_active_discount(
    discounts: Sequence,
    product_id: int,
    variant_id: Optional[int] = None,
    category_ids: Iterable[int] = (),
    now: Optional[datetime] = None,
    order_source: Optional[OrderSource] = None
):
    """
    Return the discount that applies to the item, or None.
    
    Args:
        discounts: the shop's discounts (rules or ORM rows)
        product_id: product being priced
        variant_id: variant being priced, if any
        category_ids: categories the product belongs to
        now: point in time the discount window is checked against
        order_source: restrict to discounts offered on this channel
    """
    if now is None:
        now = utcnow()
    category_ids = list(category_ids or ())
    
    candidates = [
        discount for discount in discounts
        if is_discount_active(discount, now, order_source)
        and targets_item(discount, product_id, variant_id, category_ids)
    ]
    if not candidates:
        return None
    return max(candidates, key=_selection_key)


def resolve_active_discount_for_shop(
    catalog,
    shop_id: int,
    product_id: int,
    variant_id: Optional[int] = None,
    category_ids: Iterable[int] = (),
    now: Optional[datetime] = None,
    order_source: Optional[OrderSource] = None
):
    """Load the shop's active discounts from `catalog` and resolve one item."""
    if now is None:
        now = utcnow()
    discounts = catalog.get_active_discounts_for_shop(shop_id, now)
    return resolve_active_discount(discounts, product_id, variant_id, category_ids, now, order_source)
