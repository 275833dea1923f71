"""
Discount targeting and lifecycle value objects.

A discount (or discount code) targets exactly one of:

- AllProducts: every product of the shop
- CategoryTarget: products that belong to a category
- ProductsTarget: a list of products and/or variants
- SingleTarget: the legacy single product (optionally narrowed to one variant)

Each target answers `matches(product_id, variant_id, category_ids)` and never
raises for data it cannot apply; an incomplete target simply does not match.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union


class TargetType(enum.Enum):
    """Persisted discriminator for the targeting variants."""
    ALL = 'ALL'
    CATEGORY = 'CATEGORY'
    PRODUCTS = 'PRODUCTS'
    SINGLE = 'SINGLE'


class LifecycleStatus(enum.Enum):
    """
    Lifecycle of discounts and discount codes.
    
    DELETED is terminal: soft-deleted records keep their history for
    analytics and can never be enabled again.
    """
    ACTIVE = 'ACTIVE'
    DISABLED = 'DISABLED'
    DELETED = 'DELETED'

    def transition_to(self, target: 'LifecycleStatus') -> 'LifecycleStatus':
        """Return the new status, refusing to leave DELETED."""
        if self is LifecycleStatus.DELETED and target is not LifecycleStatus.DELETED:
            raise ValueError('Deleted records cannot be restored')
        return target


def _ids(values: Optional[Iterable[Any]]) -> FrozenSet[int]:
    return frozenset(int(v) for v in (values or ()) if v is not None)


@dataclass(frozen=True)
class AllProducts:
    target_type = TargetType.ALL

    def matches(self, product_id, variant_id=None, category_ids=()) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.target_type.value}


@dataclass(frozen=True)
class CategoryTarget:
    category_id: Optional[int]
    target_type = TargetType.CATEGORY

    def matches(self, product_id, variant_id=None, category_ids=()) -> bool:
        if self.category_id is None:
            return False
        return self.category_id in set(category_ids or ())

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.target_type.value, 'category_id': self.category_id}


@dataclass(frozen=True)
class ProductsTarget:
    product_ids: FrozenSet[int] = field(default_factory=frozenset)
    variant_ids: FrozenSet[int] = field(default_factory=frozenset)
    target_type = TargetType.PRODUCTS

    def matches(self, product_id, variant_id=None, category_ids=()) -> bool:
        if variant_id is not None and variant_id in self.variant_ids:
            return True
        return product_id in self.product_ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.target_type.value,
            'product_ids': sorted(self.product_ids),
            'variant_ids': sorted(self.variant_ids),
        }


@dataclass(frozen=True)
class SingleTarget:
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    target_type = TargetType.SINGLE

    def matches(self, product_id, variant_id=None, category_ids=()) -> bool:
        if self.variant_id is not None:
            return variant_id == self.variant_id
        if self.product_id is not None:
            return product_id == self.product_id
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.target_type.value,
            'product_id': self.product_id,
            'variant_id': self.variant_id,
        }


Targeting = Union[AllProducts, CategoryTarget, ProductsTarget, SingleTarget]


def targeting_from_dict(data: Optional[Dict[str, Any]]) -> Targeting:
    """
    Build a targeting variant from its JSON form.
    
    Missing data means "all products".
    
    Raises:
        ValueError: unknown type or non-integer ids.
    """
    if not data:
        return AllProducts()
    try:
        target_type = TargetType(str(data.get('type', 'ALL')).upper())
    except ValueError:
        raise ValueError(f"Unknown targeting type: {data.get('type')!r}")
    
    try:
        if target_type is TargetType.ALL:
            return AllProducts()
        if target_type is TargetType.CATEGORY:
            category_id = data.get('category_id')
            return CategoryTarget(int(category_id) if category_id is not None else None)
        if target_type is TargetType.PRODUCTS:
            return ProductsTarget(_ids(data.get('product_ids')), _ids(data.get('variant_ids')))
        product_id = data.get('product_id')
        variant_id = data.get('variant_id')
        return SingleTarget(
            int(product_id) if product_id is not None else None,
            int(variant_id) if variant_id is not None else None,
        )
    except (TypeError, ValueError):
        raise ValueError('Targeting ids must be integers')


@dataclass(frozen=True)
class DiscountRule:
    """Plain, cacheable copy of a Discount row as seen by the resolver."""
    id: int
    percentage: Decimal
    status: LifecycleStatus
    start_date: datetime
    end_date: datetime
    available_online: bool
    available_in_store: bool
    targeting: Targeting
    created_at: Optional[datetime] = None

    @property
    def enabled(self) -> bool:
        return self.status is LifecycleStatus.ACTIVE

    @property
    def is_deleted(self) -> bool:
        return self.status is LifecycleStatus.DELETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'percentage': str(self.percentage),
            'status': self.status.value,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'available_online': self.available_online,
            'available_in_store': self.available_in_store,
            'targeting': self.targeting.to_dict(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscountRule':
        created_at = data.get('created_at')
        return cls(
            id=data['id'],
            percentage=Decimal(data['percentage']),
            status=LifecycleStatus(data['status']),
            start_date=datetime.fromisoformat(data['start_date']),
            end_date=datetime.fromisoformat(data['end_date']),
            available_online=data['available_online'],
            available_in_store=data['available_in_store'],
            targeting=targeting_from_dict(data['targeting']),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )
