"""
Unit tests for targeting and lifecycle value objects and the ORM mapping.
"""

import json
import pytest
from datetime import datetime
from decimal import Decimal

from app.models import (
    TargetType, LifecycleStatus, AllProducts, CategoryTarget, ProductsTarget, SingleTarget,
    DiscountRule, DiscountCode, Discount, targeting_from_dict, normalize_code
)


class TestLifecycleStatus:
    
    def test_enable_disable(self):
        assert LifecycleStatus.ACTIVE.transition_to(LifecycleStatus.DISABLED) is LifecycleStatus.DISABLED
        assert LifecycleStatus.DISABLED.transition_to(LifecycleStatus.ACTIVE) is LifecycleStatus.ACTIVE
    
    def test_deleted_is_terminal(self):
        with pytest.raises(ValueError):
            LifecycleStatus.DELETED.transition_to(LifecycleStatus.ACTIVE)
        with pytest.raises(ValueError):
            LifecycleStatus.DELETED.transition_to(LifecycleStatus.DISABLED)
        assert LifecycleStatus.DELETED.transition_to(LifecycleStatus.DELETED) is LifecycleStatus.DELETED


class TestTargetingFromDict:
    
    def test_missing_means_all_products(self):
        assert targeting_from_dict(None) == AllProducts()
        assert targeting_from_dict({}) == AllProducts()
    
    def test_each_type(self):
        assert targeting_from_dict({'type': 'category', 'category_id': '3'}) == CategoryTarget(3)
        assert targeting_from_dict({'type': 'PRODUCTS', 'product_ids': [1, 2], 'variant_ids': [9]}) == ProductsTarget(
            frozenset({1, 2}), frozenset({9})
        )
        assert targeting_from_dict({'type': 'single', 'variant_id': 4}) == SingleTarget(None, 4)
    
    def test_unknown_type(self):
        with pytest.raises(ValueError):
            targeting_from_dict({'type': 'customers'})
    
    def test_bad_ids(self):
        with pytest.raises(ValueError):
            targeting_from_dict({'type': 'PRODUCTS', 'product_ids': ['abc']})
    
    def test_to_dict_round_trip(self):
        target = ProductsTarget(frozenset({3, 1}), frozenset())
        assert target.to_dict() == {'type': 'PRODUCTS', 'product_ids': [1, 3], 'variant_ids': []}
        assert targeting_from_dict(target.to_dict()) == target


class TestDiscountRule:
    
    def test_dict_round_trip_keeps_decimal_and_dates(self):
        rule = DiscountRule(
            id=1,
            percentage=Decimal('12.50'),
            status=LifecycleStatus.ACTIVE,
            start_date=datetime(2025, 1, 1),
            end_date=datetime(2025, 2, 1),
            available_online=True,
            available_in_store=False,
            targeting=CategoryTarget(5),
            created_at=datetime(2024, 12, 31, 10, 30),
        )
        assert DiscountRule.from_dict(rule.to_dict()) == rule
    
    @pytest.mark.parametrize('targeting', [
        AllProducts(),
        CategoryTarget(5),
        CategoryTarget(None),
        ProductsTarget(frozenset({1, 2}), frozenset({7})),
        ProductsTarget(),
        SingleTarget(3, None),
        SingleTarget(None, 9),
    ])
    def test_every_targeting_survives_json(self, targeting):
        rule = DiscountRule(
            id=2,
            percentage=Decimal('15.00'),
            status=LifecycleStatus.DISABLED,
            start_date=datetime(2025, 3, 1, 8, 0),
            end_date=datetime(2025, 3, 31, 23, 59, 59),
            available_online=False,
            available_in_store=True,
            targeting=targeting,
        )
        restored = DiscountRule.from_dict(json.loads(json.dumps(rule.to_dict())))
        assert restored == rule
        assert restored.targeting.target_type is targeting.target_type


class TestDiscountCodeModel:
    
    def test_code_is_normalized(self):
        assert normalize_code('  summer25 ') == 'SUMMER25'
        assert DiscountCode(code=' summer25').code == 'SUMMER25'
    
    def test_targeting_columns(self):
        discount = Discount()
        discount.set_targeting(SingleTarget(product_id=3))
        assert discount.target_type is TargetType.SINGLE
        assert discount.targeting == SingleTarget(3, None)
        
        discount.set_targeting(CategoryTarget(8))
        assert discount.product_id is None
        assert discount.targeting == CategoryTarget(8)
    
    def test_customer_ids_include_legacy_column(self, session, shop, customer):
        code = DiscountCode(customer_id=customer.id)
        assert code.customer_ids == frozenset({customer.id})
    
    def test_usage_remaining(self):
        assert DiscountCode(usage_limit=None, used_count=3).usage_remaining is None
        assert DiscountCode(usage_limit=5, used_count=3).usage_remaining == 2
