"""
Unit tests for the discount targeting resolver.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from app.models import (
    AllProducts, CategoryTarget, ProductsTarget, SingleTarget, DiscountRule, LifecycleStatus, OrderSource
)
from app.services.discount_resolver import resolve_active_discount, is_discount_active, targets_item

NOW = datetime(2025, 6, 1, 12, 0, 0)


def rule(rule_id, percentage, targeting=None, **kwargs):
    return DiscountRule(
        id=rule_id,
        percentage=Decimal(str(percentage)),
        status=kwargs.get('status', LifecycleStatus.ACTIVE),
        start_date=kwargs.get('start_date', NOW - timedelta(days=1)),
        end_date=kwargs.get('end_date', NOW + timedelta(days=1)),
        available_online=kwargs.get('available_online', True),
        available_in_store=kwargs.get('available_in_store', True),
        targeting=targeting or AllProducts(),
        created_at=kwargs.get('created_at'),
    )


class TestResolveActiveDiscount:
    
    def test_no_discounts(self):
        assert resolve_active_discount([], product_id=1, now=NOW) is None
    
    def test_highest_percentage_wins(self):
        discounts = [rule(1, 10), rule(2, 35, CategoryTarget(4)), rule(3, 20, SingleTarget(product_id=1))]
        chosen = resolve_active_discount(discounts, product_id=1, category_ids=[4], now=NOW)
        assert chosen.id == 2
    
    def test_tie_goes_to_most_recent_then_highest_id(self):
        older = rule(1, 20, created_at=NOW - timedelta(days=5))
        newer = rule(2, 20, created_at=NOW - timedelta(days=1))
        assert resolve_active_discount([newer, older], product_id=1, now=NOW).id == 2
        
        same_a = rule(5, 20, created_at=NOW)
        same_b = rule(9, 20, created_at=NOW)
        assert resolve_active_discount([same_b, same_a], product_id=1, now=NOW).id == 9
    
    def test_soft_deleted_and_disabled_never_match(self):
        discounts = [
            rule(1, 50, status=LifecycleStatus.DELETED),
            rule(2, 40, status=LifecycleStatus.DISABLED),
            rule(3, 5),
        ]
        assert resolve_active_discount(discounts, product_id=1, now=NOW).id == 3
    
    def test_window_bounds_are_inclusive(self):
        starts_now = rule(1, 10, start_date=NOW)
        ends_now = rule(2, 10, end_date=NOW)
        assert is_discount_active(starts_now, NOW)
        assert is_discount_active(ends_now, NOW)
        assert not is_discount_active(rule(3, 10, end_date=NOW - timedelta(seconds=1)), NOW)
        assert not is_discount_active(rule(4, 10, start_date=NOW + timedelta(seconds=1)), NOW)
    
    def test_channel_filter(self):
        online_only = rule(1, 30, available_in_store=False)
        store_only = rule(2, 20, available_online=False)
        discounts = [online_only, store_only]
        
        assert resolve_active_discount(discounts, 1, now=NOW, order_source=OrderSource.ONLINE).id == 1
        assert resolve_active_discount(discounts, 1, now=NOW, order_source=OrderSource.IN_STORE).id == 2
        # phone orders are taken by staff and follow the in-store flag
        assert resolve_active_discount(discounts, 1, now=NOW, order_source=OrderSource.PHONE).id == 2
        assert resolve_active_discount(discounts, 1, now=NOW).id == 1
    
    def test_variant_targets(self):
        discounts = [rule(1, 15, ProductsTarget(variant_ids=frozenset({10})))]
        assert resolve_active_discount(discounts, product_id=1, variant_id=10, now=NOW).id == 1
        assert resolve_active_discount(discounts, product_id=1, variant_id=11, now=NOW) is None
        assert resolve_active_discount(discounts, product_id=1, now=NOW) is None


class TestTargetsItem:
    
    def test_unreadable_targeting_does_not_match(self):
        class Broken:
            id = 7
            
            @property
            def targeting(self):
                raise ValueError('bad target type')
        
        assert targets_item(Broken(), product_id=1) is False
    
    def test_single_variant_target_needs_that_variant(self):
        target = SingleTarget(product_id=1, variant_id=10)
        assert target.matches(1, 10)
        assert not target.matches(1, None)
        assert not target.matches(1, 11)
    
    def test_empty_single_target_never_matches(self):
        assert not SingleTarget().matches(1, 10, [3])
    
    def test_category_target_without_category(self):
        assert not CategoryTarget(None).matches(1, None, [None, 1])
