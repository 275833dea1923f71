"""
Integration tests for order commit atomicity.
"""

import pytest
from decimal import Decimal

from app.exceptions import BusinessLogicError, CouponInvalidError, InventoryUnavailableError, NotFoundError
from app.models import Order, OrderSource, OrderStatus, LifecycleStatus
from app.services.catalog_service import SqlCatalog
from app.services.order_service import cancel_order, commit_order, generate_order_number, update_order
from app.services.pricing_service import CartLine, PricingPolicy, price_cart


def priced(session, shop, lines, coupon=None, order_source=OrderSource.ONLINE):
    return price_cart(lines, shop.id, SqlCatalog(session), PricingPolicy(), coupon=coupon, order_source=order_source)


class TestCommitOrder:
    
    def test_order_totals_match_pricing(self, session, shop, product):
        pricing = priced(session, shop, [CartLine(product_id=product.id, quantity=3)])
        order = commit_order(session, pricing, shop.id, order_source=OrderSource.PHONE)
        
        assert order.id is not None
        assert order.order_source is OrderSource.PHONE
        assert order.subtotal == pricing.subtotal
        assert order.total == pricing.total
        assert len(order.items) == 1
        assert order.items[0].total == Decimal('300.00')
    
    def test_quantities_are_aggregated_per_stock_row(self, session, shop, product):
        lines = [CartLine(product_id=product.id, quantity=6), CartLine(product_id=product.id, quantity=5)]
        pricing = priced(session, shop, lines)
        
        with pytest.raises(InventoryUnavailableError) as exc:
            commit_order(session, pricing, shop.id)
        assert exc.value.requested == 11
    
    def test_stock_conflict_rolls_back_everything(self, session, shop, product, variant, make_code):
        code = make_code(shop, 'TEN', 10, usage_limit=3)
        lines = [
            CartLine(product_id=product.id, quantity=1),
            CartLine(product_id=product.id, variant_id=variant.id, quantity=4),
        ]
        pricing = priced(session, shop, lines, coupon=code)
        
        with pytest.raises(InventoryUnavailableError):
            commit_order(session, pricing, shop.id, coupon=code)
        
        session.expire_all()
        assert product.inventory == 10
        assert variant.inventory == 3
        assert code.used_count == 0
        assert session.query(Order).count() == 0
    
    def test_coupon_exhausted_between_quote_and_commit(self, session, shop, product, make_code):
        code = make_code(shop, 'LAST', 10, usage_limit=1)
        pricing = priced(session, shop, [CartLine(product_id=product.id, quantity=1)], coupon=code)
        
        # another checkout redeems the last use meanwhile
        code.used_count = 1
        session.commit()
        
        with pytest.raises(CouponInvalidError) as exc:
            commit_order(session, pricing, shop.id, coupon=code)
        assert exc.value.reason == 'USAGE_LIMIT_REACHED'
        
        session.expire_all()
        assert product.inventory == 10
        assert session.query(Order).count() == 0
    
    def test_disabled_coupon_is_not_redeemed(self, session, shop, product, make_code):
        code = make_code(shop, 'OFF', 10)
        pricing = priced(session, shop, [CartLine(product_id=product.id, quantity=1)], coupon=code)
        code.status = LifecycleStatus.DISABLED
        session.commit()
        
        with pytest.raises(CouponInvalidError):
            commit_order(session, pricing, shop.id, coupon=code)
    
    def test_unlimited_coupon(self, session, shop, product, make_code):
        code = make_code(shop, 'FOREVER', 10)
        for _ in range(3):
            pricing = priced(session, shop, [CartLine(product_id=product.id, quantity=1)], coupon=code)
            commit_order(session, pricing, shop.id, coupon=code)
        
        session.expire_all()
        assert code.used_count == 3
        assert product.inventory == 7
    
    def test_order_numbers(self):
        number = generate_order_number()
        assert number.startswith('ORD-')
        assert len(number) == len('ORD-20250101-ABCDEF')
        assert generate_order_number() != number


class TestOrderLifecycle:
    
    def _order(self, session, shop, lines, coupon=None):
        return commit_order(session, priced(session, shop, lines, coupon=coupon), shop.id, coupon=coupon)
    
    def test_cancel_gives_stock_back_per_row(self, session, shop, product, variant):
        order = self._order(session, shop, [
            CartLine(product_id=product.id, quantity=2),
            CartLine(product_id=product.id, quantity=1),
            CartLine(product_id=product.id, variant_id=variant.id, quantity=2),
        ])
        session.expire_all()
        assert product.inventory == 7
        assert variant.inventory == 1
        
        cancelled = cancel_order(session, order.id, shop.id)
        assert cancelled.status is OrderStatus.CANCELLED
        
        session.expire_all()
        assert product.inventory == 10
        assert variant.inventory == 3
    
    def test_cancel_skips_items_whose_product_is_gone(self, session, shop, product):
        order = self._order(session, shop, [CartLine(product_id=product.id, quantity=1)])
        order.items[0].product_id = None
        session.commit()
        
        cancel_order(session, order.id, shop.id)
        session.expire_all()
        assert product.inventory == 9
    
    def test_cancel_keeps_coupon_usage(self, session, shop, product, make_code):
        code = make_code(shop, 'ONCE', 10, usage_limit=1)
        order = self._order(session, shop, [CartLine(product_id=product.id, quantity=1)], coupon=code)
        
        cancel_order(session, order.id, shop.id)
        session.expire_all()
        assert code.used_count == 1
    
    def test_cancel_twice_is_rejected(self, session, shop, product):
        order = self._order(session, shop, [CartLine(product_id=product.id, quantity=1)])
        cancel_order(session, order.id, shop.id)
        
        with pytest.raises(BusinessLogicError):
            cancel_order(session, order.id, shop.id)
        session.expire_all()
        assert product.inventory == 10
    
    def test_cancel_is_shop_scoped(self, session, shop, other_shop, product):
        order = self._order(session, shop, [CartLine(product_id=product.id, quantity=1)])
        
        with pytest.raises(NotFoundError):
            cancel_order(session, order.id, other_shop.id)
        session.expire_all()
        assert order.status is OrderStatus.PENDING
    
    def test_update_moves_status(self, session, shop, product):
        order = self._order(session, shop, [CartLine(product_id=product.id, quantity=1)])
        
        update_order(session, order.id, shop.id, {'status': 'delivered'})
        update_order(session, order.id, shop.id, {'notes': None})
        session.expire_all()
        assert order.status is OrderStatus.DELIVERED
        assert order.notes is None
    
    def test_update_rejects_cancellation_and_keeps_row(self, session, shop, product):
        order = self._order(session, shop, [CartLine(product_id=product.id, quantity=1)])
        
        with pytest.raises(BusinessLogicError):
            update_order(session, order.id, shop.id, {'status': 'CANCELLED', 'notes': 'oops'})
        session.expire_all()
        assert order.status is OrderStatus.PENDING
        assert order.notes is None
