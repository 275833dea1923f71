"""
Integration tests for the discount and discount code admin API.
"""

import pytest
from datetime import timedelta

from app.models import Discount, DiscountCode, LifecycleStatus
from app.utils.dates import utcnow


def window(days=7):
    now = utcnow()
    return {
        'start_date': (now - timedelta(days=1)).isoformat(),
        'end_date': (now + timedelta(days=days)).isoformat(),
    }


class TestDiscountAdmin:
    
    def test_create_and_list(self, authenticated_client, product):
        response = authenticated_client.post('/api/discounts', json={
            'title': 'Shirt promo',
            'percentage': 15,
            'targeting': {'type': 'PRODUCTS', 'product_ids': [product.id]},
            **window()
        })
        assert response.status_code == 201
        created = response.get_json()
        assert created['percentage'] == '15.00'
        assert created['targeting'] == {'type': 'PRODUCTS', 'product_ids': [product.id], 'variant_ids': []}
        assert created['enabled'] is True
        
        listed = authenticated_client.get('/api/discounts').get_json()
        assert [d['id'] for d in listed] == [created['id']]
    
    @pytest.mark.parametrize('percentage', [0, -5, 101, 'abc'])
    def test_percentage_bounds(self, authenticated_client, percentage):
        response = authenticated_client.post('/api/discounts', json={'percentage': percentage, **window()})
        assert response.status_code == 400
    
    def test_start_must_precede_end(self, authenticated_client):
        now = utcnow()
        response = authenticated_client.post('/api/discounts', json={
            'percentage': 10,
            'start_date': now.isoformat(),
            'end_date': (now - timedelta(days=1)).isoformat(),
        })
        assert response.status_code == 400
    
    def test_needs_a_channel(self, authenticated_client):
        response = authenticated_client.post('/api/discounts', json={
            'percentage': 10, 'available_online': False, 'available_in_store': False, **window()
        })
        assert response.status_code == 400
    
    def test_targets_must_belong_to_shop(self, authenticated_client, other_product):
        response = authenticated_client.post('/api/discounts', json={
            'percentage': 10,
            'targeting': {'type': 'SINGLE', 'product_id': other_product.id},
            **window()
        })
        assert response.status_code == 400
    
    @pytest.mark.parametrize('field', ['enabled', 'available_online', 'available_in_store'])
    def test_flags_must_be_booleans(self, authenticated_client, shop, make_discount, field):
        response = authenticated_client.post('/api/discounts', json={'percentage': 10, field: 'false', **window()})
        assert response.status_code == 400
        assert response.get_json()['message'] == f'{field} must be true or false'
        
        discount = make_discount(shop, 10)
        response = authenticated_client.patch(f'/api/discounts/{discount.id}', json={field: 0})
        assert response.status_code == 400
        assert authenticated_client.get(f'/api/discounts/{discount.id}').get_json()['status'] == 'ACTIVE'
    
    def test_disable_then_enable(self, authenticated_client, shop, make_discount):
        discount = make_discount(shop, 10)
        
        response = authenticated_client.patch(f'/api/discounts/{discount.id}', json={'enabled': False})
        assert response.get_json()['status'] == 'DISABLED'
        
        response = authenticated_client.patch(f'/api/discounts/{discount.id}', json={'enabled': True})
        assert response.get_json()['status'] == 'ACTIVE'
    
    def test_soft_delete_keeps_row_and_is_terminal(self, authenticated_client, session, shop, make_discount):
        discount = make_discount(shop, 10)
        
        assert authenticated_client.delete(f'/api/discounts/{discount.id}').status_code == 200
        assert authenticated_client.get(f'/api/discounts/{discount.id}').status_code == 404
        assert authenticated_client.get('/api/discounts').get_json() == []
        
        response = authenticated_client.patch(f'/api/discounts/{discount.id}', json={'enabled': True})
        assert response.status_code == 400
        
        session.expire_all()
        row = session.get(Discount, discount.id)
        assert row is not None
        assert row.status is LifecycleStatus.DELETED
    
    def test_deleted_discount_no_longer_prices(self, authenticated_client, shop, product, make_discount):
        discount = make_discount(shop, 40)
        cart = {'items': [{'product_id': product.id, 'quantity': 1}]}
        
        assert authenticated_client.post('/api/checkout/quote', json=cart).get_json()['subtotal'] == '60.00'
        authenticated_client.delete(f'/api/discounts/{discount.id}')
        assert authenticated_client.post('/api/checkout/quote', json=cart).get_json()['subtotal'] == '100.00'
    
    def test_staff_can_read_but_not_write(self, staff_client, shop, make_discount):
        make_discount(shop, 10)
        assert staff_client.get('/api/discounts').status_code == 200
        response = staff_client.post('/api/discounts', json={'percentage': 10, **window()})
        assert response.status_code == 403
    
    def test_customers_cannot_manage_discounts(self, customer_client):
        assert customer_client.get('/api/discounts').status_code == 403


class TestDiscountCodeAdmin:
    
    def test_code_is_upper_cased_and_unique(self, authenticated_client):
        payload = {'code': 'summer', 'percentage': 10, 'usage_limit': 5, **window()}
        
        response = authenticated_client.post('/api/discount-codes', json=payload)
        assert response.status_code == 201
        assert response.get_json()['code'] == 'SUMMER'
        assert response.get_json()['usage_limit'] == 5
        
        duplicate = authenticated_client.post('/api/discount-codes', json={**payload, 'code': 'Summer '})
        assert duplicate.status_code == 400
    
    def test_same_code_in_two_shops(self, authenticated_client, other_shop, make_code):
        make_code(other_shop, 'SHARED', 10)
        response = authenticated_client.post('/api/discount-codes', json={'code': 'shared', 'percentage': 5, **window()})
        assert response.status_code == 201
    
    def test_code_required(self, authenticated_client):
        response = authenticated_client.post('/api/discount-codes', json={'percentage': 5, **window()})
        assert response.status_code == 400
    
    def test_customer_restriction(self, authenticated_client, customer):
        response = authenticated_client.post('/api/discount-codes', json={
            'code': 'VIP', 'percentage': 20, 'customer_ids': [customer.id], **window()
        })
        assert response.get_json()['customer_ids'] == [customer.id]
        
        rejected = authenticated_client.post('/api/discount-codes/validate', json={'code': 'vip'}).get_json()
        assert rejected == {
            'valid': False,
            'reason': 'CUSTOMER_NOT_ELIGIBLE',
            'error': 'This discount code is not available for your account',
        }
        accepted = authenticated_client.post('/api/discount-codes/validate', json={
            'code': 'vip', 'customer_id': customer.id
        }).get_json()
        assert accepted['valid'] is True
        assert accepted['discount_code']['code'] == 'VIP'
    
    def test_usage_limit_below_used_count(self, authenticated_client, shop, make_code):
        code = make_code(shop, 'BUSY', 10, usage_limit=10, used_count=4)
        response = authenticated_client.patch(f'/api/discount-codes/{code.id}', json={'usage_limit': 3})
        assert response.status_code == 400
    
    def test_deleted_code_is_not_found_on_validate(self, authenticated_client, session, shop, make_code):
        code = make_code(shop, 'GONE', 10)
        authenticated_client.delete(f'/api/discount-codes/{code.id}')
        
        result = authenticated_client.post('/api/discount-codes/validate', json={'code': 'GONE'}).get_json()
        assert result['reason'] == 'NOT_FOUND'
        
        session.expire_all()
        assert session.get(DiscountCode, code.id).status is LifecycleStatus.DELETED
    
    def test_validate_wrong_channel(self, authenticated_client, shop, make_code):
        make_code(shop, 'WEBONLY', 10, available_in_store=False)
        result = authenticated_client.post('/api/discount-codes/validate', json={
            'code': 'WEBONLY', 'order_source': 'IN_STORE'
        }).get_json()
        assert result['reason'] == 'WRONG_CHANNEL'
    
    def test_disable_code(self, authenticated_client, shop, make_code):
        code = make_code(shop, 'PAUSE', 10)
        authenticated_client.patch(f'/api/discount-codes/{code.id}', json={'is_active': False})
        
        result = authenticated_client.post('/api/discount-codes/validate', json={'code': 'PAUSE'}).get_json()
        assert result['reason'] == 'INACTIVE'
    
    def test_is_active_must_be_boolean(self, authenticated_client, shop, make_code):
        code = make_code(shop, 'STRICT', 10)
        response = authenticated_client.patch(f'/api/discount-codes/{code.id}', json={'is_active': 'false'})
        assert response.status_code == 400
        
        result = authenticated_client.post('/api/discount-codes/validate', json={'code': 'STRICT'}).get_json()
        assert result['valid'] is True
