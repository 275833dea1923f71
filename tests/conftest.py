import pytest
from datetime import timedelta
from decimal import Decimal

from app import create_app
from app.database import create_all, drop_all, get_session
from app.models import (
    Shop, Customer, Category, Product, ProductVariant, Discount, DiscountCode,
    AllProducts, LifecycleStatus
)
from app.utils.dates import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app('config.TestConfig')


@pytest.fixture(scope='function', autouse=True)
def app_context(app):
    """Fresh schema for every test, inside an application context."""
    with app.app_context():
        create_all()
        yield
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session shared with the app (same scoped session)."""
    return get_session()


@pytest.fixture(scope='function')
def shop(session):
    shop = Shop(slug='shop-1', name='Shop One', active=True)
    session.add(shop)
    session.commit()
    return shop


@pytest.fixture(scope='function')
def other_shop(session):
    """Second shop for isolation tests."""
    shop = Shop(slug='shop-2', name='Shop Two', active=True)
    session.add(shop)
    session.commit()
    return shop


@pytest.fixture(scope='function')
def category(session, shop):
    category = Category(shop_id=shop.id, name='Shirts')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def product(session, shop, category):
    """Plain product: price 100, 10 in stock."""
    product = Product(
        shop_id=shop.id,
        name='T-Shirt',
        sku='TS-001',
        barcode='7790000000001',
        price=Decimal('100.00'),
        tva=Decimal('19'),
        images=['https://cdn.example.com/ts.png'],
        inventory=10,
        categories=[category]
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def variant(session, product):
    """Variant of `product` with its own price and stock."""
    variant = ProductVariant(
        product_id=product.id,
        name='Large',
        sku='TS-001-L',
        price=Decimal('120.00'),
        options={'size': 'L'},
        inventory=3
    )
    session.add(variant)
    session.commit()
    return variant


@pytest.fixture(scope='function')
def other_product(session, other_shop):
    product = Product(shop_id=other_shop.id, name='Foreign Mug', price=Decimal('50.00'), inventory=5)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def customer(session, shop):
    customer = Customer(shop_id=shop.id, name='Ana', email='ana@example.com')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def make_discount(session):
    """Factory for active discounts valid around now."""
    def _make(shop, percentage, targeting=None, **kwargs):
        now = utcnow()
        products = kwargs.pop('products', ())
        variants = kwargs.pop('variants', ())
        discount = Discount(
            shop_id=shop.id,
            percentage=Decimal(str(percentage)),
            status=kwargs.pop('status', LifecycleStatus.ACTIVE),
            start_date=kwargs.pop('start_date', now - timedelta(days=1)),
            end_date=kwargs.pop('end_date', now + timedelta(days=1)),
            **kwargs
        )
        discount.set_targeting(targeting or AllProducts(), products, variants)
        session.add(discount)
        session.commit()
        return discount
    return _make


@pytest.fixture(scope='function')
def make_code(session):
    """Factory for active discount codes valid around now."""
    def _make(shop, code, percentage, targeting=None, **kwargs):
        now = utcnow()
        discount_code = DiscountCode(
            shop_id=shop.id,
            code=code,
            percentage=Decimal(str(percentage)),
            status=kwargs.pop('status', LifecycleStatus.ACTIVE),
            start_date=kwargs.pop('start_date', now - timedelta(days=1)),
            end_date=kwargs.pop('end_date', now + timedelta(days=1)),
            used_count=kwargs.pop('used_count', 0),
            **kwargs
        )
        discount_code.set_targeting(targeting or AllProducts())
        session.add(discount_code)
        session.commit()
        return discount_code
    return _make


def _login(client, shop, role='SHOP_ADMIN', plan_type='STANDARD', user_id=1):
    with client.session_transaction() as sess:
        sess['user_id'] = user_id
        sess['shop_id'] = shop.id
        sess['role'] = role
        sess['plan_type'] = plan_type
    return client


@pytest.fixture(scope='function')
def authenticated_client(client, shop):
    """Client logged in as the admin of `shop`."""
    return _login(client, shop)


@pytest.fixture(scope='function')
def staff_client(client, shop):
    """Client logged in as staff of `shop`."""
    return _login(client, shop, role='SHOP_STAFF')


@pytest.fixture(scope='function')
def customer_client(client, shop):
    """Client logged in as a customer of `shop`."""
    return _login(client, shop, role='CUSTOMER')
