"""
Integration tests for the Flask CLI commands.
"""

from app.models import Shop, Product, Discount, DiscountCode


def test_seed_demo_shop(app, session):
    runner = app.test_cli_runner()
    
    result = runner.invoke(args=['seed-demo-shop', '--slug', 'demo-test'])
    assert result.exit_code == 0
    assert 'Demo shop created' in result.output
    
    shop = session.query(Shop).filter_by(slug='demo-test').one()
    assert session.query(Product).filter_by(shop_id=shop.id).count() == 2
    assert session.query(Discount).filter_by(shop_id=shop.id).count() == 1
    assert session.query(DiscountCode).filter_by(shop_id=shop.id, code='WELCOME10').count() == 1
    
    again = runner.invoke(args=['seed-demo-shop', '--slug', 'demo-test'])
    assert 'already exists' in again.output


def test_init_db_is_idempotent(app):
    result = app.test_cli_runner().invoke(args=['init-db'])
    assert result.exit_code == 0
