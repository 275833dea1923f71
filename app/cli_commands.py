"""
Flask CLI commands for shop setup.

Commands:
- flask init-db: Create the database tables
- flask seed-demo-shop: Create a demo shop with products, a discount and a code
"""
from datetime import timedelta
from decimal import Decimal

import click

from app import database
from app.models import (
    Shop, Category, Product, ProductVariant, Discount, DiscountCode, CategoryTarget, AllProducts,
    LifecycleStatus
)
from app.utils.dates import utcnow


def init_cli_commands(app):
    """Register CLI commands with Flask app."""
    
    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        database.create_all()
        click.echo(click.style('✅ Database tables created', fg='green'))
    
    @app.cli.command('seed-demo-shop')
    @click.option('--slug', default='demo', show_default=True, help='Slug of the demo shop')
    def seed_demo_shop(slug):
        """Create a demo shop with a small catalog, a 20% discount and a WELCOME10 code."""
        db_session = database.get_session()
        
        if db_session.query(Shop).filter_by(slug=slug).first():
            click.echo(click.style(f'❌ A shop with slug "{slug}" already exists', fg='red'))
            return
        
        now = utcnow()
        try:
            shop = Shop(slug=slug, name='Demo Shop', active=True)
            db_session.add(shop)
            db_session.flush()
            
            shirts = Category(shop_id=shop.id, name='Shirts')
            mugs = Category(shop_id=shop.id, name='Mugs')
            db_session.add_all([shirts, mugs])
            
            shirt = Product(
                shop_id=shop.id, name='T-Shirt', sku='TSHIRT', price=Decimal('100.00'),
                tva=Decimal('19'), inventory=0, categories=[shirts]
            )
            shirt.variants = [
                ProductVariant(name='S', sku='TSHIRT-S', options={'size': 'S'}, inventory=20),
                ProductVariant(name='L', sku='TSHIRT-L', price=Decimal('110.00'), options={'size': 'L'}, inventory=20),
            ]
            mug = Product(
                shop_id=shop.id, name='Mug', sku='MUG', price=Decimal('15.50'),
                tva=Decimal('19'), inventory=50, categories=[mugs]
            )
            db_session.add_all([shirt, mug])
            db_session.flush()
            
            discount = Discount(
                shop_id=shop.id, title='Shirt week', percentage=Decimal('20'),
                status=LifecycleStatus.ACTIVE, start_date=now, end_date=now + timedelta(days=7)
            )
            discount.set_targeting(CategoryTarget(shirts.id))
            
            code = DiscountCode(
                shop_id=shop.id, code='WELCOME10', title='Welcome', percentage=Decimal('10'),
                status=LifecycleStatus.ACTIVE, start_date=now, end_date=now + timedelta(days=30),
                usage_limit=100, used_count=0
            )
            code.set_targeting(AllProducts())
            
            db_session.add_all([discount, code])
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error seeding demo shop: {e}', fg='red'))
            raise click.Abort()
        
        click.echo(click.style('\n✅ Demo shop created!', fg='green', bold=True))
        click.echo(f'   Shop ID: {shop.id}')
        click.echo(f'   Products: {shirt.name}, {mug.name}')
        click.echo(f'   Discount code: {code.code}')
