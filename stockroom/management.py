"""
Management commands for setup and maintenance
"""
import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Item, Site, StockVariant
from .services import catalog

DEMO_CATALOG = {
    'Uniforms': [
        ('Work Shirt', {'S': 20, 'M': 30, 'L': 25, 'XL': 10}),
        ('Safety Vest', {'M': 15, 'L': 15}),
    ],
    'Footwear': [
        ('Safety Boots', {'40': 6, '42': 8, '44': 6}),
    ],
}
DEMO_SITES = [('North Depot', 'Building A'), ('South Yard', 'Gate 3')]


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables that do not exist yet"""
    db.create_all()
    click.echo("✅ Database tables created/verified")


@click.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Seed a small demo catalog with opening stock"""
    if Item.query.first() is not None:
        click.echo("ℹ️  Catalog already has items; skipping demo seed.")
        return

    for category_name, items in DEMO_CATALOG.items():
        category = Category.query.filter_by(name=category_name).first()
        if category is None:
            category = catalog.create_category(category_name)
        for name, sizes in items:
            catalog.create_item(name, category_id=category.id, sizes=sizes)
            click.echo(f"✅ {name}: {', '.join(f'{s}={q}' for s, q in sizes.items())}")

    for name, location in DEMO_SITES:
        if Site.query.filter_by(name=name).first() is None:
            catalog.create_site(name, location)
    click.echo(f"✅ Seeded {Item.query.count()} items and {Site.query.count()} sites.")


@click.command('check-ledger')
@with_appcontext
def check_ledger_command():
    """Report ledger rows with a negative quantity; exits 1 if any exist"""
    negative = StockVariant.query.filter(StockVariant.quantity < 0).order_by(StockVariant.item_id).all()
    if not negative:
        click.echo(f"✅ All {StockVariant.query.count()} ledger rows are non-negative.")
        return

    for variant in negative:
        name = variant.item.name if variant.item else f"Item #{variant.item_id}"
        click.echo(f"❌ {name} ({variant.size_label}): {variant.quantity}", err=True)
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_demo_command)
    app.cli.add_command(check_ledger_command)
