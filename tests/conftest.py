"""
Pytest configuration and shared fixtures for Stockroom tests.
"""
import os
import tempfile
from types import SimpleNamespace

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Category, Item, Site, StockVariant

VEST_ID = 42


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'MISSING_VARIANT_POLICY': 'skip',
        'DEFAULT_PERFORMER': 'System',
        'CACHE_TYPE': 'SimpleCache',
    })

    with app.app_context():
        db.create_all()
        _create_test_data()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def seed(app):
    """Ids of the seeded catalog."""
    with app.app_context():
        shirt = Item.query.filter_by(name='Work Shirt').one()
        boots = Item.query.filter_by(name='Safety Boots').one()
        site = Site.query.filter_by(name='North Depot').one()
        return SimpleNamespace(vest_id=VEST_ID, shirt_id=shirt.id, boots_id=boots.id, site_id=site.id)


def _create_test_data():
    """Vest 42: M=3, L=10. Shirt: S=20, M=6. Boots: 42=0, no 44 row."""
    uniforms = Category(name='Uniforms')
    db.session.add(uniforms)
    db.session.flush()

    vest = Item(id=VEST_ID, name='Safety Vest', category_id=uniforms.id)
    shirt = Item(name='Work Shirt', category_id=uniforms.id)
    boots = Item(name='Safety Boots', category_id=uniforms.id)
    db.session.add_all([vest, shirt, boots])
    db.session.flush()

    db.session.add_all([
        StockVariant(item_id=vest.id, size_label='M', quantity=3),
        StockVariant(item_id=vest.id, size_label='L', quantity=10),
        StockVariant(item_id=shirt.id, size_label='S', quantity=20),
        StockVariant(item_id=shirt.id, size_label='M', quantity=6),
        StockVariant(item_id=boots.id, size_label='42', quantity=0),
        Site(name='North Depot', location='Building A'),
        Site(name='South Yard', location='Gate 3'),
    ])
    db.session.commit()
