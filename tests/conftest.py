"""
Shared pytest fixtures and configuration for all tests.

Every test app gets its own in-memory local database (offline queue) and its
own in-memory remote document store.
"""

import pytest
import sys
import os
from contextlib import contextmanager
from unittest.mock import patch

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tindapos import create_app, get_services
from tindapos.models import db
from tindapos.services.document_store import RemoteStoreError
from tindapos.session import PosSession


@pytest.fixture(scope='session')
def app_factory():
    """Factory fixture for creating test app instances."""
    def _create_app(config='testing'):
        app = create_app(config)
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
        return app
    return _create_app


@pytest.fixture(scope='function')
def fresh_app(app_factory):
    """Create a fresh application for each test with clean databases."""
    app = app_factory()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    get_services(app).store.dispose()


@pytest.fixture(scope='function')
def client(fresh_app):
    """Create a test client for each test."""
    return fresh_app.test_client()


@pytest.fixture
def services(fresh_app):
    return get_services(fresh_app)


@pytest.fixture
def offline(services):
    """
    Simulate lost connectivity until the context is left.

    Usage:
        with offline:
            ...
    """
    return patch.object(services.sync, 'check_internet_connection', return_value=False)


@contextmanager
def store_down(services):
    down = RemoteStoreError('remote store unreachable')
    with patch.object(services.sync, 'check_internet_connection', return_value=False), \
            patch.object(services.store, 'get', side_effect=down), \
            patch.object(services.store, 'query', side_effect=down), \
            patch.object(services.store, 'transaction', side_effect=down):
        yield


@pytest.fixture
def outage(services):
    """
    Simulate a real outage: no connectivity and every remote read failing.

    Usage:
        with outage:
            ...
    """
    return store_down(services)


@pytest.fixture
def admin_session():
    return PosSession('admin', 'admin', 'Administrator')


@pytest.fixture
def cashier_session():
    return PosSession('anna', 'cashier', 'Anna')


@pytest.fixture
def catalog(services):
    """
    Seed products:
    - Rice (pcs) price 10, capital 7, stock 20
    - Tomato (kg) price 50, capital 35, stock 10
    - Soap (pcs) price 25, capital 20, stock 3
    """
    products = {}
    for fields in (
        {'name': 'Rice', 'unit': 'pcs', 'category': 'Groceries', 'price': 10, 'capital': 7, 'stock': 20},
        {'name': 'Tomato', 'unit': 'kg', 'category': 'Vegetables', 'price': 50, 'capital': 35, 'stock': 10},
        {'name': 'Soap', 'unit': 'pcs', 'category': 'Groceries', 'price': 25, 'capital': 20, 'stock': 3},
    ):
        result = services.catalog.add_product(fields)
        products[fields['name']] = result['product']
    return products


@pytest.fixture
def open_shift(services, cashier_session):
    """Anna's open shift; the cashier_session sells under it."""
    return services.shifts.start(cashier_session)


def stock_of(services, product):
    return services.store.get('products', product['id'])['stock']


def login(client, services, username='admin', password='admin123', role='admin', employee_name='Administrator'):
    """Create an account and log the client in with it."""
    services.catalog.create_user(username, password, role, employee_name)
    return client.post('/auth/login', json={'username': username, 'password': password})


# Pytest configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "offline: marks tests that simulate lost connectivity"
    )
