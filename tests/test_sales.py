"""
Tests for sale commit and refund.
"""

import pytest
from unittest.mock import patch

from conftest import stock_of
from tindapos.errors import AuthorizationError, NotFoundError, OfflineError, ValidationError
from tindapos.services.document_store import RemoteStoreError


def fill_scenario_cart(session, catalog):
    """3 x Rice (10) + 0.5 kg Tomato (50) = 55.00"""
    for _ in range(3):
        session.cart.add_product(catalog['Rice'])
    session.cart.add_product(catalog['Tomato'], weight='0.5')


class TestSaleCommit:

    def test_checkout_records_sale_shift_and_stock(self, services, cashier_session, open_shift, catalog):
        fill_scenario_cart(cashier_session, catalog)

        result = services.sales.checkout(cashier_session, discount='5', cash='60')

        assert result['outcome'].committed
        assert result['drift'] == []
        sale = services.store.get('sales', result['sale']['id'])
        assert sale['subtotal'] == 55.0
        assert sale['discount'] == 5.0
        assert sale['total'] == 50.0
        assert sale['change'] == 10.0
        assert sale['shiftId'] == open_shift['id']
        assert sale['cashier'] == 'Anna'
        assert sale['items'][0] == {'name': 'Rice', 'unit': 'pcs', 'price': 10.0, 'qty': 3, 'lineTotal': 30.0}
        assert sale['items'][1] == {'name': 'Tomato', 'unit': 'kg', 'price': 50.0, 'weight': 0.5, 'lineTotal': 25.0}

        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 50
        assert cashier_session.shift['totalIncome'] == 50
        assert stock_of(services, catalog['Rice']) == 17
        assert stock_of(services, catalog['Tomato']) == 9.5
        assert cashier_session.cart.is_empty

    def test_stock_never_goes_negative(self, services, cashier_session, open_shift, catalog):
        for _ in range(5):
            cashier_session.cart.add_product(catalog['Soap'])
        services.sales.checkout(cashier_session, cash=200)
        assert stock_of(services, catalog['Soap']) == 0

    def test_checkout_requires_shift(self, services, cashier_session, catalog):
        fill_scenario_cart(cashier_session, catalog)
        with pytest.raises(AuthorizationError):
            services.sales.checkout(cashier_session, cash=100)
        assert services.store.query('sales') == []

    def test_validation_failures_write_nothing(self, services, cashier_session, open_shift, catalog):
        fill_scenario_cart(cashier_session, catalog)
        with pytest.raises(ValidationError):
            services.sales.checkout(cashier_session, discount='60', cash='100')
        with pytest.raises(ValidationError):
            services.sales.checkout(cashier_session, cash='40')
        assert services.store.query('sales') == []
        assert len(cashier_session.cart) == 2

    def test_offline_checkout_is_queued_and_replayed(self, services, cashier_session, open_shift, catalog, offline):
        fill_scenario_cart(cashier_session, catalog)
        with offline:
            result = services.sales.checkout(cashier_session, cash='55')
        assert result['outcome'].queued
        assert services.store.query('sales') == []
        assert services.queue.count() >= 2

        services.sync.refresh_connectivity()

        assert services.queue.count() == 0
        assert services.store.get('sales', result['sale']['id'])['total'] == 55.0
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 55
        assert stock_of(services, catalog['Rice']) == 17

    def test_stock_read_falls_back_to_local_mirror(self, services, cashier_session, open_shift, catalog):
        fill_scenario_cart(cashier_session, catalog)
        original_query = services.store.query

        def failing_query(collection, *args, **kwargs):
            if collection == 'products':
                raise RemoteStoreError('products unavailable')
            return original_query(collection, *args, **kwargs)

        with patch.object(services.store, 'query', side_effect=failing_query):
            result = services.sales.checkout(cashier_session, cash='55')

        assert result['outcome'].committed
        assert result['drift'] == []
        assert stock_of(services, catalog['Rice']) == 17
        assert stock_of(services, catalog['Tomato']) == 9.5
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 55

    def test_checkout_during_outage_queues_stock_decrement(self, services, cashier_session, open_shift, catalog,
                                                           outage):
        for _ in range(3):
            cashier_session.cart.add_product(catalog['Rice'])
        with outage:
            result = services.sales.checkout(cashier_session, cash='30')
            queued = [entry['collection'] for entry in services.queue.pending()]

        assert result['outcome'].queued
        assert result['drift'] == []
        assert queued == ['sales', 'shifts', 'products']

        services.sync.refresh_connectivity()

        assert services.queue.count() == 0
        assert stock_of(services, catalog['Rice']) == 17
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 30

    def test_consecutive_outage_sales_build_on_each_other(self, services, cashier_session, open_shift, catalog,
                                                          outage):
        with outage:
            for quantity in (3, 2):
                for _ in range(quantity):
                    cashier_session.cart.add_product(catalog['Rice'])
                services.sales.checkout(cashier_session, cash='100')

        services.sync.refresh_connectivity()

        assert stock_of(services, catalog['Rice']) == 15
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 50
        assert len(services.store.query('sales')) == 2

    def test_sale_recorded_even_when_shift_increment_fails(self, services, cashier_session, open_shift, catalog):
        fill_scenario_cart(cashier_session, catalog)
        with patch.object(services.shifts, 'add_income', side_effect=RuntimeError('boom')):
            result = services.sales.checkout(cashier_session, cash='55')
        assert result['drift'][0]['target'] == f"shifts/{open_shift['id']}"
        assert services.store.get('sales', result['sale']['id']) is not None


class TestRefund:

    def test_refund_exactly_reverses_commit(self, services, cashier_session, open_shift, catalog):
        before_rice = stock_of(services, catalog['Rice'])
        before_tomato = stock_of(services, catalog['Tomato'])
        before_total = services.store.get('shifts', open_shift['id'])['totalIncome']

        fill_scenario_cart(cashier_session, catalog)
        sale = services.sales.checkout(cashier_session, discount='5', cash='60')['sale']
        services.sales.refund(cashier_session, sale['id'])

        assert stock_of(services, catalog['Rice']) == before_rice
        assert stock_of(services, catalog['Tomato']) == before_tomato
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == before_total
        assert services.store.get('sales', sale['id']) is None
        assert cashier_session.shift['totalIncome'] == before_total

    def test_refund_skips_missing_product_and_shift(self, services, cashier_session, open_shift, catalog):
        fill_scenario_cart(cashier_session, catalog)
        sale = services.sales.checkout(cashier_session, cash='55')['sale']
        services.store.delete('products', catalog['Rice']['id'])
        services.store.delete('shifts', open_shift['id'])

        services.sales.refund(None, sale['id'])

        assert services.store.get('sales', sale['id']) is None
        assert stock_of(services, catalog['Tomato']) == 10

    def test_refund_unknown_sale(self, services):
        with pytest.raises(NotFoundError):
            services.sales.refund(None, 'nope')

    def test_refund_is_all_or_nothing(self, services, cashier_session, open_shift, catalog):
        fill_scenario_cart(cashier_session, catalog)
        sale = services.sales.checkout(cashier_session, cash='55')['sale']

        with patch('tindapos.services.document_store.StoreTransaction.delete',
                   side_effect=RemoteStoreError('write failed')):
            with pytest.raises(OfflineError):
                services.sales.refund(cashier_session, sale['id'])

        assert services.store.get('sales', sale['id']) is not None
        assert stock_of(services, catalog['Rice']) == 17
        assert services.store.get('shifts', open_shift['id'])['totalIncome'] == 55
