"""
Tests for the local document mirror and the read-through reader.
"""

import pytest
from unittest.mock import patch

from conftest import stock_of
from tindapos.services.document_store import RemoteStoreError

pytestmark = pytest.mark.offline


class TestLocalMirror:

    def test_gateway_writes_are_mirrored(self, services, catalog):
        rice = catalog['Rice']
        assert services.mirror.get('products', rice['id'])['stock'] == 20

        services.gateway.update('products', rice['id'], {'stock': 12})
        assert services.mirror.get('products', rice['id'])['stock'] == 12

        services.gateway.delete('products', rice['id'])
        assert services.mirror.get('products', rice['id']) is None

    def test_queued_writes_are_mirrored(self, services, catalog, offline):
        with offline:
            services.gateway.update('products', catalog['Soap']['id'], {'stock': 1})
        assert services.queue.count() == 1
        assert services.store.get('products', catalog['Soap']['id'])['stock'] == 3
        assert services.mirror.get('products', catalog['Soap']['id'])['stock'] == 1

    def test_only_selling_collections_are_mirrored(self, services):
        services.gateway.add('expenses', {'amount': 5, 'reason': 'ice'})
        assert services.mirror.query('expenses') == []
        assert services.mirror.count() == 0

    def test_refresh_replaces_stale_copies(self, services, catalog):
        services.store.delete('products', catalog['Soap']['id'])
        services.store.update('products', catalog['Rice']['id'], {'stock': 4})

        services.mirror.refresh(services.store)

        names = sorted(p['name'] for p in services.mirror.query('products'))
        assert names == ['Rice', 'Tomato']
        assert services.mirror.get('products', catalog['Rice']['id'])['stock'] == 4

    def test_mirror_query_filters_like_the_store(self, services, catalog):
        kg = services.mirror.query('products', [('unit', '==', 'kg')])
        assert [p['name'] for p in kg] == ['Tomato']
        ordered = services.mirror.query('products', order_by='price', descending=True, limit=2)
        assert [p['name'] for p in ordered] == ['Tomato', 'Soap']


class TestReadThroughStore:

    def test_online_reads_refresh_the_mirror(self, services, catalog):
        services.store.update('products', catalog['Rice']['id'], {'stock': 9})
        assert services.reader.get('products', catalog['Rice']['id'])['stock'] == 9
        assert services.mirror.get('products', catalog['Rice']['id'])['stock'] == 9

    def test_offline_reads_come_from_the_mirror(self, services, catalog, outage):
        with outage:
            product = services.catalog.get_product(catalog['Tomato']['id'])
            products = services.catalog.list_products(search='so')
        assert product['price'] == 50.0
        assert [p['name'] for p in products] == ['Soap']

    def test_failed_remote_read_falls_back(self, services, catalog):
        with patch.object(services.store, 'get', side_effect=RemoteStoreError('timeout')):
            assert services.reader.get('products', catalog['Soap']['id'])['name'] == 'Soap'

    def test_unmirrored_collections_read_the_store(self, services):
        with patch.object(services.store, 'query', side_effect=RemoteStoreError('down')):
            with pytest.raises(RemoteStoreError):
                services.reader.query('expenses')

    def test_remotely_deleted_document_leaves_the_mirror(self, services, catalog):
        services.store.delete('products', catalog['Rice']['id'])
        assert services.reader.get('products', catalog['Rice']['id']) is None
        assert services.mirror.get('products', catalog['Rice']['id']) is None


class TestMirrorAndSync:

    def test_refund_restock_reaches_the_mirror(self, services, cashier_session, open_shift, catalog):
        for _ in range(2):
            cashier_session.cart.add_product(catalog['Rice'])
        sale = services.sales.checkout(cashier_session, cash='20')['sale']
        assert services.mirror.get('products', catalog['Rice']['id'])['stock'] == 18

        services.sales.refund(cashier_session, sale['id'])

        assert stock_of(services, catalog['Rice']) == 20
        assert services.mirror.get('products', catalog['Rice']['id'])['stock'] == 20

    def test_drain_refreshes_mirror_from_store(self, services, catalog, offline):
        with offline:
            services.gateway.update('products', catalog['Rice']['id'], {'stock': 11})
        services.store.update('products', catalog['Soap']['id'], {'stock': 40})

        report = services.sync.process_sync_queue()

        assert report['remaining'] == 0
        assert services.mirror.get('products', catalog['Rice']['id'])['stock'] == 11
        assert services.mirror.get('products', catalog['Soap']['id'])['stock'] == 40

    def test_mirror_kept_while_writes_remain_queued(self, services, catalog, offline):
        with offline:
            services.gateway.update('products', catalog['Rice']['id'], {'stock': 11})
            services.gateway.update('shifts', 'missing-shift', {'totalIncome': 5})

        report = services.sync.process_sync_queue()

        assert report['remaining'] == 1
        services.store.update('products', catalog['Soap']['id'], {'stock': 40})
        assert services.mirror.get('products', catalog['Soap']['id'])['stock'] == 3

    def test_sync_status_reports_mirror_size(self, services, catalog):
        assert services.sync.get_sync_status()['mirrored'] == 3
