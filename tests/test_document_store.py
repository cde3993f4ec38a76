"""
Tests for the SQL-backed document store.
"""

import pytest
from datetime import datetime, timedelta

from tindapos.services.document_store import DocumentNotFound, RemoteStoreError, SqlDocumentStore


@pytest.fixture
def store():
    store = SqlDocumentStore('sqlite://')
    store.create_schema()
    yield store
    store.dispose()


class TestDocumentCrud:

    def test_insert_generates_id_and_get_returns_it(self, store):
        doc_id = store.insert('products', {'name': 'Rice', 'price': 10})
        doc = store.get('products', doc_id)
        assert doc == {'id': doc_id, 'name': 'Rice', 'price': 10}

    def test_insert_with_existing_id_overwrites(self, store):
        store.insert('sales', {'total': 10}, 'sale-1')
        store.insert('sales', {'total': 10}, 'sale-1')
        assert len(store.query('sales')) == 1

    def test_update_merges_fields(self, store):
        doc_id = store.insert('shifts', {'cashierName': 'Anna', 'totalIncome': 0})
        store.update('shifts', doc_id, {'totalIncome': 75})
        assert store.get('shifts', doc_id) == {'id': doc_id, 'cashierName': 'Anna', 'totalIncome': 75}

    def test_update_missing_document_raises(self, store):
        with pytest.raises(DocumentNotFound):
            store.update('shifts', 'missing', {'status': 'closed'})

    def test_delete_removes_and_is_idempotent(self, store):
        doc_id = store.insert('expenses', {'amount': 5})
        store.delete('expenses', doc_id)
        store.delete('expenses', doc_id)
        assert store.get('expenses', doc_id) is None

    def test_collections_are_separate(self, store):
        store.insert('products', {'name': 'x'}, 'same-id')
        assert store.get('sales', 'same-id') is None


class TestDocumentQuery:

    def test_equality_and_range_filters(self, store):
        base = datetime(2024, 5, 1, 8, 0)
        for hour in range(5):
            store.insert('sales', {'cashier': 'Anna' if hour % 2 else 'Ben',
                                   'timestamp': base + timedelta(hours=hour), 'total': hour})

        anna = store.query('sales', [('cashier', '==', 'Anna')])
        assert sorted(s['total'] for s in anna) == [1, 3]

        window = store.query('sales', [('timestamp', '>=', base + timedelta(hours=1)),
                                       ('timestamp', '<=', base + timedelta(hours=3))])
        assert sorted(s['total'] for s in window) == [1, 2, 3]

    def test_order_and_limit(self, store):
        for total in (5, 1, 3):
            store.insert('sales', {'total': total})
        docs = store.query('sales', order_by='total', descending=True, limit=2)
        assert [d['total'] for d in docs] == [5, 3]

    def test_documents_missing_field_are_excluded(self, store):
        store.insert('shifts', {'status': 'open'})
        store.insert('shifts', {})
        assert len(store.query('shifts', [('status', '!=', 'closed')])) == 1

    def test_in_operator(self, store):
        for unit in ('pcs', 'kg', 'box'):
            store.insert('products', {'unit': unit})
        assert len(store.query('products', [('unit', 'in', ['pcs', 'kg'])])) == 2


class TestTransactions:

    def test_transaction_commits_together(self, store):
        with store.transaction() as tx:
            a = tx.insert('products', {'stock': 1})
            b = tx.insert('products', {'stock': 2})
        assert store.get('products', a)['stock'] == 1
        assert store.get('products', b)['stock'] == 2

    def test_transaction_rolls_back_on_error(self, store):
        doc_id = store.insert('products', {'stock': 1})
        with pytest.raises(ValueError):
            with store.transaction() as tx:
                tx.update('products', doc_id, {'stock': 99})
                raise ValueError('abort')
        assert store.get('products', doc_id)['stock'] == 1

    def test_ping(self, store):
        assert store.ping() is True

    def test_unreachable_store_raises_remote_error(self, tmp_path):
        broken = SqlDocumentStore(f"sqlite:///{tmp_path}/missing/dir/store.db")
        assert broken.ping() is False
        with pytest.raises(RemoteStoreError):
            broken.get('products', 'x')
