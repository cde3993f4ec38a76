"""
Document Store
Remote document database used as the system of record. Documents live in a
single SQL table keyed by (collection, id) with the body stored as JSON, so any
SQLAlchemy URL (PostgreSQL in production, SQLite for tests) can back it.
"""

import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    Column, DateTime, MetaData, String, Table, Text, create_engine, delete, event, select, update
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


metadata = MetaData()

documents = Table(
    'documents', metadata,
    Column('collection', String(64), primary_key=True),
    Column('id', String(64), primary_key=True),
    Column('data', Text, nullable=False),
    Column('updated_at', DateTime, nullable=False, default=datetime.utcnow),
)


class RemoteStoreError(Exception):
    """Raised when the remote store cannot complete an operation"""


class DocumentNotFound(RemoteStoreError):
    """Raised by update() when the target document does not exist"""


def new_document_id():
    """Client-side document id, so replayed inserts overwrite instead of duplicating"""
    return uuid.uuid4().hex


def encode_value(value):
    """Normalize a value to what is stored in the JSON body"""
    if isinstance(value, datetime):
        return value.isoformat(timespec='microseconds')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def _dumps(data):
    body = {k: v for k, v in data.items() if k != 'id'}
    return json.dumps(encode_value(body))


_OPERATORS = {
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
    '<': lambda a, b: a < b,
    '<=': lambda a, b: a <= b,
    '>': lambda a, b: a > b,
    '>=': lambda a, b: a >= b,
    'in': lambda a, b: a in b,
}


def _matches(doc, where):
    for field, op, value in where:
        if field not in doc:
            return False
        try:
            if not _OPERATORS[op](doc[field], encode_value(value)):
                return False
        except TypeError:
            return False
    return True


def filter_documents(docs, where=None, order_by=None, descending=False, limit=None):
    """Apply query filters, ordering and limit to decoded documents"""
    results = [doc for doc in docs if _matches(doc, where or [])]
    if order_by:
        results = [d for d in results if d.get(order_by) is not None]
        results.sort(key=lambda d: d[order_by], reverse=descending)
    if limit is not None:
        results = results[:limit]
    return results


def _lock_on_begin(engine):
    # SQLite takes no lock until the first write; take the write lock at BEGIN
    @event.listens_for(engine, 'connect')
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _begin_immediate(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')


class StoreTransaction:
    """
    Operations bound to one database connection.

    Used directly for atomic read-then-write work (see SqlDocumentStore.transaction)
    and internally by every single-document store call.
    """

    def __init__(self, conn):
        self.conn = conn

    def _row(self, collection, doc_id):
        return self.conn.execute(
            select(documents.c.data).where(
                documents.c.collection == collection,
                documents.c.id == doc_id
            )
        ).first()

    def get(self, collection, doc_id):
        row = self._row(collection, doc_id)
        if row is None:
            return None
        doc = json.loads(row.data)
        doc['id'] = doc_id
        return doc

    def insert(self, collection, data, doc_id=None):
        """Insert a document; a given doc_id that already exists is overwritten"""
        doc_id = doc_id or data.get('id') or new_document_id()
        body = _dumps(data)
        if self._row(collection, doc_id) is None:
            self.conn.execute(documents.insert().values(
                collection=collection, id=doc_id, data=body, updated_at=datetime.utcnow()
            ))
        else:
            self.conn.execute(
                update(documents)
                .where(documents.c.collection == collection, documents.c.id == doc_id)
                .values(data=body, updated_at=datetime.utcnow())
            )
        return doc_id

    def update(self, collection, doc_id, fields):
        """Merge fields into an existing document"""
        current = self.get(collection, doc_id)
        if current is None:
            raise DocumentNotFound(f"{collection}/{doc_id} does not exist")
        current.update(fields)
        self.conn.execute(
            update(documents)
            .where(documents.c.collection == collection, documents.c.id == doc_id)
            .values(data=_dumps(current), updated_at=datetime.utcnow())
        )
        return doc_id

    def delete(self, collection, doc_id):
        self.conn.execute(
            delete(documents).where(
                documents.c.collection == collection,
                documents.c.id == doc_id
            )
        )
        return doc_id

    def query(self, collection, where=None, order_by=None, descending=False, limit=None):
        """
        Filtered query over one collection.

        Args:
            where: list of (field, op, value); op is one of ==, !=, <, <=, >, >=, in
            order_by: field to sort on; documents without that field are left out
            descending: sort direction
            limit: max number of documents returned

        Returns:
            list of dicts, each carrying its 'id'
        """
        rows = self.conn.execute(
            select(documents.c.id, documents.c.data).where(documents.c.collection == collection)
        ).all()

        docs = []
        for row in rows:
            doc = json.loads(row.data)
            doc['id'] = row.id
            docs.append(doc)
        return filter_documents(docs, where, order_by, descending, limit)


class SqlDocumentStore:
    """
    Remote document store over a SQLAlchemy engine.

    Transactions are serializable: SERIALIZABLE isolation on server databases,
    BEGIN IMMEDIATE on SQLite so that two processes sharing one database file
    cannot interleave a read-then-write.
    """

    def __init__(self, url, **engine_options):
        self.url = url
        sa_url = make_url(url)
        if sa_url.get_backend_name() == 'sqlite':
            engine_options.setdefault('connect_args', {'check_same_thread': False})
            if sa_url.database in (None, '', ':memory:'):
                engine_options.setdefault('poolclass', StaticPool)
            self.engine = create_engine(url, **engine_options)
            _lock_on_begin(self.engine)
        else:
            self.engine = create_engine(url, isolation_level='SERIALIZABLE', **engine_options)
        self._lock = threading.RLock()

    def create_schema(self):
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Could not create document schema: {e}") from e

    def ping(self):
        """Return True when the store answers a trivial query"""
        try:
            with self._lock, self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.debug(f"Remote store unreachable: {e}")
            return False

    @contextmanager
    def transaction(self):
        """
        Atomic multi-document unit of work.

        Everything done through the yielded StoreTransaction commits together,
        or not at all when the block raises.
        """
        with self._lock:
            try:
                with self.engine.begin() as conn:
                    yield StoreTransaction(conn)
            except SQLAlchemyError as e:
                raise RemoteStoreError(str(e)) from e

    def get(self, collection, doc_id):
        with self.transaction() as tx:
            return tx.get(collection, doc_id)

    def insert(self, collection, data, doc_id=None):
        with self.transaction() as tx:
            return tx.insert(collection, data, doc_id)

    def update(self, collection, doc_id, fields):
        with self.transaction() as tx:
            return tx.update(collection, doc_id, fields)

    def delete(self, collection, doc_id):
        with self.transaction() as tx:
            return tx.delete(collection, doc_id)

    def query(self, collection, where=None, order_by=None, descending=False, limit=None):
        with self.transaction() as tx:
            return tx.query(collection, where, order_by, descending, limit)

    def dispose(self):
        self.engine.dispose()
