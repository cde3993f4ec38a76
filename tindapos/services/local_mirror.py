"""
Local Mirror
Local copies of the documents a till needs to keep selling while the remote
store is unreachable (products and lendings). Gateway writes are applied to the
mirror as well, so offline reads see this terminal's queued changes.
"""

import json
import logging
from tindapos.models import db, MirroredDocument
from tindapos.services.document_store import RemoteStoreError, encode_value, filter_documents

logger = logging.getLogger(__name__)

MIRRORED_COLLECTIONS = ('products', 'lendings')


class LocalMirror:
    """Mirrored documents kept in the local database"""

    def __init__(self, app, collections=MIRRORED_COLLECTIONS):
        self.app = app
        self.collections = tuple(collections)

    def covers(self, collection):
        return collection in self.collections

    def get(self, collection, doc_id):
        with self.app.app_context():
            entry = db.session.get(MirroredDocument, (collection, doc_id))
            return entry.document if entry else None

    def query(self, collection, where=None, order_by=None, descending=False, limit=None):
        with self.app.app_context():
            docs = [entry.document for entry in MirroredDocument.query.filter_by(collection=collection).all()]
        return filter_documents(docs, where, order_by, descending, limit)

    def count(self):
        with self.app.app_context():
            return MirroredDocument.query.count()

    def _put(self, collection, doc):
        body = {k: v for k, v in doc.items() if k != 'id'}
        entry = db.session.get(MirroredDocument, (collection, doc['id']))
        if entry is None:
            entry = MirroredDocument(collection=collection, doc_id=doc['id'])
            db.session.add(entry)
        entry.data_json = json.dumps(encode_value(body))

    def store_documents(self, collection, docs, replace=False):
        """
        Save copies of documents read from the remote store.

        With replace=True, mirrored documents missing from docs are dropped.
        """
        if not self.covers(collection):
            return
        with self.app.app_context():
            if replace:
                keep = {doc['id'] for doc in docs}
                for entry in MirroredDocument.query.filter_by(collection=collection).all():
                    if entry.doc_id not in keep:
                        db.session.delete(entry)
            for doc in docs:
                self._put(collection, doc)
            db.session.commit()

    def apply(self, action, collection, payload, doc_id):
        """Reflect a gateway write (committed or queued) in the mirror"""
        if not self.covers(collection):
            return
        with self.app.app_context():
            entry = db.session.get(MirroredDocument, (collection, doc_id))
            if action == 'add':
                self._put(collection, dict(payload or {}, id=doc_id))
            elif action == 'update' and entry is not None:
                doc = entry.document
                doc.update(payload or {})
                self._put(collection, doc)
            elif action == 'delete' and entry is not None:
                db.session.delete(entry)
            db.session.commit()

    def refresh(self, store):
        """Reload every mirrored collection from the remote store"""
        for collection in self.collections:
            self.store_documents(collection, store.query(collection), replace=True)
        logger.info(f"Local mirror refreshed: {', '.join(self.collections)}")


class ReadThroughStore:
    """
    Reads mirrored collections from the remote store while online, keeping the
    mirror current, and from the mirror when offline or when the remote read
    fails. Other collections are read from the store directly.

    Args:
        store: SqlDocumentStore
        mirror: LocalMirror
        is_online: zero-argument callable reporting reachability
    """

    def __init__(self, store, mirror, is_online):
        self.store = store
        self.mirror = mirror
        self.is_online = is_online

    def get(self, collection, doc_id):
        if not self.mirror.covers(collection):
            return self.store.get(collection, doc_id)

        if self.is_online():
            try:
                doc = self.store.get(collection, doc_id)
            except RemoteStoreError as e:
                logger.warning(f"Reading {collection}/{doc_id} from local mirror: {e}")
            else:
                if doc is None:
                    self.mirror.apply('delete', collection, None, doc_id)
                else:
                    self.mirror.store_documents(collection, [doc])
                return doc

        return self.mirror.get(collection, doc_id)

    def query(self, collection, where=None, order_by=None, descending=False, limit=None):
        if not self.mirror.covers(collection):
            return self.store.query(collection, where, order_by=order_by, descending=descending, limit=limit)

        if self.is_online():
            try:
                docs = self.store.query(collection, where, order_by=order_by, descending=descending, limit=limit)
            except RemoteStoreError as e:
                logger.warning(f"Querying {collection} from local mirror: {e}")
            else:
                whole = where is None and order_by is None and limit is None
                self.mirror.store_documents(collection, docs, replace=whole)
                return docs

        return self.mirror.query(collection, where, order_by, descending, limit)

    def remember(self, collection, docs):
        """Record documents changed outside the gateway, e.g. by a store transaction"""
        self.mirror.store_documents(collection, docs)
