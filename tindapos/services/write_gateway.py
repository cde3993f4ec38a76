"""
Durable Write Gateway
Every mutation of the remote store goes through here. A write that cannot reach
the store is parked in the offline queue instead of failing the caller.
"""

import logging
from tindapos.services.document_store import RemoteStoreError, new_document_id
from tindapos.services.offline_queue import apply_write

logger = logging.getLogger(__name__)

COMMITTED = 'committed'
QUEUED = 'queued'


class WriteOutcome:
    """Result of a gateway write: committed remotely or queued locally"""

    def __init__(self, status, doc_id=None, queue_id=None, error=None):
        self.status = status
        self.doc_id = doc_id
        self.queue_id = queue_id
        self.error = error

    @property
    def committed(self):
        return self.status == COMMITTED

    @property
    def queued(self):
        return self.status == QUEUED

    def to_dict(self):
        return {'status': self.status, 'doc_id': self.doc_id, 'queue_id': self.queue_id}

    def __repr__(self):
        return f'<WriteOutcome {self.status} {self.doc_id}>'


class DurableWriteGateway:
    """
    Routes writes to the remote store, or to the offline queue when the store
    is unreachable or the write fails.

    Args:
        store: SqlDocumentStore
        queue: OfflineQueue
        is_online: zero-argument callable reporting reachability
        mirror: LocalMirror updated with every write, committed or queued
    """

    def __init__(self, store, queue, is_online, mirror=None):
        self.store = store
        self.queue = queue
        self.is_online = is_online
        self.mirror = mirror

    def write(self, action, collection, payload=None, doc_id=None):
        # ids for new documents are assigned here so a replayed add is an overwrite
        if action == 'add' and not doc_id:
            doc_id = new_document_id()

        outcome = self._send(action, collection, payload, doc_id)
        if self.mirror is not None:
            self.mirror.apply(action, collection, payload, doc_id)
        return outcome

    def _send(self, action, collection, payload, doc_id):
        if not self.is_online():
            queue_id = self.queue.enqueue(action, collection, payload, doc_id)
            return WriteOutcome(QUEUED, doc_id, queue_id)

        try:
            apply_write(self.store, action, collection, payload, doc_id)
        except RemoteStoreError as e:
            logger.warning(f"Remote {action} on {collection}/{doc_id} failed, queueing: {e}")
            queue_id = self.queue.enqueue(action, collection, payload, doc_id)
            return WriteOutcome(QUEUED, doc_id, queue_id, error=str(e))

        return WriteOutcome(COMMITTED, doc_id)

    def add(self, collection, payload, doc_id=None):
        return self.write('add', collection, payload, doc_id)

    def update(self, collection, doc_id, fields):
        return self.write('update', collection, fields, doc_id)

    def delete(self, collection, doc_id):
        return self.write('delete', collection, None, doc_id)
