"""
Offline Write Queue
Persists remote mutations in the local database and replays them in enqueue order
"""

import json
import logging
import threading
from datetime import datetime
from tindapos.models import db, PendingWrite
from tindapos.services.document_store import RemoteStoreError, encode_value

logger = logging.getLogger(__name__)


def apply_write(store, operation, collection, payload, doc_id=None):
    """
    Run one mutation against the remote store

    Returns:
        str: id of the written document
    """
    if operation == 'add':
        return store.insert(collection, payload or {}, doc_id)
    if operation == 'update':
        return store.update(collection, doc_id, payload or {})
    if operation == 'delete':
        return store.delete(collection, doc_id)
    raise ValueError(f"Unknown write operation: {operation}")


class OfflineQueue:
    """Durable FIFO of PendingWrite rows"""

    def __init__(self, app):
        self.app = app
        self._drain_lock = threading.Lock()

    def enqueue(self, operation, collection, payload=None, doc_id=None):
        """
        Store a pending write; returns once the row is committed.

        Returns:
            int: local queue id
        """
        if operation not in PendingWrite.OPERATIONS:
            raise ValueError(f"Unknown write operation: {operation}")

        with self.app.app_context():
            entry = PendingWrite(
                operation=operation,
                collection=collection,
                doc_id=doc_id,
                payload_json=json.dumps(encode_value(payload)) if payload is not None else None
            )
            db.session.add(entry)
            db.session.commit()
            logger.warning(f"Queued {operation} on {collection}/{doc_id} for later sync (#{entry.id})")
            return entry.id

    def pending(self):
        """All queued writes, oldest first"""
        with self.app.app_context():
            entries = PendingWrite.query.order_by(PendingWrite.id).all()
            return [entry.to_dict() for entry in entries]

    def count(self):
        with self.app.app_context():
            return PendingWrite.query.count()

    def last_error(self):
        with self.app.app_context():
            entry = PendingWrite.query.filter(PendingWrite.last_error.isnot(None))\
                .order_by(PendingWrite.last_attempt_at.desc()).first()
            return entry.last_error if entry else None

    def drain(self, store):
        """
        Replay every queued write in order.

        A successful entry is deleted; a failed one stays queued with its error
        recorded and the drain moves on to the next entry.

        Returns:
            dict: replayed / failed / remaining counts
        """
        report = {'replayed': 0, 'failed': 0, 'remaining': 0, 'skipped': False}

        if not self._drain_lock.acquire(blocking=False):
            logger.debug("Queue drain already running, skipping")
            report['skipped'] = True
            return report

        try:
            with self.app.app_context():
                entries = PendingWrite.query.order_by(PendingWrite.id).all()
                if not entries:
                    logger.debug("No pending writes to replay")
                    return report

                logger.info(f"Replaying {len(entries)} pending writes")

                for entry in entries:
                    entry.attempts = (entry.attempts or 0) + 1
                    entry.last_attempt_at = datetime.utcnow()
                    try:
                        apply_write(store, entry.operation, entry.collection, entry.payload, entry.doc_id)
                    except RemoteStoreError as e:
                        entry.last_error = str(e)
                        db.session.commit()
                        report['failed'] += 1
                        logger.error(f"Replay of pending write #{entry.id} failed: {e}")
                        continue

                    db.session.delete(entry)
                    db.session.commit()
                    report['replayed'] += 1

                report['remaining'] = PendingWrite.query.count()
                logger.info(
                    f"Queue drain finished: {report['replayed']} replayed, "
                    f"{report['failed']} failed, {report['remaining']} remaining"
                )
                return report
        finally:
            self._drain_lock.release()
