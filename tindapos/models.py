"""
Database Models
Local SQLAlchemy models. Business documents live in the remote document store;
the local database keeps what has to survive a restart while offline: the
write queue and a mirror of the documents needed to keep selling.
"""

import json
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class PendingWrite(db.Model):
    """Remote mutation waiting to be replayed once the store is reachable"""
    __tablename__ = 'pending_writes'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    operation = db.Column(db.String(16), nullable=False)  # add, update, delete
    collection = db.Column(db.String(64), nullable=False)
    doc_id = db.Column(db.String(64))
    payload_json = db.Column(db.Text)

    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column(db.Text)

    enqueued_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    last_attempt_at = db.Column(db.DateTime)

    OPERATIONS = ('add', 'update', 'delete')

    @property
    def payload(self):
        return json.loads(self.payload_json) if self.payload_json else {}

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.operation,
            'collection': self.collection,
            'doc_id': self.doc_id,
            'payload': self.payload,
            'attempts': self.attempts,
            'last_error': self.last_error,
            'enqueued_at': self.enqueued_at.isoformat() if self.enqueued_at else None,
        }

    def __repr__(self):
        return f'<PendingWrite {self.id} {self.operation} {self.collection}/{self.doc_id}>'


class MirroredDocument(db.Model):
    """Local copy of a remote document, read when the store is unreachable"""
    __tablename__ = 'mirrored_documents'

    collection = db.Column(db.String(64), primary_key=True)
    doc_id = db.Column(db.String(64), primary_key=True)
    data_json = db.Column(db.Text, nullable=False)
    refreshed_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def document(self):
        doc = json.loads(self.data_json)
        doc['id'] = self.doc_id
        return doc

    def __repr__(self):
        return f'<MirroredDocument {self.collection}/{self.doc_id}>'
