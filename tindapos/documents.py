"""
Document Schema
Versioned shapes of the remote documents. Every write is stamped with
SCHEMA_VERSION; every read goes through normalize() which upgrades older
documents step by step and parses timestamps.
"""

from decimal import Decimal
from flask_login import UserMixin
from tindapos.utils.helpers import money_float, parse_datetime, round_money

SCHEMA_VERSION = 2

UNIT_PCS = 'pcs'
UNIT_KG = 'kg'
UNITS = (UNIT_PCS, UNIT_KG)

SHIFT_OPEN = 'open'
SHIFT_CLOSED = 'closed'

ROLE_ADMIN = 'admin'
ROLE_CASHIER = 'cashier'
ROLES = (ROLE_ADMIN, ROLE_CASHIER)

DATETIME_FIELDS = {
    'shifts': ('startTime', 'endTime'),
    'sales': ('timestamp',),
    'lendings': ('timestamp',),
    'expenses': ('timestamp',),
}


def line_quantity(item):
    """Quantity of a line: qty for pcs lines, weight for kg lines"""
    if item.get('unit') == UNIT_KG:
        return Decimal(str(item.get('weight') or 0))
    return Decimal(str(item.get('qty') or 0))


def _shift_v1_to_v2(doc):
    # v1 shifts were written with totalSales / openedBy
    if 'totalIncome' not in doc:
        doc['totalIncome'] = doc.pop('totalSales', 0) or 0
    else:
        doc.pop('totalSales', None)
    if not doc.get('cashierName'):
        doc['cashierName'] = doc.pop('openedBy', '') or ''
    else:
        doc.pop('openedBy', None)
    return doc


def _items_v1_to_v2(doc):
    # v1 line items sometimes carried only price and quantity
    for item in doc.get('items') or []:
        if 'lineTotal' not in item:
            item['lineTotal'] = item.pop('total', None)
            if item['lineTotal'] is None:
                item['lineTotal'] = money_float(Decimal(str(item.get('price') or 0)) * line_quantity(item))
        item.setdefault('unit', UNIT_PCS)
    return doc


def _lending_v1_to_v2(doc):
    for item in doc.get('items') or []:
        if 'lineTotal' not in item:
            item['lineTotal'] = item.pop('total', None) or money_float(
                Decimal(str(item.get('price') or 0)) * line_quantity(item)
            )
        item.setdefault('paid', False)
    doc.setdefault('payments', [])
    doc.setdefault('returned', False)
    return doc


MIGRATIONS = {
    'shifts': {1: _shift_v1_to_v2},
    'sales': {1: _items_v1_to_v2},
    'lendings': {1: _lending_v1_to_v2},
}


def normalize(collection, doc):
    """Upgrade a stored document to the current schema"""
    if doc is None:
        return None

    version = doc.get('schemaVersion', 1)
    steps = MIGRATIONS.get(collection, {})
    while version < SCHEMA_VERSION:
        step = steps.get(version)
        if step:
            doc = step(doc)
        version += 1
    doc['schemaVersion'] = SCHEMA_VERSION

    for field in DATETIME_FIELDS.get(collection, ()):
        if field in doc:
            doc[field] = parse_datetime(doc[field])
    if collection == 'lendings':
        for payment in doc.get('payments') or []:
            payment['timestamp'] = parse_datetime(payment.get('timestamp'))
    return doc


def stamp(payload):
    """Mark a payload with the schema version it is written in"""
    payload['schemaVersion'] = SCHEMA_VERSION
    return payload


def read(store, collection, doc_id):
    return normalize(collection, store.get(collection, doc_id))


def read_all(store, collection, where=None, order_by=None, descending=False, limit=None):
    docs = store.query(collection, where, order_by=order_by, descending=descending, limit=limit)
    return [normalize(collection, doc) for doc in docs]


def lending_balance(lending):
    """Outstanding balance: total minus everything paid so far"""
    paid = sum((Decimal(str(p.get('amount') or 0)) for p in lending.get('payments') or []), Decimal('0'))
    return round_money(Decimal(str(lending.get('total') or 0)) - paid)


class AccountUser(UserMixin):
    """Flask-Login wrapper around a document from the users collection"""

    def __init__(self, doc):
        self.id = doc['id']
        self.username = doc.get('username')
        self.role = doc.get('role', ROLE_CASHIER)
        self.employee_name = doc.get('employeeName') or doc.get('username')
        self.active = doc.get('active', True)

    @property
    def is_active(self):
        return bool(self.active)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def has_role(self, role_name):
        return self.role == ROLE_ADMIN or self.role == role_name

    def __repr__(self):
        return f'<AccountUser {self.username} ({self.role})>'
