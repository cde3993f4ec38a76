"""
Lending Ledger
Credit sales to borrowers and their repayments. Each repayment is also
recorded as a sale under the paying session's shift so it counts as income.
Lendings are read through the local mirror, so repayments keep working offline.
"""

import logging
from datetime import datetime
from decimal import Decimal
from tindapos.documents import UNIT_PCS, lending_balance, read, read_all, stamp
from tindapos.errors import InvariantViolation, NotFoundError, ValidationError
from tindapos.utils.helpers import round_money, to_decimal

logger = logging.getLogger(__name__)

PAYMENT_LINE_PREFIX = 'Lending Payment - '


class LendingLedger:

    def __init__(self, store, gateway, shifts, reader):
        self.store = store
        self.gateway = gateway
        self.shifts = shifts
        self.reader = reader

    def save(self, session, borrower_name):
        """Record the session's lending cart as a credit sale to a borrower"""
        borrower_name = (borrower_name or '').strip()
        if not borrower_name:
            raise ValidationError("Borrower name is required")
        if session.lending_cart.is_empty:
            raise ValidationError("Lending cart is empty")

        items = [dict(item, paid=False) for item in session.lending_cart.items()]
        lending = stamp({
            'borrowerName': borrower_name,
            'items': items,
            'total': float(session.lending_cart.subtotal),
            'payments': [],
            'timestamp': datetime.now(),
            'returned': False,
            'cashier': session.employee_name,
        })
        outcome = self.gateway.add('lendings', lending)
        lending['id'] = outcome.doc_id
        session.lending_cart.clear()
        logger.info(f"Lending {outcome.doc_id} to {borrower_name} for {lending['total']} {outcome.status}")
        return {'lending': lending, 'outcome': outcome}

    def open_lendings(self, borrower_name=None):
        lendings = read_all(self.reader, 'lendings', [('returned', '==', False)])
        if borrower_name is not None:
            lendings = [l for l in lendings if l.get('borrowerName', '').strip() == borrower_name.strip()]
        lendings.sort(key=lambda l: l.get('timestamp') or datetime.min)
        return lendings

    def borrowers(self):
        """Per-borrower total, paid and unpaid over open lendings; settled borrowers are left out"""
        summary = {}
        for lending in self.open_lendings():
            name = lending.get('borrowerName', '').strip()
            entry = summary.setdefault(name, {'total': Decimal('0'), 'paid': Decimal('0'), 'count': 0})
            entry['total'] += Decimal(str(lending.get('total') or 0))
            entry['paid'] += sum((Decimal(str(p.get('amount') or 0)) for p in lending.get('payments') or []),
                                 Decimal('0'))
            entry['count'] += 1

        result = []
        for name in sorted(summary):
            entry = summary[name]
            unpaid = round_money(entry['total'] - entry['paid'])
            if unpaid > 0:
                result.append({
                    'borrowerName': name,
                    'total': float(round_money(entry['total'])),
                    'paid': float(round_money(entry['paid'])),
                    'unpaid': float(unpaid),
                    'lendings': entry['count'],
                })
        return result

    def borrower_details(self, borrower_name):
        details = []
        for lending in self.open_lendings(borrower_name):
            details.append({
                'id': lending['id'],
                'timestamp': lending.get('timestamp'),
                'total': lending.get('total'),
                'balance': float(lending_balance(lending)),
                'items': [dict(item, index=i) for i, item in enumerate(lending.get('items') or [])],
                'unpaid_items': [i for i, item in enumerate(lending.get('items') or []) if not item.get('paid')],
                'payments': lending.get('payments') or [],
            })
        return details

    def _load(self, lending_id):
        lending = read(self.reader, 'lendings', lending_id)
        if lending is None:
            raise NotFoundError("Lending not found")
        return lending

    def pay_full(self, session, lending_id):
        """Pay off the whole outstanding balance of a lending"""
        self.shifts.require_checkout(session)
        lending = self._load(lending_id)
        balance = lending_balance(lending)
        if balance <= 0:
            raise InvariantViolation("Lending is already paid")

        items = [dict(item, paid=True) for item in lending.get('items') or []]
        return self._apply_payment(session, lending, balance, items, returned=True)

    def pay_partial(self, session, lending_id, amount, item_indices=None):
        """
        Record a partial payment and mark the chosen items paid.

        The lending is flagged returned once the balance reaches zero.
        """
        self.shifts.require_checkout(session)
        lending = self._load(lending_id)
        balance = lending_balance(lending)

        amount = round_money(to_decimal(amount, 'amount'))
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if amount > balance:
            raise ValidationError(f"Payment exceeds outstanding balance of {balance}")

        items = [dict(item) for item in lending.get('items') or []]
        for index in item_indices or []:
            try:
                items[int(index)]['paid'] = True
            except (IndexError, TypeError, ValueError):
                raise ValidationError(f"Invalid item index: {index}")

        returned = round_money(balance - amount) <= 0
        return self._apply_payment(session, lending, amount, items, returned=returned)

    def _apply_payment(self, session, lending, amount, items, returned):
        payment = {
            'amount': float(amount),
            'timestamp': datetime.now(),
            'shiftId': session.shift_id,
            'cashier': session.employee_name,
        }
        payments = list(lending.get('payments') or []) + [payment]
        fields = {'items': items, 'payments': payments, 'returned': returned}
        outcome = self.gateway.update('lendings', lending['id'], fields)
        lending.update(fields)

        sale = self._record_payment_sale(session, lending.get('borrowerName', ''), amount)
        balance = lending_balance(lending)
        logger.info(f"Payment of {amount} on lending {lending['id']} ({lending.get('borrowerName')}), balance {balance}")
        return {
            'lending': lending,
            'payment': payment,
            'balance': float(balance),
            'outcome': outcome,
            'sale': sale['sale'],
            'drift': sale['drift'],
        }

    def _record_payment_sale(self, session, borrower_name, amount):
        amount = float(amount)
        sale = stamp({
            'timestamp': datetime.now(),
            'shiftId': session.shift_id,
            'items': [{
                'name': f"{PAYMENT_LINE_PREFIX}{borrower_name}",
                'unit': UNIT_PCS,
                'price': amount,
                'qty': 1,
                'lineTotal': amount,
            }],
            'subtotal': amount,
            'discount': 0,
            'total': amount,
            'cash': amount,
            'change': 0,
            'cashier': session.employee_name,
        })
        outcome = self.gateway.add('sales', sale)
        sale['id'] = outcome.doc_id

        drift = []
        try:
            self.shifts.add_income(session, amount)
        except Exception as e:
            logger.warning(f"Shift total not updated for lending payment sale {outcome.doc_id}: {e}")
            drift.append({'target': f"shifts/{session.shift_id}", 'error': str(e)})
        return {'sale': sale, 'drift': drift}
