"""
Shift Ledger
One open shift per cashier; every sale and lending payment is attributed to a
shift and accumulated into its totalIncome.
"""

import logging
from datetime import datetime
from decimal import Decimal
from tindapos.documents import (
    SHIFT_CLOSED, SHIFT_OPEN, UNIT_KG, line_quantity, normalize, read, read_all, stamp
)
from tindapos.errors import (
    AuthorizationError, InvariantViolation, NotFoundError, OfflineError, ValidationError
)
from tindapos.services.document_store import RemoteStoreError
from tindapos.utils.helpers import money_float, round_money, round_weight

logger = logging.getLogger(__name__)


def shift_snapshot(shift):
    """The part of a shift a PosSession keeps"""
    return {
        'id': shift['id'],
        'cashierName': shift.get('cashierName', ''),
        'startTime': shift.get('startTime'),
        'status': shift.get('status'),
        'totalIncome': shift.get('totalIncome', 0),
    }


class ShiftLedger:

    def __init__(self, store, gateway, is_online):
        self.store = store
        self.gateway = gateway
        self.is_online = is_online

    def _open_shifts(self, reader, cashier_name=None):
        shifts = [normalize('shifts', doc) for doc in reader.query('shifts', [('status', '==', SHIFT_OPEN)])]
        if cashier_name is not None:
            shifts = [s for s in shifts if s.get('cashierName', '').strip() == cashier_name.strip()]
        shifts.sort(key=lambda s: s.get('startTime') or datetime.min, reverse=True)
        return shifts

    def start(self, session):
        """
        Open a new shift for the session's cashier.

        The open-shift check and the insert run in one store transaction, so two
        terminals racing for the same cashier cannot both succeed.

        Raises:
            OfflineError: the remote store is unreachable
            InvariantViolation: the cashier already has an open shift
        """
        cashier_name = session.employee_name
        if not cashier_name:
            raise ValidationError("Cashier name is required to start a shift")
        if not self.is_online():
            raise OfflineError("Cannot start a shift while offline")

        try:
            with self.store.transaction() as tx:
                if self._open_shifts(tx, cashier_name):
                    raise InvariantViolation(f"{cashier_name} already has an active shift")
                doc = stamp({
                    'cashierName': cashier_name,
                    'startTime': datetime.now(),
                    'endTime': None,
                    'status': SHIFT_OPEN,
                    'totalIncome': 0,
                })
                doc['id'] = tx.insert('shifts', doc)
        except RemoteStoreError as e:
            logger.error(f"Shift start for {cashier_name} failed: {e}")
            raise OfflineError("Could not reach the server to start a shift")

        session.shift = shift_snapshot(doc)
        logger.info(f"Shift {doc['id']} started by {cashier_name}")
        return doc

    def end(self, session, shift_id=None):
        """
        Close a shift. totalIncome is recomputed from the sales recorded under
        the shift rather than taken from the running counter.
        """
        shift_id = shift_id or session.shift_id
        if not shift_id:
            raise ValidationError("No active shift to end")

        try:
            shift = read(self.store, 'shifts', shift_id)
            if shift is None:
                raise NotFoundError("Shift not found")
            if shift.get('status') != SHIFT_OPEN:
                raise InvariantViolation("Shift is already closed")
            if not session.is_admin and shift.get('cashierName', '').strip() != session.employee_name:
                raise AuthorizationError("You can only end your own shift")

            total = self.ledger_total(shift_id)
        except RemoteStoreError as e:
            logger.error(f"Shift end for {shift_id} failed: {e}")
            raise OfflineError("Could not reach the server to end the shift")

        fields = {'totalIncome': money_float(total), 'endTime': datetime.now(), 'status': SHIFT_CLOSED}
        outcome = self.gateway.update('shifts', shift_id, fields)

        if session.shift_id == shift_id:
            session.shift = None
        logger.info(f"Shift {shift_id} closed with total income {total}")
        shift.update(fields)
        return {'shift': shift, 'outcome': outcome}

    def ledger_total(self, shift_id):
        """Sum of Sale.total for a shift, read from the remote store"""
        sales = self.store.query('sales', [('shiftId', '==', shift_id)])
        return round_money(sum((Decimal(str(s.get('total') or 0)) for s in sales), Decimal('0')))

    def resume(self, session):
        """
        Pick up the shift a session should sell under after login: the
        cashier's own open shift, or for an admin the latest open shift.
        """
        try:
            shifts = self._open_shifts(self.store, None if session.is_admin else session.employee_name)
        except RemoteStoreError as e:
            logger.warning(f"Could not look up open shift for {session.username}: {e}")
            return session.shift

        session.shift = shift_snapshot(shifts[0]) if shifts else None
        return session.shift

    def find_open(self, cashier_name=None):
        return self._open_shifts(self.store, cashier_name)

    def can_checkout(self, session):
        if not session.shift or session.shift.get('status', SHIFT_OPEN) != SHIFT_OPEN:
            return False
        if session.is_admin:
            return True
        return session.shift.get('cashierName', '').strip() == session.employee_name.strip()

    def require_checkout(self, session):
        if not session.shift:
            raise AuthorizationError("Start a shift before selling")
        if not self.can_checkout(session):
            raise AuthorizationError("The active shift belongs to another cashier")

    def add_income(self, session, amount):
        """
        Add an amount to the session's shift totalIncome (read-then-write).

        Offline, or when the shift cannot be read, the session's cached total
        is the base, since it already includes this session's queued increments.
        """
        shift_id = session.shift_id
        current = session.shift.get('totalIncome', 0)
        if self.is_online():
            try:
                shift = read(self.store, 'shifts', shift_id)
                if shift is not None:
                    current = shift.get('totalIncome', 0)
            except RemoteStoreError as e:
                logger.warning(f"Shift {shift_id} unreadable, using cached total: {e}")

        new_total = round_money(Decimal(str(current or 0)) + Decimal(str(amount)))
        outcome = self.gateway.update('shifts', shift_id, {'totalIncome': float(new_total)})
        session.shift['totalIncome'] = float(new_total)
        return outcome

    def list_cashiers(self):
        names = {s.get('cashierName', '').strip() for s in read_all(self.store, 'shifts')}
        return sorted(name for name in names if name)

    def shifts_for_cashier(self, cashier_name):
        shifts = [
            s for s in read_all(self.store, 'shifts')
            if s.get('cashierName', '').strip() == cashier_name.strip()
        ]
        shifts.sort(key=lambda s: s.get('startTime') or datetime.min, reverse=True)
        return shifts

    def shift_summary(self, shift_id):
        """Items sold in a shift per (name, unit) and the income recomputed from its sales"""
        shift = read(self.store, 'shifts', shift_id)
        if shift is None:
            raise NotFoundError("Shift not found")

        sales = read_all(self.store, 'sales', [('shiftId', '==', shift_id)])
        sold = {}
        income = Decimal('0')
        for sale in sales:
            income += Decimal(str(sale.get('total') or 0))
            for item in sale.get('items') or []:
                key = (item.get('name'), item.get('unit'))
                sold[key] = sold.get(key, Decimal('0')) + line_quantity(item)

        items = []
        for (name, unit), quantity in sorted(sold.items(), key=lambda kv: (kv[0][0] or '', kv[0][1] or '')):
            entry = {'name': name, 'unit': unit}
            if unit == UNIT_KG:
                entry['weight'] = float(round_weight(quantity))
            else:
                entry['qty'] = int(quantity)
            items.append(entry)

        return {
            'shift': shift,
            'items': items,
            'sale_count': len(sales),
            'total_income': float(round_money(income)),
        }
