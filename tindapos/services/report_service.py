"""
Report Service
Income, profit, capital and expense figures over a date range, recomputed from
the sale and expense documents on every call. Also sales history and expenses.
"""

import logging
from datetime import datetime
from decimal import Decimal
from tindapos.documents import line_quantity, read, read_all, stamp
from tindapos.errors import NotFoundError, ValidationError
from tindapos.utils.helpers import end_of_day, preset_range, round_money, start_of_day, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def _as_date(value, field):
    if isinstance(value, datetime):
        return value.date()
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def resolve_range(preset=None, start=None, end=None, today=None):
    """
    Reporting range from a preset (daily, weekly, monthly, annual) or a custom
    start/end date pair. Custom ranges run from start 00:00 to end 23:59:59.999.
    """
    if preset and preset != 'custom':
        return preset_range(preset, today)

    if not start or not end:
        raise ValidationError("Both start and end dates are required")
    first = _as_date(start, 'start')
    last = _as_date(end, 'end')
    if last < first:
        raise ValidationError("End date cannot be before start date")
    return start_of_day(first), end_of_day(last)


class ReportService:

    def __init__(self, store, gateway):
        self.store = store
        self.gateway = gateway

    def sales_in_range(self, start, end):
        return read_all(self.store, 'sales', [('timestamp', '>=', start), ('timestamp', '<=', end)],
                        order_by='timestamp')

    def expenses_in_range(self, start, end):
        return read_all(self.store, 'expenses', [('timestamp', '>=', start), ('timestamp', '<=', end)],
                        order_by='timestamp', descending=True)

    def _profit_per_unit(self):
        # current product state, not a snapshot at sale time
        profits = {}
        for product in read_all(self.store, 'products'):
            key = (product.get('name'), product.get('unit'))
            profits.setdefault(key, Decimal(str(product.get('profit') or 0)))
        return profits

    def finance_summary(self, start, end):
        """
        Income, capital, profit and expenses for [start, end].

        Capital (remits) is the same figure as income; profit uses each
        product's current profit per unit.
        """
        sales = self.sales_in_range(start, end)
        expenses = self.expenses_in_range(start, end)
        profits = self._profit_per_unit()

        daily = {}
        income = ZERO
        profit = ZERO
        for sale in sales:
            day = sale['timestamp'].date().isoformat()
            bucket = daily.setdefault(day, {'income': ZERO, 'profit': ZERO, 'sales': 0})
            total = Decimal(str(sale.get('total') or 0))
            bucket['income'] += total
            bucket['sales'] += 1
            income += total
            for item in sale.get('items') or []:
                per_unit = profits.get((item.get('name'), item.get('unit')), ZERO)
                item_profit = per_unit * line_quantity(item)
                bucket['profit'] += item_profit
                profit += item_profit

        expense_total = sum((Decimal(str(e.get('amount') or 0)) for e in expenses), ZERO)

        return {
            'start': start,
            'end': end,
            'income': float(round_money(income)),
            'capital': float(round_money(income)),
            'profit': float(round_money(profit)),
            'expenses': float(round_money(expense_total)),
            'net_income': float(round_money(income - expense_total)),
            'sale_count': len(sales),
            'daily': [
                {
                    'date': day,
                    'income': float(round_money(bucket['income'])),
                    'capital': float(round_money(bucket['income'])),
                    'profit': float(round_money(bucket['profit'])),
                    'sales': bucket['sales'],
                }
                for day, bucket in sorted(daily.items())
            ],
        }

    def sales_history(self, cashier=None, shift_id=None, start=None, end=None):
        """Sales newest first, filtered by cashier, shift and/or time range"""
        where = []
        if cashier:
            where.append(('cashier', '==', cashier))
        if shift_id:
            where.append(('shiftId', '==', shift_id))
        if start:
            where.append(('timestamp', '>=', start))
        if end:
            where.append(('timestamp', '<=', end))

        sales = read_all(self.store, 'sales', where, order_by='timestamp', descending=True)
        total = sum((Decimal(str(s.get('total') or 0)) for s in sales), ZERO)
        return {'sales': sales, 'count': len(sales), 'total': float(round_money(total))}

    def add_expense(self, session, amount, reason):
        amount = round_money(to_decimal(amount, 'amount'))
        if amount <= 0:
            raise ValidationError("Expense amount must be greater than zero")
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError("Expense reason is required")

        expense = stamp({
            'amount': float(amount),
            'reason': reason,
            'timestamp': datetime.now(),
            'recordedBy': session.employee_name if session else None,
        })
        outcome = self.gateway.add('expenses', expense)
        expense['id'] = outcome.doc_id
        logger.info(f"Expense {outcome.doc_id} of {amount} ({reason}) {outcome.status}")
        return {'expense': expense, 'outcome': outcome}

    def delete_expense(self, expense_id):
        if read(self.store, 'expenses', expense_id) is None:
            raise NotFoundError("Expense not found")
        return self.gateway.delete('expenses', expense_id)

    def reset_expenses(self, start, end):
        """Delete every expense recorded in [start, end]"""
        expenses = self.expenses_in_range(start, end)
        outcomes = [self.gateway.delete('expenses', e['id']) for e in expenses]
        logger.info(f"Reset {len(outcomes)} expenses between {start} and {end}")
        return outcomes
