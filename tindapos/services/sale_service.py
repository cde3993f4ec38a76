"""
Sale Service
Checkout and refund. A checkout is three independent gateway writes (sale,
shift total, stock); a refund is one atomic store transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal
from tindapos.documents import line_quantity, normalize, stamp
from tindapos.errors import NotFoundError, OfflineError
from tindapos.services.document_store import RemoteStoreError
from tindapos.utils.helpers import round_money, round_weight

logger = logging.getLogger(__name__)


def stock_value(quantity):
    """Stock as stored: whole numbers as int, weights as float"""
    quantity = round_weight(quantity)
    if quantity == quantity.to_integral_value():
        return int(quantity)
    return float(quantity)


def matching_products(reader, name, unit):
    """Products a line refers to; lines match products by (name, unit)"""
    return reader.query('products', [('name', '==', name), ('unit', '==', unit)])


class SaleService:

    def __init__(self, store, gateway, shifts, reader):
        self.store = store
        self.gateway = gateway
        self.shifts = shifts
        self.reader = reader

    def checkout(self, session, discount=0, cash=None):
        """
        Commit the session's cart as a sale.

        Steps after the sale insert are best effort: a failure there is logged
        and reported in the result's drift list, and the sale stands.

        Returns:
            dict: sale, outcome of the sale write, drift entries
        """
        self.shifts.require_checkout(session)
        totals = session.cart.checkout_totals(discount, cash)

        sale = stamp({
            'timestamp': datetime.now(),
            'shiftId': session.shift_id,
            'items': session.cart.items(),
            'subtotal': float(totals['subtotal']),
            'discount': float(totals['discount']),
            'total': float(totals['total']),
            'cash': float(totals['cash']),
            'change': float(totals['change']),
            'cashier': session.employee_name,
        })
        outcome = self.gateway.add('sales', sale)
        sale['id'] = outcome.doc_id
        logger.info(f"Sale {outcome.doc_id} {outcome.status}: total {totals['total']} by {session.employee_name}")

        drift = []
        try:
            self.shifts.add_income(session, totals['total'])
        except Exception as e:
            logger.warning(f"Shift total not updated for sale {outcome.doc_id}: {e}")
            drift.append({'target': f"shifts/{session.shift_id}", 'error': str(e)})

        for line in session.cart:
            try:
                self._deduct_stock(line.name, line.unit, line.quantity)
            except Exception as e:
                logger.warning(f"Stock not updated for {line.name} ({line.unit}) on sale {outcome.doc_id}: {e}")
                drift.append({'target': f"products/{line.name}/{line.unit}", 'error': str(e)})

        session.cart.clear()
        return {'sale': sale, 'outcome': outcome, 'drift': drift}

    def _deduct_stock(self, name, unit, quantity):
        """Decrement stock floored at 0; offline, stock comes from the local mirror"""
        for product in matching_products(self.reader, name, unit):
            current = Decimal(str(product.get('stock') or 0))
            new_stock = max(Decimal('0'), current - quantity)
            self.gateway.update('products', product['id'], {'stock': stock_value(new_stock)})

    def refund(self, session, sale_id):
        """
        Reverse a sale: restore stock, take the total off its shift and delete
        the sale, all in one transaction. Missing products or shift are skipped.

        Raises:
            NotFoundError: the sale does not exist
            OfflineError: the remote store could not complete the refund
        """
        try:
            with self.store.transaction() as tx:
                sale = normalize('sales', tx.get('sales', sale_id))
                if sale is None:
                    raise NotFoundError("Sale not found")

                restocked = []
                for item in sale.get('items') or []:
                    quantity = line_quantity(item)
                    for product in matching_products(tx, item.get('name'), item.get('unit')):
                        product['stock'] = stock_value(Decimal(str(product.get('stock') or 0)) + quantity)
                        tx.update('products', product['id'], {'stock': product['stock']})
                        restocked.append(product)

                shift_total = None
                shift_id = sale.get('shiftId')
                if shift_id:
                    shift = normalize('shifts', tx.get('shifts', shift_id))
                    if shift is not None:
                        shift_total = round_money(
                            Decimal(str(shift.get('totalIncome') or 0)) - Decimal(str(sale.get('total') or 0))
                        )
                        tx.update('shifts', shift_id, {'totalIncome': float(shift_total)})

                tx.delete('sales', sale_id)
        except RemoteStoreError as e:
            logger.error(f"Refund of sale {sale_id} failed: {e}")
            raise OfflineError("Refund could not be completed, please try again when online")

        self.reader.remember('products', restocked)
        if shift_total is not None and session is not None and session.shift_id == shift_id:
            session.shift['totalIncome'] = float(shift_total)

        logger.info(f"Sale {sale_id} refunded ({sale.get('total')})")
        return sale
