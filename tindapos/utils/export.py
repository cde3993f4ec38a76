"""
Export utilities for generating CSV reports of sales, one row per line item
"""

import csv
from io import StringIO
from datetime import datetime
from tindapos.documents import UNIT_KG

SALES_EXPORT_HEADER = ['Date', 'Name', 'Unit', 'Qty', 'Weight', 'LineTotal']
HISTORY_EXPORT_HEADER = [
    'timestamp', 'shiftId', 'saleTotal', 'saleDiscount', 'itemName',
    'unit', 'quantityOrWeight', 'pricePerUnit', 'lineTotal',
]


def _money(value):
    if value in (None, ''):
        return ''
    return f"{float(value):.2f}"


def _timestamp(value):
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(value)
    return None


def export_to_csv(rows, header):
    """
    Write rows under a header row

    Args:
        rows: iterable of lists
        header: list of column names

    Returns:
        str: CSV text
    """
    output = StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return output.getvalue()


def sales_export(sales):
    """Sales export: Date,Name,Unit,Qty,Weight,LineTotal"""
    rows = []
    for sale in sales:
        ts = _timestamp(sale.get('timestamp'))
        date_text = ts.strftime('%Y-%m-%d %H:%M:%S') if ts else ''
        for item in sale.get('items') or []:
            rows.append([
                date_text,
                item.get('name', ''),
                item.get('unit', ''),
                item.get('qty') or '',
                item.get('weight') or '',
                _money(item.get('lineTotal')),
            ])
    return export_to_csv(rows, SALES_EXPORT_HEADER)


def history_export(sales):
    """History export: one row per line with the sale's total and discount repeated"""
    rows = []
    for sale in sales:
        ts = _timestamp(sale.get('timestamp'))
        for item in sale.get('items') or []:
            if (item.get('unit') or '').lower() == UNIT_KG:
                quantity = item.get('weight') or ''
            else:
                quantity = item.get('qty') or ''
            rows.append([
                ts.isoformat() if ts else '',
                sale.get('shiftId') or '',
                _money(sale.get('total') or 0),
                _money(sale.get('discount') or 0),
                item.get('name', ''),
                item.get('unit', ''),
                quantity,
                _money(item.get('price')),
                _money(item.get('lineTotal')),
            ])
    return export_to_csv(rows, HISTORY_EXPORT_HEADER)
