"""
POS Routes
Cart handling, checkout, refunds and sales history
"""

import logging
from flask import Blueprint, Response, g, jsonify, request
from tindapos import get_services
from tindapos.errors import ValidationError
from tindapos.services.report_service import resolve_range
from tindapos.utils.export import history_export, sales_export
from tindapos.utils.permissions import admin_required, pos_session_required

bp = Blueprint('pos', __name__)
logger = logging.getLogger(__name__)


def request_data():
    return request.get_json(silent=True) or request.form.to_dict()


def cart_response(cart, data=None):
    data = data or {}
    body = cart.to_dict()
    totals = cart.totals(data.get('discount'), data.get('cash'))
    body.update({k: float(v) for k, v in totals.items()})
    return jsonify({'success': True, 'cart': body})


def add_to_cart(cart, data):
    """Add a product to a cart from request data: product_id, or name/unit/price"""
    if data.get('product_id'):
        product = get_services().catalog.get_product(data['product_id'])
    elif data.get('name'):
        product = {'name': data.get('name'), 'unit': data.get('unit'), 'price': data.get('price')}
    else:
        raise ValidationError("product_id or product details are required")
    return cart.add_product(product, weight=data.get('weight'), amount=data.get('amount'))


def edit_cart_line(cart, index, data):
    if 'delta' in data:
        try:
            delta = int(data['delta'])
        except (TypeError, ValueError):
            raise ValidationError("delta must be an integer")
        return cart.change_qty(index, delta)
    return cart.set_weight(index, weight=data.get('weight'), amount=data.get('amount'))


@bp.route('/cart')
@pos_session_required
def view_cart():
    return cart_response(g.pos.cart, request.args)


@bp.route('/cart/add', methods=['POST'])
@pos_session_required
def cart_add():
    add_to_cart(g.pos.cart, request_data())
    return cart_response(g.pos.cart)


@bp.route('/cart/<int:index>', methods=['PATCH'])
@pos_session_required
def cart_edit(index):
    edit_cart_line(g.pos.cart, index, request_data())
    return cart_response(g.pos.cart)


@bp.route('/cart/<int:index>', methods=['DELETE'])
@pos_session_required
def cart_remove(index):
    g.pos.cart.remove(index)
    return cart_response(g.pos.cart)


@bp.route('/cart/clear', methods=['POST'])
@pos_session_required
def cart_clear():
    g.pos.cart.clear()
    return cart_response(g.pos.cart)


@bp.route('/cart/totals', methods=['POST'])
@pos_session_required
def cart_totals():
    """Preview subtotal / total / change for a discount and cash amount"""
    return cart_response(g.pos.cart, request_data())


@bp.route('/checkout', methods=['POST'])
@pos_session_required
def checkout():
    """Complete a sale from the session cart"""
    data = request_data()
    result = get_services().sales.checkout(g.pos, data.get('discount'), data.get('cash'))
    return jsonify({
        'success': True,
        'sale': result['sale'],
        'write': result['outcome'].to_dict(),
        'drift': result['drift'],
        'shift': g.pos.shift,
    })


@bp.route('/refund/<sale_id>', methods=['POST'])
@admin_required
def refund_sale(sale_id):
    """Process sale refund"""
    sale = get_services().sales.refund(g.pos, sale_id)
    return jsonify({'success': True, 'message': 'Sale refunded successfully', 'sale': sale})


def _history_filters():
    start = end = None
    if request.args.get('start') or request.args.get('end'):
        start, end = resolve_range(start=request.args.get('start'), end=request.args.get('end'))
    return {
        'cashier': request.args.get('cashier'),
        'shift_id': request.args.get('shift_id'),
        'start': start,
        'end': end,
    }


@bp.route('/history')
@pos_session_required
def sales_history():
    filters = _history_filters()
    if not g.pos.is_admin:
        filters['cashier'] = g.pos.employee_name
    history = get_services().reports.sales_history(**filters)
    return jsonify({'success': True, **history})


@bp.route('/export/sales')
@admin_required
def export_sales():
    history = get_services().reports.sales_history(**_history_filters())
    return Response(
        sales_export(history['sales']),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=sales_export.csv'}
    )


@bp.route('/export/history')
@admin_required
def export_history():
    history = get_services().reports.sales_history(**_history_filters())
    return Response(
        history_export(history['sales']),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=history_export.csv'}
    )
