"""
Lending Routes
Lending cart, credit sales to borrowers and repayments
"""

from flask import Blueprint, g, jsonify
from tindapos import get_services
from tindapos.routes.pos import add_to_cart, cart_response, edit_cart_line, request_data
from tindapos.utils.permissions import pos_session_required

bp = Blueprint('lending', __name__)


@bp.route('/cart')
@pos_session_required
def view_cart():
    return cart_response(g.pos.lending_cart)


@bp.route('/cart/add', methods=['POST'])
@pos_session_required
def cart_add():
    add_to_cart(g.pos.lending_cart, request_data())
    return cart_response(g.pos.lending_cart)


@bp.route('/cart/<int:index>', methods=['PATCH'])
@pos_session_required
def cart_edit(index):
    edit_cart_line(g.pos.lending_cart, index, request_data())
    return cart_response(g.pos.lending_cart)


@bp.route('/cart/<int:index>', methods=['DELETE'])
@pos_session_required
def cart_remove(index):
    g.pos.lending_cart.remove(index)
    return cart_response(g.pos.lending_cart)


@bp.route('/save', methods=['POST'])
@pos_session_required
def save_lending():
    data = request_data()
    result = get_services().lending.save(g.pos, data.get('borrower_name'))
    return jsonify({'success': True, 'lending': result['lending'], 'write': result['outcome'].to_dict()}), 201


@bp.route('/borrowers')
@pos_session_required
def borrowers():
    return jsonify({'success': True, 'borrowers': get_services().lending.borrowers()})


@bp.route('/borrowers/<name>')
@pos_session_required
def borrower_details(name):
    return jsonify({'success': True, 'lendings': get_services().lending.borrower_details(name)})


def _payment_response(result):
    return jsonify({
        'success': True,
        'lending': result['lending'],
        'payment': result['payment'],
        'balance': result['balance'],
        'sale': result['sale'],
        'write': result['outcome'].to_dict(),
        'drift': result['drift'],
        'shift': g.pos.shift,
    })


@bp.route('/<lending_id>/pay', methods=['POST'])
@pos_session_required
def pay_full(lending_id):
    return _payment_response(get_services().lending.pay_full(g.pos, lending_id))


@bp.route('/<lending_id>/pay-partial', methods=['POST'])
@pos_session_required
def pay_partial(lending_id):
    data = request_data()
    result = get_services().lending.pay_partial(g.pos, lending_id, data.get('amount'), data.get('items') or [])
    return _payment_response(result)
