"""
Shift Routes
Start and end shifts, shift listings and summaries
"""

from flask import Blueprint, g, jsonify
from tindapos import get_services
from tindapos.utils.permissions import admin_required, pos_session_required

bp = Blueprint('shifts', __name__)


@bp.route('/current')
@pos_session_required
def current_shift():
    services = get_services()
    services.shifts.resume(g.pos)
    return jsonify({
        'success': True,
        'shift': g.pos.shift,
        'can_checkout': services.shifts.can_checkout(g.pos),
    })


@bp.route('/start', methods=['POST'])
@pos_session_required
def start_shift():
    shift = get_services().shifts.start(g.pos)
    return jsonify({'success': True, 'shift': shift}), 201


@bp.route('/end', methods=['POST'])
@bp.route('/<shift_id>/end', methods=['POST'])
@pos_session_required
def end_shift(shift_id=None):
    result = get_services().shifts.end(g.pos, shift_id)
    return jsonify({'success': True, 'shift': result['shift'], 'write': result['outcome'].to_dict()})


@bp.route('/open')
@admin_required
def open_shifts():
    return jsonify({'success': True, 'shifts': get_services().shifts.find_open()})


@bp.route('/cashiers')
@admin_required
def cashiers():
    return jsonify({'success': True, 'cashiers': get_services().shifts.list_cashiers()})


@bp.route('/cashiers/<name>')
@admin_required
def cashier_shifts(name):
    return jsonify({'success': True, 'shifts': get_services().shifts.shifts_for_cashier(name)})


@bp.route('/<shift_id>/summary')
@pos_session_required
def shift_summary(shift_id):
    return jsonify({'success': True, **get_services().shifts.shift_summary(shift_id)})
