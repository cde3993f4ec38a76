"""
Report Routes
Finance summary over a date range and expense management
"""

from flask import Blueprint, g, jsonify, request
from tindapos import get_services
from tindapos.routes.pos import request_data
from tindapos.services.report_service import resolve_range
from tindapos.utils.permissions import admin_required

bp = Blueprint('reports', __name__)


def _range_from(args):
    if args.get('start') or args.get('end'):
        return resolve_range('custom', start=args.get('start'), end=args.get('end'))
    return resolve_range(args.get('preset') or 'daily')


@bp.route('/finance')
@admin_required
def finance():
    """
    Finance summary

    Query params: preset (daily, weekly, monthly, annual) or start/end (YYYY-MM-DD)
    """
    start, end = _range_from(request.args)
    return jsonify({'success': True, 'summary': get_services().reports.finance_summary(start, end)})


@bp.route('/expenses')
@admin_required
def list_expenses():
    start, end = _range_from(request.args)
    return jsonify({'success': True, 'expenses': get_services().reports.expenses_in_range(start, end)})


@bp.route('/expenses', methods=['POST'])
@admin_required
def add_expense():
    data = request_data()
    result = get_services().reports.add_expense(g.pos, data.get('amount'), data.get('reason'))
    return jsonify({'success': True, 'expense': result['expense'], 'write': result['outcome'].to_dict()}), 201


@bp.route('/expenses/<expense_id>', methods=['DELETE'])
@admin_required
def delete_expense(expense_id):
    outcome = get_services().reports.delete_expense(expense_id)
    return jsonify({'success': True, 'write': outcome.to_dict()})


@bp.route('/expenses/reset', methods=['POST'])
@admin_required
def reset_expenses():
    start, end = _range_from(request_data())
    outcomes = get_services().reports.reset_expenses(start, end)
    return jsonify({'success': True, 'deleted': len(outcomes)})
