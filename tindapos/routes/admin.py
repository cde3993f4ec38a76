"""
Admin Routes
Employees and user accounts
"""

from flask import Blueprint, jsonify
from tindapos import get_services
from tindapos.routes.pos import request_data
from tindapos.utils.permissions import admin_required

bp = Blueprint('admin', __name__)


@bp.route('/employees')
@admin_required
def list_employees():
    return jsonify({'success': True, 'employees': get_services().catalog.list_employees()})


@bp.route('/employees', methods=['POST'])
@admin_required
def add_employee():
    data = request_data()
    result = get_services().catalog.add_employee(data.get('name'), data.get('role'))
    return jsonify({'success': True, 'employee': result['employee']}), 201


@bp.route('/employees/<employee_id>', methods=['DELETE'])
@admin_required
def delete_employee(employee_id):
    outcome = get_services().catalog.delete_employee(employee_id)
    return jsonify({'success': True, 'write': outcome.to_dict()})


@bp.route('/users')
@admin_required
def list_users():
    return jsonify({'success': True, 'users': get_services().catalog.list_users()})


@bp.route('/users', methods=['POST'])
@admin_required
def create_user():
    data = request_data()
    user = get_services().catalog.create_user(
        data.get('username'), data.get('password'), data.get('role'), data.get('employee_name')
    )
    return jsonify({'success': True, 'user': {'id': user.id, 'username': user.username, 'role': user.role}}), 201
