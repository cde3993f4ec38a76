"""
Inventory Routes
Products, categories and low stock alerts
"""

from flask import Blueprint, jsonify, request
from tindapos import get_services
from tindapos.routes.pos import request_data
from tindapos.utils.permissions import admin_required, pos_session_required

bp = Blueprint('inventory', __name__)


@bp.route('/products')
@pos_session_required
def list_products():
    products = get_services().catalog.list_products(
        category=request.args.get('category'),
        search=request.args.get('search')
    )
    return jsonify({'success': True, 'products': products})


@bp.route('/products/<product_id>')
@pos_session_required
def get_product(product_id):
    return jsonify({'success': True, 'product': get_services().catalog.get_product(product_id)})


@bp.route('/products', methods=['POST'])
@admin_required
def add_product():
    result = get_services().catalog.add_product(request_data())
    return jsonify({'success': True, 'product': result['product'], 'write': result['outcome'].to_dict()}), 201


@bp.route('/products/<product_id>', methods=['PATCH'])
@admin_required
def update_product(product_id):
    result = get_services().catalog.update_product(product_id, request_data())
    return jsonify({'success': True, 'product': result['product'], 'write': result['outcome'].to_dict()})


@bp.route('/products/delete', methods=['POST'])
@admin_required
def delete_products():
    ids = request_data().get('ids') or []
    outcomes = get_services().catalog.delete_products(ids)
    return jsonify({'success': True, 'deleted': len(outcomes)})


@bp.route('/low-stock')
@pos_session_required
def low_stock():
    threshold = request.args.get('threshold', type=float)
    return jsonify({'success': True, 'products': get_services().catalog.low_stock(threshold)})


@bp.route('/categories')
@pos_session_required
def list_categories():
    return jsonify({'success': True, 'categories': get_services().catalog.list_categories()})


@bp.route('/categories', methods=['POST'])
@admin_required
def add_category():
    data = request_data()
    result = get_services().catalog.add_category(data.get('name'), data.get('color'))
    return jsonify({'success': True, 'category': result['category']}), 201


@bp.route('/categories/<category_id>', methods=['DELETE'])
@admin_required
def delete_category(category_id):
    outcome = get_services().catalog.delete_category(category_id)
    return jsonify({'success': True, 'write': outcome.to_dict()})


@bp.route('/categories/<category_id>/color', methods=['POST'])
@admin_required
def category_color(category_id):
    result = get_services().catalog.set_category_color(category_id, request_data().get('color'))
    return jsonify({'success': True, 'category': result['category']})
