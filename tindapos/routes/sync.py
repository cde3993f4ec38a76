"""
Sync Routes
Offline queue status and manual replay
"""

from flask import Blueprint, jsonify
from tindapos import get_services
from tindapos.utils.permissions import admin_required, pos_session_required

bp = Blueprint('sync', __name__)


@bp.route('/status')
@pos_session_required
def status():
    return jsonify({'success': True, **get_services().sync.get_sync_status()})


@bp.route('/pending')
@admin_required
def pending():
    return jsonify({'success': True, 'pending': get_services().queue.pending()})


@bp.route('/drain', methods=['POST'])
@admin_required
def drain():
    report = get_services().sync.sync_all()
    if report is None:
        return jsonify({'success': False, 'error': 'Server unreachable, writes stay queued'}), 503
    return jsonify({'success': True, 'report': report})
