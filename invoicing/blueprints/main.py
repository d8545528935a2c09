"""Liveness endpoints for the load balancer and uptime checks."""
import logging

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from invoicing.database import get_session
from invoicing.services.cache_service import get_cache

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Ping the database.

    Returns:
        200 {'status': 'healthy'} when ``SELECT 1`` answers
        500 {'status': 'unhealthy'} otherwise
    """
    session = get_session()
    try:
        alive = session.execute(text('SELECT 1')).scalar() == 1
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'database': 'disconnected'}), 500

    if not alive:
        return jsonify({'status': 'unhealthy', 'database': 'error'}), 500
    return jsonify({'status': 'healthy', 'database': 'connected'}), 200


@main_bp.route('/health/cache')
def health_cache():
    # The app runs uncached without Redis, so this never reports 500
    state = get_cache().probe()
    return jsonify({'status': 'ok' if state == 'connected' else 'degraded', 'cache': state}), 200
