"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_session
from app.services.cache_service import get_cache

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.
    
    The cache is reported but never fails the check: without Redis the
    pricing core reads discounts straight from the database.
    
    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    cache_status = 'connected' if get_cache().is_available() else 'unavailable'
    try:
        row = get_session().execute(text("SELECT 1 as health_check")).fetchone()
    except SQLAlchemyError as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'cache': cache_status,
            'error': str(e),
            'message': 'Failed to connect to database'
        }), 500
    
    if not row or row[0] != 1:
        return jsonify({
            'status': 'unhealthy',
            'database': 'error',
            'cache': cache_status,
            'message': 'Unexpected query result'
        }), 500
    
    return jsonify({
        'status': 'healthy',
        'database': 'connected',
        'cache': cache_status,
        'message': 'Database connection successful'
    }), 200
