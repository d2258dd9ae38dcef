# routes/health.py
from flask import Blueprint, current_app, jsonify
import logging
import time

logger = logging.getLogger(__name__)
health_bp = Blueprint('health', __name__)

@health_bp.route('/health', methods=['GET'])
def health_check():
    """Health check with metadata cache diagnostics"""
    health_status = {
        'status': 'unknown',
        'spotify_credentials': False,
        'song_storage': current_app.extensions.get('song_repository') is not None,
        'cache_stats': None,
        'timestamp': time.time()
    }

    try:
        service = current_app.extensions['metadata_service']
        health_status['spotify_credentials'] = service.client.token_manager.has_credentials
        health_status['cache_stats'] = service.get_stats()
        health_status['status'] = 'healthy' if health_status['spotify_credentials'] else 'degraded'
        return jsonify(health_status), 200

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        health_status['status'] = 'unhealthy'
        health_status['error'] = str(e)
        return jsonify(health_status), 503
