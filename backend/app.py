"""
Song Tracker API Backend
A Flask API serving Spotify metadata for a personal song-learning library
"""

from flask import Flask, request
from flask_cors import CORS
import atexit
import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from config import configure_logging, get_metadata_config, init_app_config
from metadata_service import MetadataService
from routes import register_blueprints

logger = configure_logging()


def create_app(metadata_service=None, song_repository=None):
    """
    Build the Flask app

    Args:
        metadata_service: Shared MetadataService; built from the environment if omitted
        song_repository: SongRepository backed by the document store, or None
    """
    app = Flask(__name__)
    CORS(app)
    init_app_config(app)

    if metadata_service is None:
        metadata_service = MetadataService.from_config(get_metadata_config())

    app.extensions['metadata_service'] = metadata_service
    app.extensions['song_repository'] = song_repository

    register_blueprints(app)

    # Request/response logging
    @app.before_request
    def log_request():
        """Log incoming requests"""
        logger.info(f"{request.method} {request.path}")

    @app.after_request
    def log_response(response):
        """Log response status"""
        logger.info(f"{request.method} {request.path} - {response.status_code}")
        return response

    logger.info(f"Flask app initialized in PID {os.getpid()}")
    return app


app = create_app()


def shutdown_metadata_service():
    """Let background metadata refreshes finish on shutdown"""
    app.extensions['metadata_service'].shutdown()

atexit.register(shutdown_metadata_service)


if __name__ == '__main__':
    # Running directly with 'python app.py' (not gunicorn)
    logger.info("Starting Flask application directly (not gunicorn)...")
    logger.info(f"Spotify credentials present: {bool(os.environ.get('SPOTIFY_CLIENT_ID'))}")
    app.run(debug=True, host='0.0.0.0', port=5001)
