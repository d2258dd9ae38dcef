# routes/metadata.py
"""
Spotify metadata endpoints

Metadata is cosmetic: a failed or empty lookup still answers 200 with a null
record so the caller can show a placeholder.
"""
from flask import Blueprint, current_app, jsonify, request
import logging

from spotify_models import IMAGE_SIZES, get_artist_image
from utils.helpers import safe_strip
from utils.json_provider import format_timestamp

logger = logging.getLogger(__name__)
metadata_bp = Blueprint('metadata', __name__)


def get_metadata_service():
    return current_app.extensions['metadata_service']


# Metadata endpoints:
# - GET /api/metadata/artist?name=<name>&size=<large|medium|small>
# - GET /api/metadata/track?title=<title>&artist=<artist>
@metadata_bp.route('/api/metadata/artist', methods=['GET'])
def get_artist_metadata():
    """Artist images, genres and follower count for a name"""
    name = safe_strip(request.args.get('name'))
    size = request.args.get('size', 'large')

    if not name:
        return jsonify({'error': 'Missing required parameter: name'}), 400
    if size not in IMAGE_SIZES:
        return jsonify({'error': f"Invalid size, expected one of {', '.join(IMAGE_SIZES)}"}), 400

    result = get_metadata_service().get_artist(name)

    return jsonify({
        'query': name,
        'status': result.status,
        'fetched_at': format_timestamp(result.fetched_at),
        'artist': result.value,
        'image_url': get_artist_image(result.value, size)
    })


@metadata_bp.route('/api/metadata/track', methods=['GET'])
def get_track_metadata():
    """Album art and album name for a title/artist pair"""
    title = safe_strip(request.args.get('title'))
    artist = safe_strip(request.args.get('artist'))

    if not title or not artist:
        return jsonify({'error': 'Missing required parameters: title and artist'}), 400

    result = get_metadata_service().get_track(title, artist)

    return jsonify({
        'query': {'title': title, 'artist': artist},
        'status': result.status,
        'fetched_at': format_timestamp(result.fetched_at),
        'track': result.value
    })
