# routes/library.py
"""
Song library views enriched with Spotify metadata

Songs come from the configured SongRepository (the external document store).
When none is configured these endpoints answer 503.
"""
from flask import Blueprint, current_app, jsonify
import logging

from song_library import PersistenceError, get_category_by_id, progress_tier
from utils.helpers import pluralize

logger = logging.getLogger(__name__)
library_bp = Blueprint('library', __name__)


def _services():
    return current_app.extensions['metadata_service'], current_app.extensions.get('song_repository')


def _no_repository():
    return jsonify({'error': 'Song storage is not configured'}), 503


def _storage_error(e):
    logger.error(f"Song storage error: {e}")
    return jsonify({'error': 'Failed to load songs', 'detail': str(e)}), 502


def _song_payload(song):
    category = get_category_by_id(song.category)
    return {
        'id': song.id,
        'title': song.title,
        'artist': song.artist,
        'progress': song.progress,
        'progress_tier': progress_tier(song.progress),
        'category': song.category,
        'category_label': category.label if category else None,
        'tuning': song.tuning,
        'notes': song.notes,
        'lesson_link': song.lesson_link,
        'song_link_youtube': song.song_link_youtube,
        'song_link_spotify': song.song_link_spotify,
        'tabs_link': song.tabs_link,
        'tabs_pdf_url': song.tabs_pdf_url
    }


# Library endpoints:
# - GET /api/users/<user_id>/artists
# - GET /api/users/<user_id>/artists/<artist_name>
# - GET /api/users/<user_id>/songs/<song_id>
@library_bp.route('/api/users/<user_id>/artists', methods=['GET'])
def get_artist_directory(user_id):
    """Every artist in the user's library with song counts, image and genre"""
    service, repository = _services()
    if repository is None:
        return _no_repository()

    try:
        songs = repository.list_songs(user_id)
    except PersistenceError as e:
        return _storage_error(e)

    directory = service.build_artist_directory(songs)
    return jsonify([
        {
            'name': summary.name,
            'song_count': summary.song_count,
            'song_count_label': pluralize(summary.song_count, 'song'),
            'image_url': summary.image_url,
            'primary_genre': summary.primary_genre
        }
        for summary in directory
    ])


@library_bp.route('/api/users/<user_id>/artists/<path:artist_name>', methods=['GET'])
def get_artist_page(user_id, artist_name):
    """One artist's songs with a backdrop image and top genres"""
    service, repository = _services()
    if repository is None:
        return _no_repository()

    try:
        songs = repository.list_songs(user_id)
    except PersistenceError as e:
        return _storage_error(e)

    detail = service.get_artist_detail(artist_name, songs)
    if not detail.songs:
        return jsonify({'error': 'No songs found for this artist'}), 404

    return jsonify({
        'name': detail.name,
        'song_count_label': pluralize(len(detail.songs), 'song'),
        'image_url': detail.image_url,
        'genres': detail.genres,
        'songs': [_song_payload(song) for song in detail.songs]
    })


@library_bp.route('/api/users/<user_id>/songs/<song_id>', methods=['GET'])
def get_song_page(user_id, song_id):
    """A song with album art, embeddable video ids and Spotify track id"""
    service, repository = _services()
    if repository is None:
        return _no_repository()

    try:
        song = repository.get_song(user_id, song_id)
    except PersistenceError as e:
        return _storage_error(e)

    if song is None:
        return jsonify({'error': 'Song not found'}), 404

    detail = service.get_song_detail(song)
    return jsonify({
        'song': _song_payload(song),
        'album_image_url': detail.album_image_url,
        'album_name': detail.album_name,
        'youtube_id': detail.youtube_id,
        'extra_youtube_ids': detail.extra_youtube_ids,
        'spotify_track_id': detail.spotify_track_id
    })
