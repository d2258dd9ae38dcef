"""
Shared pytest fixtures for the song tracker backend tests.

Provides a controllable clock, canned Spotify responses and pre-wired
clients so no test ever touches the network.
"""

import json

import pytest
import requests

from metadata_cache import MetadataCache
from metadata_service import MetadataService
from resolution_cache import ResolutionCache
from spotify_client import RateLimitedRequester, SpotifyClient, TokenManager
from song_library import Song, SongRepository, PersistenceError


class FakeClock:
    """Manually advanced replacement for time.time"""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


HOUR = 60 * 60
DAY = 24 * HOUR


def make_response(status_code=200, json_data=None, headers=None):
    """Build a real requests.Response carrying a JSON body"""
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(json_data if json_data is not None else {}).encode()
    response.headers.update(headers or {})
    response.url = 'https://api.spotify.com/test'
    return response


def token_response(token='token-1', expires_in=3600):
    return make_response(200, {'access_token': token, 'token_type': 'Bearer', 'expires_in': expires_in})


RADIOHEAD_ITEM = {
    'id': '4Z8W4fKeB5YxbusRsdQVPb',
    'name': 'Radiohead',
    'images': [
        {'url': 'https://i.scdn.co/image/large', 'width': 640, 'height': 640},
        {'url': 'https://i.scdn.co/image/medium', 'width': 320, 'height': 320},
        {'url': 'https://i.scdn.co/image/small', 'width': 160, 'height': 160},
    ],
    'genres': ['art rock', 'alternative'],
    'followers': {'href': None, 'total': 9000000},
}

CREEP_ITEM = {
    'id': '70LcF31zb1H0PyJoS1Sx1r',
    'name': 'Creep',
    'album': {
        'name': 'Pablo Honey',
        'images': [
            {'url': 'https://i.scdn.co/image/pablo-large', 'width': 640, 'height': 640},
            {'url': 'https://i.scdn.co/image/pablo-small', 'width': 64, 'height': 64},
        ],
    },
    'artists': [{'id': '4Z8W4fKeB5YxbusRsdQVPb', 'name': 'Radiohead'}],
}


def artist_search_response(*items):
    return make_response(200, {'artists': {'items': list(items), 'total': len(items)}})


def track_search_response(*items):
    return make_response(200, {'tracks': {'items': list(items), 'total': len(items)}})


class InMemorySongRepository(SongRepository):
    """Test double for the external document store"""

    def __init__(self, songs=None, fail=False):
        self.songs = {}
        self.fail = fail
        for user_id, song in songs or []:
            self.songs.setdefault(user_id, []).append(song)

    def _check(self):
        if self.fail:
            raise PersistenceError("Not authenticated")

    def list_songs(self, user_id):
        self._check()
        return list(self.songs.get(user_id, []))

    def create_song(self, user_id, song):
        self._check()
        self.songs.setdefault(user_id, []).insert(0, song)
        return song.id

    def update_song(self, user_id, song_id, fields):
        self._check()
        for song in self.songs.get(user_id, []):
            if song.id == song_id:
                for name, value in fields.items():
                    setattr(song, name, value)

    def delete_song(self, user_id, song_id):
        self._check()
        self.songs[user_id] = [s for s in self.songs.get(user_id, []) if s.id != song_id]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def requester():
    return RateLimitedRequester(rate_limit_delay=0, max_retries=2)


@pytest.fixture
def token_manager(requester, clock):
    return TokenManager(client_id='client-id', client_secret='client-secret',
                        requester=requester, clock=clock)


@pytest.fixture
def spotify_client(token_manager, requester):
    return SpotifyClient(token_manager=token_manager, requester=requester)


@pytest.fixture
def metadata_service(spotify_client, clock):
    return MetadataService(
        spotify_client,
        resolution_cache=ResolutionCache(clock=clock),
        metadata_cache=MetadataCache(clock=clock)
    )


@pytest.fixture
def sample_songs():
    return [
        Song(id='1', title='Creep', artist='Radiohead', progress=80, category='learned',
             song_link_spotify='https://open.spotify.com/track/70LcF31zb1H0PyJoS1Sx1r',
             lesson_link='https://www.youtube.com/watch?v=XFkzRNyygfk'),
        Song(id='2', title='Karma Police', artist='Radiohead', progress=40),
        Song(id='3', title='Blackbird', artist='The Beatles', progress=10, category='backlog'),
        Song(id='4', title='Wonderwall', artist='oasis', progress=100, category='learned'),
    ]
