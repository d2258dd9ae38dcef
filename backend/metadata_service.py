"""
Metadata Service

Single entry point for Spotify enrichment. One instance is built at process
start and shared by every request; tests build their own.

    presentation -> MetadataCache (freshness) -> ResolutionCache (memo)
                 -> SpotifyClient -> TokenManager

Also assembles the artist directory, artist detail and song detail views
from a user's songs.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from metadata_cache import MetadataCache, LookupResult
from resolution_cache import ResolutionCache, make_cache_key
from song_library import Song, extract_spotify_track_id, extract_youtube_id
from spotify_client import RateLimitedRequester, SpotifyClient, TokenManager
from spotify_models import get_artist_image
from utils.helpers import safe_strip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtistSummary:
    name: str
    song_count: int
    image_url: Optional[str] = None
    primary_genre: Optional[str] = None


@dataclass(frozen=True)
class ArtistDetail:
    name: str
    songs: List[Song]
    image_url: Optional[str] = None
    genres: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SongDetail:
    song: Song
    album_image_url: Optional[str] = None
    album_name: Optional[str] = None
    youtube_id: Optional[str] = None
    extra_youtube_ids: List[dict] = field(default_factory=list)
    spotify_track_id: Optional[str] = None


class MetadataService:
    """Resolves artist and track names to Spotify metadata through both cache layers"""

    def __init__(self, client: SpotifyClient, resolution_cache: ResolutionCache = None,
                 metadata_cache: MetadataCache = None):
        self.client = client
        self.resolution_cache = resolution_cache or ResolutionCache()
        self.metadata_cache = metadata_cache or MetadataCache()

    @classmethod
    def from_config(cls, config: dict) -> 'MetadataService':
        """
        Build the full lookup chain from a settings dict

        Args:
            config: Settings as returned by config.get_metadata_config()
        """
        requester = RateLimitedRequester(
            rate_limit_delay=config.get('rate_limit_delay', 0.2),
            max_retries=config.get('max_retries', 3),
            max_wait=config.get('max_rate_limit_wait', 30)
        )
        timeout = config.get('request_timeout', 10)
        token_manager = TokenManager(
            client_id=config.get('client_id'),
            client_secret=config.get('client_secret'),
            requester=requester,
            safety_margin=config.get('token_safety_margin', 60),
            timeout=timeout
        )
        client = SpotifyClient(token_manager=token_manager, requester=requester, timeout=timeout)
        metadata_cache = MetadataCache(
            freshness_window=config.get('freshness_seconds', 60 * 60 * 24),
            retention_window=config.get('retention_seconds', 60 * 60 * 24 * 7)
        )

        if not token_manager.has_credentials:
            logger.warning("Spotify credentials missing - metadata lookups will return no data")

        return cls(client, metadata_cache=metadata_cache)

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    def get_artist(self, name: Optional[str]) -> LookupResult:
        name = safe_strip(name)
        key = make_cache_key('artist', name)
        return self.metadata_cache.get(
            key,
            lambda: self.resolution_cache.resolve(key, lambda: self.client.search_artist(name)),
            enabled=bool(name)
        )

    def get_track(self, title: Optional[str], artist: Optional[str]) -> LookupResult:
        title = safe_strip(title)
        artist = safe_strip(artist)
        key = make_cache_key('track', title, artist)
        return self.metadata_cache.get(
            key,
            lambda: self.resolution_cache.resolve(key, lambda: self.client.search_track(title, artist)),
            enabled=bool(title and artist)
        )

    def get_artist_image(self, name: Optional[str], size: str = 'large') -> Optional[str]:
        return get_artist_image(self.get_artist(name).value, size)

    # ========================================================================
    # VIEWS
    # ========================================================================

    def build_artist_directory(self, songs: Iterable[Song], include_metadata: bool = True) -> List[ArtistSummary]:
        """
        Group songs by artist name, sorted alphabetically (case-insensitive)

        Args:
            songs: The user's songs
            include_metadata: Attach a medium image and the first genre
        """
        counts = {}
        for song in songs:
            counts[song.artist] = counts.get(song.artist, 0) + 1

        directory = []
        for name in sorted(counts, key=lambda n: (n.casefold(), n)):
            image_url = None
            primary_genre = None
            if include_metadata:
                artist = self.get_artist(name).value
                image_url = get_artist_image(artist, 'medium')
                primary_genre = artist.genres[0] if artist and artist.genres else None
            directory.append(ArtistSummary(
                name=name,
                song_count=counts[name],
                image_url=image_url,
                primary_genre=primary_genre
            ))
        return directory

    def get_artist_detail(self, name: str, songs: Iterable[Song]) -> ArtistDetail:
        """Songs by one artist (case-insensitive match) with a large image and top three genres"""
        wanted = name.casefold()
        artist_songs = [s for s in songs if s.artist.casefold() == wanted]
        artist = self.get_artist(name).value

        return ArtistDetail(
            name=name,
            songs=artist_songs,
            image_url=get_artist_image(artist, 'large'),
            genres=list(artist.genres[:3]) if artist else []
        )

    def get_song_detail(self, song: Song) -> SongDetail:
        track = self.get_track(song.title, song.artist).value

        youtube_id = extract_youtube_id(song.lesson_link) or extract_youtube_id(song.song_link_youtube)
        extra_youtube_ids = []
        for link in song.lesson_links:
            video_id = extract_youtube_id(link.get('url', ''))
            if video_id:
                extra_youtube_ids.append({'id': video_id, 'label': link.get('label', '')})

        return SongDetail(
            song=song,
            album_image_url=track.album_image_url if track else None,
            album_name=track.album_name if track else None,
            youtube_id=youtube_id,
            extra_youtube_ids=extra_youtube_ids,
            spotify_track_id=extract_spotify_track_id(song.song_link_spotify)
        )

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def get_stats(self) -> dict:
        return {
            'client': dict(self.client.stats),
            'requests': dict(self.client.requester.stats),
            'token_requests': self.client.token_manager.token_requests,
            'resolution_cache': dict(self.resolution_cache.stats, size=len(self.resolution_cache)),
            'metadata_cache': dict(self.metadata_cache.stats, size=len(self.metadata_cache)),
        }

    def shutdown(self, timeout: float = 5):
        """Give in-flight background refreshes a chance to finish"""
        logger.info("Waiting for background metadata refreshes")
        self.metadata_cache.wait_for_refreshes(timeout)
