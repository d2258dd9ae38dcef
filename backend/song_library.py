"""
Song Library

The song record tracked by users, the learning categories it can be filed
under, helpers for the links attached to it, and the storage capability the
rest of the backend expects. Storage itself lives in the external document
store; nothing here persists songs.
"""

import re
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the song store rejects a request or the caller is unauthenticated"""


# ============================================================================
# CATEGORIES
# ============================================================================
# id is stored with each song and must never change. slug and label can.

@dataclass(frozen=True)
class Category:
    id: str
    slug: str
    label: str


CATEGORIES = (
    Category(id='currently-working', slug='currently-working', label='Currently Working'),
    Category(id='backlog', slug='backlog', label='Backlog'),
    Category(id='learned', slug='learned', label='Learned'),
)


def get_category_by_id(category_id: str) -> Optional[Category]:
    return next((c for c in CATEGORIES if c.id == category_id), None)


def get_category_by_slug(slug: str) -> Optional[Category]:
    return next((c for c in CATEGORIES if c.slug == slug), None)


def get_default_category() -> Category:
    return CATEGORIES[0]


# ============================================================================
# SONG RECORD
# ============================================================================

def _parse_progress(raw) -> int:
    """Stored progress as an int clamped to 0-100; unreadable values count as 0"""
    try:
        progress = int(float(raw or 0))
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"Ignoring unreadable progress value: {raw!r}")
        return 0
    return max(0, min(100, progress))


@dataclass
class Song:
    id: str
    title: str
    artist: str
    lesson_link: str = ''
    lesson_links: List[dict] = field(default_factory=list)
    song_link_youtube: str = ''
    song_link_spotify: str = ''
    tabs_link: str = ''
    tabs_links: List[dict] = field(default_factory=list)
    tabs_pdf_url: Optional[str] = None
    notes: str = ''
    progress: int = 0
    category: str = 'currently-working'
    tuning: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be between 0 and 100, got {self.progress}")

    @classmethod
    def from_dict(cls, data: dict) -> 'Song':
        """
        Build a Song from a document-store record

        The store uses camelCase field names; missing optional fields take
        their defaults.
        """
        return cls(
            id=str(data['id']),
            title=data.get('title', ''),
            artist=data.get('artist', ''),
            lesson_link=data.get('lessonLink') or '',
            lesson_links=list(data.get('lessonLinks') or []),
            song_link_youtube=data.get('songLinkYoutube') or '',
            song_link_spotify=data.get('songLinkSpotify') or '',
            tabs_link=data.get('tabsLink') or '',
            tabs_links=list(data.get('tabsLinks') or []),
            tabs_pdf_url=data.get('tabsPdfUrl'),
            notes=data.get('notes') or '',
            progress=_parse_progress(data.get('progress')),
            category=data.get('category') or get_default_category().id,
            tuning=data.get('tuning'),
        )


# ============================================================================
# LINK HELPERS
# ============================================================================

YOUTUBE_ID_PATTERN = re.compile(r'^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*')
SPOTIFY_TRACK_PATTERN = re.compile(r'track/([a-zA-Z0-9]+)')


def validate_url(url: str) -> bool:
    """True if url parses as an absolute URL"""
    if not url:
        return False
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def progress_tier(progress: int) -> str:
    if progress < 30:
        return 'low'
    if progress < 70:
        return 'medium'
    return 'high'


def extract_youtube_id(url: str) -> Optional[str]:
    """Pull the 11-character video id out of any common YouTube URL form"""
    if not url:
        return None
    match = YOUTUBE_ID_PATTERN.match(url)
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None


def extract_spotify_track_id(url: str) -> Optional[str]:
    if not url:
        return None
    match = SPOTIFY_TRACK_PATTERN.search(url)
    return match.group(1) if match else None


def is_ultimate_guitar(url: str) -> bool:
    return bool(url) and 'ultimate-guitar.com' in url


# ============================================================================
# STORAGE CAPABILITY
# ============================================================================

class SongRepository(ABC):
    """
    Access to a user's songs in the external document store

    Every method raises PersistenceError when the caller is not
    authenticated or the store rejects the operation.
    """

    @abstractmethod
    def list_songs(self, user_id: str) -> List[Song]:
        """Songs for the user, newest first"""

    @abstractmethod
    def create_song(self, user_id: str, song: Song) -> str:
        """Store a new song and return its id"""

    @abstractmethod
    def update_song(self, user_id: str, song_id: str, fields: dict) -> None:
        """Apply a partial update"""

    @abstractmethod
    def delete_song(self, user_id: str, song_id: str) -> None:
        """Remove a song"""

    def get_song(self, user_id: str, song_id: str) -> Optional[Song]:
        return next((s for s in self.list_songs(user_id) if str(s.id) == str(song_id)), None)
