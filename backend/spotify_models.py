"""
Spotify Metadata Records

Immutable records for the artist and track metadata we show next to songs,
plus the helpers that normalize raw search results into them.

Spotify returns images sorted by size (largest first), so image selection
is purely positional.
"""

from dataclasses import dataclass, field
from typing import Optional

IMAGE_SIZES = ('large', 'medium', 'small')


@dataclass(frozen=True)
class ArtistImage:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class ArtistMetadata:
    """Artist as resolved from a Spotify artist search"""
    id: str
    name: str
    images: tuple = field(default_factory=tuple)
    genres: tuple = field(default_factory=tuple)
    followers: int = 0


@dataclass(frozen=True)
class TrackMetadata:
    """Track as resolved from a Spotify track search"""
    id: str
    name: str
    album_image_url: Optional[str]
    album_name: str
    artist_name: str


def parse_artist(item: dict) -> ArtistMetadata:
    """
    Build an ArtistMetadata from one item of ``artists.items``

    Missing arrays are treated as empty and a missing follower block as zero.
    """
    images = tuple(
        ArtistImage(url=image['url'], width=image.get('width'), height=image.get('height'))
        for image in (item.get('images') or [])
        if image.get('url')
    )
    followers = (item.get('followers') or {}).get('total') or 0

    return ArtistMetadata(
        id=item['id'],
        name=item['name'],
        images=images,
        genres=tuple(item.get('genres') or []),
        followers=followers,
    )


def parse_track(item: dict, queried_artist: str) -> TrackMetadata:
    """
    Build a TrackMetadata from one item of ``tracks.items``

    Args:
        item: Raw track object from the search response
        queried_artist: Artist name used in the query, used when the
            result carries no artists
    """
    album = item.get('album') or {}
    album_images = album.get('images') or []
    artists = item.get('artists') or []

    return TrackMetadata(
        id=item['id'],
        name=item['name'],
        album_image_url=album_images[0].get('url') if album_images else None,
        album_name=album.get('name') or '',
        artist_name=(artists[0].get('name') if artists else None) or queried_artist,
    )


def get_artist_image(artist: Optional[ArtistMetadata], size: str = 'large') -> Optional[str]:
    """
    Pick an image URL for an artist

    large -> first image, medium -> second, small -> third. When the list is
    shorter than requested we fall back to the next larger image.

    Returns:
        Image URL, or None if there is no artist or it has no images
    """
    if size not in IMAGE_SIZES:
        raise ValueError(f"Unknown image size: {size}")

    if not artist or not artist.images:
        return None

    index = min(IMAGE_SIZES.index(size), len(artist.images) - 1)
    return artist.images[index].url
