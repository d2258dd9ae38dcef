"""
Spotify API Client Infrastructure

Handles low-level Spotify API concerns:
- OAuth client-credentials token management (single-flight refresh)
- Rate limiting with exponential backoff
- Artist and track search, normalized into metadata records

Caching lives one layer up (resolution_cache.py, metadata_cache.py).
"""

import os
import time
import base64
import logging
import threading
from dataclasses import dataclass
from typing import Optional
import requests

from spotify_models import ArtistMetadata, TrackMetadata, parse_artist, parse_track

logger = logging.getLogger(__name__)

TOKEN_URL = 'https://accounts.spotify.com/api/token'
SEARCH_URL = 'https://api.spotify.com/v1/search'

# Never hand out a token closer than this to its reported expiry
MIN_SAFETY_MARGIN = 60


class SpotifyError(Exception):
    """Base class for Spotify API failures"""


class SpotifyAuthError(SpotifyError):
    """Raised when the client-credentials exchange fails"""


class SpotifyLookupError(SpotifyError):
    """Raised when a search request fails at the transport or status level"""


class SpotifyRateLimitError(SpotifyLookupError):
    """Raised when Spotify API rate limit is hit"""
    def __init__(self, retry_after: int = None):
        self.retry_after = retry_after
        super().__init__(f"Spotify rate limit exceeded. Retry after {retry_after} seconds." if retry_after else "Spotify rate limit exceeded.")


class RateLimitedRequester:
    """
    Issues HTTP requests with a minimum delay between them and retries on 429.

    Shared by the token manager and the search client so both honor the same
    pacing.
    """

    def __init__(self, rate_limit_delay=0.2, max_retries=3, max_wait=30, logger=None):
        """
        Args:
            rate_limit_delay: Base delay between API calls (seconds)
            max_retries: Maximum number of retries for rate-limited requests
            max_wait: Longest rate-limit wait we sit out on a request thread;
                longer waits fail immediately with SpotifyRateLimitError
            logger: Optional logger instance (uses module logger if not provided)
        """
        self.logger = logger or logging.getLogger(__name__)
        self.rate_limit_delay = rate_limit_delay
        self.max_retries = max_retries
        self.max_wait = max_wait
        self.last_request_time = 0
        self._pace_lock = threading.Lock()
        self._stats_lock = threading.Lock()

        self.stats = {
            'requests': 0,
            'rate_limit_hits': 0,
            'rate_limit_waits': 0,
            'rate_limit_giveups': 0
        }

    def _count(self, name):
        with self._stats_lock:
            self.stats[name] += 1

    def _wait_for_rate_limit(self):
        """Enforce minimum delay between requests"""
        with self._pace_lock:
            if self.rate_limit_delay > 0:
                elapsed = time.time() - self.last_request_time
                if elapsed < self.rate_limit_delay:
                    time.sleep(self.rate_limit_delay - elapsed)
            self.last_request_time = time.time()

    def _handle_rate_limit_response(self, response: requests.Response) -> Optional[int]:
        """
        Extract rate limit information from response headers

        Returns:
            Number of seconds to wait before retrying, or None if the
            response does not say
        """
        if response.status_code != 429:
            return None

        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                self.logger.warning(f"Invalid Retry-After header: {retry_after}")

        # X-RateLimit-Reset is a Unix timestamp
        rate_limit_reset = response.headers.get('X-RateLimit-Reset')
        if rate_limit_reset:
            try:
                return max(0, int(rate_limit_reset) - int(time.time()))
            except ValueError:
                self.logger.warning(f"Invalid X-RateLimit-Reset header: {rate_limit_reset}")

        return None

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make an API request with rate limit handling and retries

        Args:
            method: HTTP method ('get', 'post', etc.)
            url: URL to request
            **kwargs: Additional arguments to pass to requests

        Returns:
            Response object (caller checks the status)

        Raises:
            SpotifyRateLimitError: If rate limit exceeded after all retries
            requests.exceptions.RequestException: For other request failures
        """
        retry_count = 0
        base_delay = 1

        while retry_count <= self.max_retries:
            self._wait_for_rate_limit()
            self._count('requests')

            response = getattr(requests, method)(url, **kwargs)

            if response.status_code != 429:
                return response

            self._count('rate_limit_hits')
            retry_after = self._handle_rate_limit_response(response)

            if retry_count >= self.max_retries:
                raise SpotifyRateLimitError(retry_after)

            if retry_after is not None and retry_after > self.max_wait:
                self._count('rate_limit_giveups')
                self.logger.warning(f"Rate limit hit, Spotify asks for {retry_after}s "
                                    f"(more than {self.max_wait}s). Giving up.")
                raise SpotifyRateLimitError(retry_after)

            if retry_after is not None:
                wait_time = retry_after
                self.logger.warning(f"Rate limit hit (attempt {retry_count + 1}/{self.max_retries + 1}). "
                                    f"Waiting {wait_time}s as specified by Spotify.")
            else:
                wait_time = base_delay * (2 ** retry_count)
                self.logger.warning(f"Rate limit hit (attempt {retry_count + 1}/{self.max_retries + 1}). "
                                    f"Using exponential backoff: {wait_time}s")

            self._count('rate_limit_waits')
            time.sleep(min(wait_time, self.max_wait))
            retry_count += 1

        raise SpotifyRateLimitError()


@dataclass(frozen=True)
class Credential:
    """Bearer token plus the instant after which we stop handing it out"""
    token: str
    expires_at: float


class TokenManager:
    """
    Holds the client-credentials bearer token and refreshes it lazily.

    Refreshes are single-flight: callers that arrive while a refresh is in
    progress wait for it and reuse its token. The credential is only ever
    replaced as a whole, so a reader that grabbed it keeps a consistent pair.
    """

    def __init__(self, client_id=None, client_secret=None, requester=None,
                 safety_margin=60, clock=time.time, timeout=10):
        self.client_id = client_id or os.environ.get('SPOTIFY_CLIENT_ID')
        self.client_secret = client_secret or os.environ.get('SPOTIFY_CLIENT_SECRET')
        self.requester = requester or RateLimitedRequester()
        self.safety_margin = max(safety_margin, MIN_SAFETY_MARGIN)
        self.clock = clock
        self.timeout = timeout

        self._credential = None
        self.token_requests = 0
        self._refresh_lock = threading.Lock()

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def access_token(self) -> Optional[str]:
        credential = self._credential
        return credential.token if credential else None

    @property
    def token_expires(self) -> float:
        credential = self._credential
        return credential.expires_at if credential else 0

    def _valid_token(self) -> Optional[str]:
        credential = self._credential
        if credential is not None and self.clock() < credential.expires_at:
            return credential.token
        return None

    def get_token(self) -> str:
        """
        Get a valid Spotify access token (reuses existing if still valid)

        Raises:
            SpotifyAuthError: If credentials are missing or the exchange fails
        """
        token = self._valid_token()
        if token is not None:
            return token

        with self._refresh_lock:
            # Another thread may have refreshed while we waited
            token = self._valid_token()
            if token is not None:
                return token
            return self._refresh()

    def invalidate(self):
        """Forget the current token so the next call performs an exchange"""
        with self._refresh_lock:
            self._credential = None

    def _refresh(self) -> str:
        if not self.has_credentials:
            logger.error("Spotify credentials not configured")
            logger.error("Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET")
            raise SpotifyAuthError("Spotify credentials not configured")

        credentials = f"{self.client_id}:{self.client_secret}"
        credentials_b64 = base64.b64encode(credentials.encode()).decode()

        self.token_requests += 1
        try:
            response = self.requester.request(
                'post',
                TOKEN_URL,
                headers={
                    'Authorization': f'Basic {credentials_b64}',
                    'Content-Type': 'application/x-www-form-urlencoded'
                },
                data={'grant_type': 'client_credentials'},
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
            access_token = data['access_token']
            expires_in = int(data['expires_in'])
        except SpotifyRateLimitError as e:
            logger.error(f"Rate limit exceeded during authentication: {e}")
            raise SpotifyAuthError(str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to authenticate with Spotify: {e}")
            raise SpotifyAuthError(f"Failed to authenticate with Spotify: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unexpected token response from Spotify: {e}")
            raise SpotifyAuthError(f"Unexpected token response: {e}") from e

        self._credential = Credential(
            token=access_token,
            expires_at=self.clock() + expires_in - self.safety_margin
        )

        logger.debug(f"Spotify authentication successful (expires in {expires_in}s)")
        return access_token


class SpotifyClient:
    """
    Spotify catalog search client.

    Returns normalized metadata records for the first search hit, or None
    when the search comes back empty.
    """

    def __init__(self, token_manager=None, requester=None, timeout=10, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self.requester = requester or RateLimitedRequester(logger=self.logger)
        self.token_manager = token_manager or TokenManager(requester=self.requester)
        self.timeout = timeout

        self.stats = {
            'api_calls': 0,
            'not_found': 0,
            'errors': 0
        }
        self._stats_lock = threading.Lock()

    def _count(self, name):
        with self._stats_lock:
            self.stats[name] += 1

    def _search(self, query: str, search_type: str) -> dict:
        """
        Run a limit-1 search and return the decoded JSON body

        A 401 means the token went bad early; it is dropped and the search is
        retried once with a fresh one. A second 401 is a lookup failure.
        """
        for attempt in range(2):
            token = self.token_manager.get_token()
            self._count('api_calls')
            try:
                response = self.requester.request(
                    'get',
                    SEARCH_URL,
                    headers={'Authorization': f'Bearer {token}'},
                    params={
                        'q': query,
                        'type': search_type,
                        'limit': 1
                    },
                    timeout=self.timeout
                )
            except SpotifyRateLimitError:
                self._count('errors')
                raise
            except requests.exceptions.RequestException as e:
                self._count('errors')
                raise SpotifyLookupError(f"Spotify {search_type} search failed: {e}") from e

            if response.status_code == 401:
                if attempt == 0:
                    self.logger.warning("Spotify rejected access token, refreshing")
                    self.token_manager.invalidate()
                    continue
                self._count('errors')
                raise SpotifyLookupError(f"Spotify {search_type} search unauthorized")

            try:
                response.raise_for_status()
                return response.json()
            except requests.exceptions.RequestException as e:
                self._count('errors')
                raise SpotifyLookupError(f"Spotify {search_type} search failed: {e}") from e
            except ValueError as e:
                self._count('errors')
                raise SpotifyLookupError(f"Invalid JSON from Spotify {search_type} search: {e}") from e

    def search_artist(self, name: str) -> Optional[ArtistMetadata]:
        """
        Look up an artist by free-text name

        Returns:
            ArtistMetadata for the top hit, or None if nothing matched

        Raises:
            SpotifyAuthError: Token exchange failed
            SpotifyLookupError: Search request failed
        """
        data = self._search(name, 'artist')
        items = (data.get('artists') or {}).get('items') or []

        if not items:
            self._count('not_found')
            self.logger.debug(f"No Spotify artist found for '{name}'")
            return None

        try:
            artist = parse_artist(items[0])
        except (KeyError, TypeError, AttributeError) as e:
            raise SpotifyLookupError(f"Malformed artist result for '{name}': {e}") from e

        self.logger.debug(f"Resolved artist '{name}' -> {artist.name} ({artist.id})")
        return artist

    def search_track(self, title: str, artist: str) -> Optional[TrackMetadata]:
        """
        Look up a track by title and artist

        Returns:
            TrackMetadata for the top hit, or None if nothing matched

        Raises:
            SpotifyAuthError: Token exchange failed
            SpotifyLookupError: Search request failed
        """
        data = self._search(f"track:{title} artist:{artist}", 'track')
        items = (data.get('tracks') or {}).get('items') or []

        if not items:
            self._count('not_found')
            self.logger.debug(f"No Spotify track found for '{title}' by '{artist}'")
            return None

        try:
            track = parse_track(items[0], artist)
        except (KeyError, TypeError, AttributeError) as e:
            raise SpotifyLookupError(f"Malformed track result for '{title}': {e}") from e

        self.logger.debug(f"Resolved track '{title}' -> {track.name} ({track.id})")
        return track
