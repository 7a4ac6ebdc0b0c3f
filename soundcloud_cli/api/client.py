"""
Async client for SoundCloud's private v2 JSON API, with bounded retries.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, Optional, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import aiohttp
from pydantic import BaseModel, ValidationError

from soundcloud_cli.exceptions import (
    DecodeFailedError,
    NotFoundError,
    RateLimitedError,
    RequestFailedError,
    UnauthorizedError,
)
from soundcloud_cli.models.track import (
    Like,
    LikesPage,
    Playlist,
    StreamLocation,
    Track,
    Transcoding,
    User,
)

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
ResultT = TypeVar("ResultT")

# Maximum number of ids the /tracks endpoint accepts per request.
TRACKS_BATCH_SIZE = 50


def authorization_header(token: str) -> str:
    """Sends tokens that already name a scheme verbatim, bare tokens as 'OAuth <token>'."""
    token = token.strip()
    if " " in token:
        return token
    return f"OAuth {token}"


def with_query(url: str, **params: Any) -> str:
    """Returns the URL with the given query parameters added or replaced."""
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update({k: str(v) for k, v in params.items()})
    return urlunsplit(parts._replace(query=urlencode(query)))


class SoundcloudAPIClient:
    """
    Async client for the SoundCloud v2 API.

    Features:
    - OAuth token attached to every API request
    - Typed decoding of responses into pydantic models
    - Bounded retries with exponential backoff for transient failures
    - A single pooled session shared by API and media downloads
    """

    BASE_URL = "https://api-v2.soundcloud.com/"
    DOWNLOAD_CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        token: str,
        max_workers: int = 3,
        retries: int = 3,
        base_delay: float = 1.5,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initializes the API client.

        Args:
            token: The user's OAuth token.
            max_workers: Number of concurrent media requests, used to size the pool.
            retries: Attempts per request before giving up on a transient error.
            base_delay: Backoff base in seconds; doubles after every failed attempt.
            session: An existing session to use instead of creating one.
        """
        self.token = token
        self.max_workers = max_workers
        self.retries = retries
        self.base_delay = base_delay
        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_workers * 2,
                limit_per_host=self.max_workers + 2,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0",
                    "Accept-Encoding": "gzip, deflate",
                },
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=60),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SoundcloudAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --- Request plumbing ---

    @staticmethod
    def _is_retryable(error: RequestFailedError) -> bool:
        return error.status is None or error.status == 429 or error.status >= 500

    async def _with_retries(
        self, operation: Callable[[], Awaitable[ResultT]], description: str
    ) -> ResultT:
        """Runs `operation`, retrying transport errors, 5xx and 429 responses."""
        attempt = 1
        while True:
            try:
                return await operation()
            except RequestFailedError as e:
                if not self._is_retryable(e) or attempt >= self.retries:
                    raise
                delay = self.base_delay * (2 ** (attempt - 1))
                log.debug(
                    f"{description} failed (attempt {attempt}/{self.retries}): {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
                attempt += 1

    @staticmethod
    def _check_status(status: int, url: str, authenticated: bool = True) -> None:
        if status in (401, 403):
            if not authenticated:
                # Signed CDN URLs carry no token; a refusal means the signature lapsed.
                raise RequestFailedError(
                    f"Stream URL expired or access denied (HTTP {status} from "
                    f"{urlsplit(url).netloc}).",
                    status=status,
                )
            raise UnauthorizedError(
                f"Token invalid or expired (HTTP {status} from {urlsplit(url).path})."
            )
        if status == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if status == 429:
            raise RateLimitedError()
        if status >= 400:
            raise RequestFailedError(f"HTTP {status} for {url}", status=status)

    async def _get_json_once(self, url: str, params: dict[str, Any]) -> Any:
        session = await self._initialize_session()
        headers = {
            "Authorization": authorization_header(self.token),
            "Accept": "application/json",
        }
        try:
            async with session.get(url, params=params or None, headers=headers) as r:
                self._check_status(r.status, url)
                body = await r.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RequestFailedError(f"Request to {url} failed: {e}") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeFailedError(f"Response from {url} is not valid JSON.") from e

    async def api_call(self, endpoint: str, **params: Any) -> Any:
        """
        Makes an authenticated GET request and returns the decoded JSON body.

        Args:
            endpoint: A path relative to BASE_URL, or an absolute API URL
                (as found in `next_href` and transcoding URLs).
            **params: Query parameters.
        """
        url = endpoint if endpoint.startswith("http") else self.BASE_URL + endpoint
        return await self._with_retries(
            lambda: self._get_json_once(url, params), f"API call to {endpoint}"
        )

    @staticmethod
    def _decode(model: type[ModelT], payload: Any, what: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DecodeFailedError(f"Unexpected {what} response: {e}") from e

    async def _fetch_bytes_once(
        self, url: str, on_chunk: Optional[Callable[[int], None]]
    ) -> bytes:
        session = await self._initialize_session()
        chunks = []
        try:
            async with session.get(url, allow_redirects=True) as r:
                self._check_status(r.status, url, authenticated=False)
                async for chunk in r.content.iter_chunked(self.DOWNLOAD_CHUNK_SIZE):
                    chunks.append(chunk)
                    if on_chunk:
                        on_chunk(len(chunk))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RequestFailedError(f"Download of {url} failed: {e}") from e
        return b"".join(chunks)

    async def fetch_bytes(
        self, url: str, on_chunk: Optional[Callable[[int], None]] = None
    ) -> bytes:
        """
        Downloads a media or artwork URL into memory. CDN URLs are pre-signed,
        so no Authorization header is sent.
        """
        return await self._with_retries(
            lambda: self._fetch_bytes_once(url, on_chunk), f"Download of {url}"
        )

    # --- Public API methods ---

    async def get_me(self) -> User:
        return self._decode(User, await self.api_call("me"), "user")

    async def resolve(self, url: str) -> dict[str, Any]:
        payload = await self.api_call("resolve", url=url)
        if not isinstance(payload, dict):
            raise DecodeFailedError("Unexpected resolve response.")
        return payload

    async def fetch_track(self, track_id: int) -> Track:
        return self._decode(Track, await self.api_call(f"tracks/{track_id}"), "track")

    async def fetch_playlist(self, playlist_id: int) -> Playlist:
        payload = await self.api_call(f"playlists/{playlist_id}")
        return self._decode(Playlist, payload, "playlist")

    async def fetch_tracks(self, track_ids: list[int]) -> dict[int, Track]:
        """
        Fetches full track records in batches.

        Returns:
            A mapping of track id to Track. Ids the API did not return, or
            returned as records that do not decode, are absent.
        """
        tracks: dict[int, Track] = {}
        for start in range(0, len(track_ids), TRACKS_BATCH_SIZE):
            batch = track_ids[start : start + TRACKS_BATCH_SIZE]
            payload = await self.api_call("tracks", ids=",".join(map(str, batch)))
            if not isinstance(payload, list):
                raise DecodeFailedError("Unexpected tracks response: expected a list.")
            for item in payload:
                try:
                    track = self._decode(Track, item, "track")
                except DecodeFailedError as e:
                    log.warning(f"Ignoring unreadable track record: {e}")
                    continue
                tracks[track.id] = track
        return tracks

    async def fetch_stream_url(self, transcoding: Transcoding) -> str:
        """Exchanges a transcoding URL for the signed media URL."""
        payload = await self.api_call(transcoding.url)
        return self._decode(StreamLocation, payload, "stream").url

    def likes_url(self, user_id: int, limit: int, offset: int = 0) -> str:
        return with_query(
            f"{self.BASE_URL}users/{user_id}/track_likes", limit=limit, offset=offset
        )

    async def fetch_likes_page(self, url: str) -> LikesPage:
        """
        Fetches one page of likes. Each like is decoded on its own; a record
        that does not decode is kept as a Like carrying `decode_error`.
        """
        payload = await self.api_call(url)
        if not isinstance(payload, dict):
            raise DecodeFailedError("Unexpected likes response: expected an object.")
        raw_likes = payload.get("collection") or []
        if not isinstance(raw_likes, list):
            raise DecodeFailedError("Unexpected likes response: collection is not a list.")

        likes = []
        for item in raw_likes:
            try:
                likes.append(self._decode(Like, item, "like"))
            except DecodeFailedError as e:
                likes.append(Like(decode_error=str(e)))
        next_href = payload.get("next_href")
        return LikesPage(
            collection=likes, next_href=next_href if isinstance(next_href, str) else None
        )

    async def iter_likes(
        self, user_id: int, skip: int, limit: int, chunk_size: int
    ) -> AsyncGenerator[Like, None]:
        """
        Yields at most `limit` likes starting at position `skip`.

        Each request asks for `min(chunk_size, remaining)` items, and the API's
        `next_href` cursor is followed between pages so no likes are skipped or
        repeated.
        """
        remaining = limit
        url: Optional[str] = self.likes_url(user_id, min(chunk_size, remaining), skip)

        while url and remaining > 0:
            page = await self.fetch_likes_page(url)
            items = page.collection[:remaining]
            for like in items:
                yield like
            remaining -= len(items)

            if not page.collection or remaining <= 0 or not page.next_href:
                break
            url = with_query(page.next_href, limit=min(chunk_size, remaining))
