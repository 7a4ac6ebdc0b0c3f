"""
Pydantic models for the SoundCloud v2 API records used by the downloader.

Unknown fields are ignored so that additions on the API side never break
decoding; only the fields the downloader relies on are declared.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ApiRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class User(_ApiRecord):
    id: int
    username: str = ""
    permalink: str = ""

    @field_validator("username", "permalink", mode="before")
    @classmethod
    def null_as_blank(cls, v: object) -> object:
        return "" if v is None else v


class Format(_ApiRecord):
    protocol: str
    mime_type: str


class Transcoding(_ApiRecord):
    """One stream variant of a track (progressive file or HLS playlist)."""

    url: str
    preset: str = ""
    quality: str = "sq"
    snipped: bool = False
    format: Format

    @property
    def is_progressive(self) -> bool:
        return self.format.protocol == "progressive"

    @property
    def is_hls(self) -> bool:
        return self.format.protocol == "hls"


class Media(_ApiRecord):
    transcodings: list[Transcoding] = Field(default_factory=list)


class Track(_ApiRecord):
    """A fully populated track, as returned by `/tracks/{id}` or `/resolve`."""

    id: int
    title: str = ""
    permalink: str = ""
    permalink_url: str = ""
    artwork_url: Optional[str] = None
    duration: int = 0
    genre: Optional[str] = None
    created_at: Optional[str] = None
    release_date: Optional[str] = None
    user: User
    media: Media = Field(default_factory=Media)

    # The API sends explicit nulls for these on some records.
    @field_validator("title", "permalink", "permalink_url", mode="before")
    @classmethod
    def null_as_blank(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("duration", mode="before")
    @classmethod
    def null_duration_as_zero(cls, v: object) -> object:
        return 0 if v is None else v

    @field_validator("media", mode="before")
    @classmethod
    def null_media_as_empty(cls, v: object) -> object:
        return {} if v is None else v

    @property
    def year(self) -> Optional[str]:
        date = self.release_date or self.created_at
        return date[:4] if date and date[:4].isdigit() else None


class PlaylistTrack(_ApiRecord):
    """
    A playlist entry. SoundCloud only fills in the first few entries of a
    playlist; the rest carry nothing but an id and must be hydrated.
    """

    id: int
    title: Optional[str] = None
    permalink: Optional[str] = None
    permalink_url: Optional[str] = None
    artwork_url: Optional[str] = None
    duration: Optional[int] = None
    genre: Optional[str] = None
    created_at: Optional[str] = None
    release_date: Optional[str] = None
    user: Optional[User] = None
    media: Optional[Media] = None

    def to_track(self) -> Optional[Track]:
        """Returns a full Track, or None if this entry is only a stub."""
        if self.media is None or self.user is None or self.title is None:
            return None
        return Track.model_validate(self.model_dump(exclude_none=True))


class Playlist(_ApiRecord):
    id: int
    title: str = ""
    permalink: str = ""
    permalink_url: str = ""
    track_count: int = 0
    tracks: list[PlaylistTrack] = Field(default_factory=list)


class Like(_ApiRecord):
    track: Optional[Track] = None
    # Set instead of `track` when the record could not be decoded.
    decode_error: Optional[str] = None


class LikesPage(_ApiRecord):
    collection: list[Like] = Field(default_factory=list)
    next_href: Optional[str] = None


class StreamLocation(_ApiRecord):
    """Response of a transcoding URL: where the audio actually lives."""

    url: str


class ResourceRef(_ApiRecord):
    kind: Literal["track", "playlist"]
    id: int
    permalink_url: str = ""
