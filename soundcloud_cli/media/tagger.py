"""
Handles fetching cover artwork and writing track metadata as tags to media files.
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import mutagen.id3 as id3
from mutagen import MutagenError
from mutagen.flac import Picture
from mutagen.id3 import ID3NoHeaderError
from mutagen.mp4 import MP4, MP4Cover
from mutagen.oggopus import OggOpus

from soundcloud_cli.api.client import SoundcloudAPIClient
from soundcloud_cli.exceptions import SoundcloudCliError, TagWriteError
from soundcloud_cli.models.track import Track

log = logging.getLogger(__name__)

# Artwork URLs end in '-large' (100x100); try the bigger renditions first.
ARTWORK_SIZES = ("original", "t500x500", "large")


@dataclass(frozen=True)
class Artwork:
    data: bytes
    mime: str


def artwork_urls(artwork_url: str) -> list[str]:
    """Candidate artwork URLs, largest first."""
    urls = [artwork_url.replace("-large", f"-{size}") for size in ARTWORK_SIZES]
    return list(dict.fromkeys(urls))


def sniff_image_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    return "image/jpeg"


async def fetch_artwork(api_client: SoundcloudAPIClient, track: Track) -> Optional[Artwork]:
    """
    Downloads the track's cover art. Missing or unreachable artwork is not
    an error; the track is simply tagged without a picture.
    """
    if not track.artwork_url:
        return None
    for url in artwork_urls(track.artwork_url):
        try:
            data = await api_client.fetch_bytes(url)
        except SoundcloudCliError as e:
            log.debug(f"Artwork not available at {url}: {e}")
            continue
        if data:
            return Artwork(data, sniff_image_mime(data))
    return None


class Tagger:
    """Writes metadata tags to MP3, M4A and Opus files."""

    def tag_file(
        self,
        file_path: Path,
        audio_format: str,
        track: Track,
        artwork: Optional[Artwork] = None,
    ) -> None:
        """
        Tags an encoded file in place.

        Raises:
            TagWriteError: If the tags cannot be written. The file is left as is.
        """
        taggers = {
            "mp3": self._tag_mp3,
            "m4a": self._tag_m4a,
            "opus": self._tag_opus,
        }
        tag = taggers.get(audio_format)
        if tag is None:
            raise TagWriteError(f"Tagging is not supported for '{audio_format}' files.")
        try:
            tag(file_path, self._get_common_tags(track), artwork)
        except (MutagenError, OSError, ValueError) as e:
            raise TagWriteError(f"Failed to tag '{file_path.name}': {e}") from e

    @staticmethod
    def _get_common_tags(track: Track) -> dict[str, Optional[str]]:
        return {
            "title": track.title or track.permalink,
            "artist": track.user.username or track.user.permalink,
            "genre": track.genre or None,
            "date": track.year,
            "url": track.permalink_url or None,
        }

    def _tag_mp3(self, path: Path, tags: dict, artwork: Optional[Artwork]) -> None:
        try:
            audio = id3.ID3(path)
        except ID3NoHeaderError:
            audio = id3.ID3()

        audio.add(id3.TIT2(encoding=3, text=tags["title"]))
        audio.add(id3.TPE1(encoding=3, text=tags["artist"]))
        if tags["genre"]:
            audio.add(id3.TCON(encoding=3, text=tags["genre"]))
        if tags["date"]:
            audio.add(id3.TDRC(encoding=3, text=tags["date"]))
        if tags["url"]:
            audio.add(id3.WOAS(url=tags["url"]))

        if artwork:
            audio.delall("APIC")
            audio.add(
                id3.APIC(
                    encoding=3, mime=artwork.mime, type=3, desc="Cover", data=artwork.data
                )
            )

        audio.save(path, v2_version=3)

    def _tag_m4a(self, path: Path, tags: dict, artwork: Optional[Artwork]) -> None:
        audio = MP4(path)
        if audio.tags is None:
            audio.add_tags()

        audio.tags["\xa9nam"] = [tags["title"]]
        audio.tags["\xa9ART"] = [tags["artist"]]
        if tags["genre"]:
            audio.tags["\xa9gen"] = [tags["genre"]]
        if tags["date"]:
            audio.tags["\xa9day"] = [tags["date"]]
        if tags["url"]:
            audio.tags["\xa9cmt"] = [tags["url"]]

        if artwork:
            image_format = (
                MP4Cover.FORMAT_PNG if artwork.mime == "image/png" else MP4Cover.FORMAT_JPEG
            )
            audio.tags["covr"] = [MP4Cover(artwork.data, imageformat=image_format)]

        audio.save()

    def _tag_opus(self, path: Path, tags: dict, artwork: Optional[Artwork]) -> None:
        audio = OggOpus(path)

        audio["TITLE"] = [tags["title"]]
        audio["ARTIST"] = [tags["artist"]]
        if tags["genre"]:
            audio["GENRE"] = [tags["genre"]]
        if tags["date"]:
            audio["DATE"] = [tags["date"]]
        if tags["url"]:
            audio["WEBSITE"] = [tags["url"]]

        if artwork:
            pic = Picture()
            pic.type = 3
            pic.mime = artwork.mime
            pic.desc = "Cover"
            pic.data = artwork.data
            audio["METADATA_BLOCK_PICTURE"] = [
                base64.b64encode(pic.write()).decode("ascii")
            ]

        audio.save()
