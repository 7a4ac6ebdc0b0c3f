"""
Downloads a static ffmpeg build and installs it into the user data directory.

Release archives differ per platform (tarballs on Linux, zip files on Windows
and macOS); each format is handled by its own ArchiveExtractor.
"""

import asyncio
import logging
import os
import platform as platform_module
import sys
import tarfile
import tempfile
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

import aiofiles

from soundcloud_cli.api.client import SoundcloudAPIClient
from soundcloud_cli.exceptions import EncoderUnavailableError

log = logging.getLogger(__name__)

_BTBN = "https://github.com/BtbN/FFmpeg-Builds/releases/download/latest/"
_EVERMEET = "https://evermeet.cx/ffmpeg/getrelease/zip"


class ArchiveExtractor(ABC):
    """Pulls a single executable out of a release archive."""

    suffix = ""

    @abstractmethod
    def _members(self, archive_path: Path) -> list[str]: ...

    @abstractmethod
    def _read_member(self, archive_path: Path, name: str) -> bytes: ...

    def extract_binary(self, archive_path: Path, binary_name: str, target_dir: Path) -> Path:
        """
        Extracts the first file named `binary_name` (at any depth) into
        `target_dir` and marks it executable.

        Raises:
            EncoderUnavailableError: If the archive is unreadable or lacks the binary.
        """
        try:
            name = next(
                (m for m in self._members(archive_path) if PurePosixPath(m).name == binary_name),
                None,
            )
            if name is None:
                raise EncoderUnavailableError(
                    f"'{binary_name}' not found in downloaded archive."
                )
            data = self._read_member(archive_path, name)
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
            raise EncoderUnavailableError(f"Could not read ffmpeg archive: {e}") from e

        target_dir.mkdir(parents=True, exist_ok=True)
        target_path = target_dir / binary_name
        target_path.write_bytes(data)
        if os.name != "nt":
            target_path.chmod(0o755)
        return target_path


class TarArchiveExtractor(ArchiveExtractor):
    """Handles .tar.gz and .tar.xz release archives."""

    suffix = ".tar"

    def _members(self, archive_path: Path) -> list[str]:
        with tarfile.open(archive_path, "r:*") as tar:
            return [m.name for m in tar.getmembers() if m.isfile()]

    def _read_member(self, archive_path: Path, name: str) -> bytes:
        with tarfile.open(archive_path, "r:*") as tar:
            member = tar.extractfile(name)
            if member is None:
                raise EncoderUnavailableError(f"'{name}' is not a regular file.")
            with member:
                return member.read()


class ZipArchiveExtractor(ArchiveExtractor):
    """Handles .zip release archives."""

    suffix = ".zip"

    def _members(self, archive_path: Path) -> list[str]:
        with zipfile.ZipFile(archive_path) as archive:
            return [i.filename for i in archive.infolist() if not i.is_dir()]

    def _read_member(self, archive_path: Path, name: str) -> bytes:
        with zipfile.ZipFile(archive_path) as archive:
            return archive.read(name)


@dataclass(frozen=True)
class FFmpegRelease:
    url: str
    extractor: ArchiveExtractor


# (sys.platform prefix, normalized machine) -> release archive
FFMPEG_RELEASES = {
    ("linux", "x86_64"): FFmpegRelease(
        _BTBN + "ffmpeg-master-latest-linux64-lgpl.tar.xz", TarArchiveExtractor()
    ),
    ("linux", "aarch64"): FFmpegRelease(
        _BTBN + "ffmpeg-master-latest-linuxarm64-lgpl.tar.xz", TarArchiveExtractor()
    ),
    ("win32", "x86_64"): FFmpegRelease(
        _BTBN + "ffmpeg-master-latest-win64-lgpl.zip", ZipArchiveExtractor()
    ),
    ("darwin", "x86_64"): FFmpegRelease(_EVERMEET, ZipArchiveExtractor()),
    ("darwin", "aarch64"): FFmpegRelease(_EVERMEET, ZipArchiveExtractor()),
}


def release_for(
    platform: Optional[str] = None, machine: Optional[str] = None
) -> FFmpegRelease:
    """
    Gets the ffmpeg release archive for a platform.

    Raises:
        EncoderUnavailableError: If no build is known for the platform.
    """
    platform = platform or sys.platform
    machine = (machine or platform_module.machine()).lower()
    machine = {"amd64": "x86_64", "arm64": "aarch64"}.get(machine, machine)

    for (prefix, arch), release in FFMPEG_RELEASES.items():
        if platform.startswith(prefix) and arch == machine:
            return release
    raise EncoderUnavailableError(
        f"No ffmpeg build available for {platform}/{machine}. "
        "Install ffmpeg manually or pass --ffmpeg-path."
    )


async def download_ffmpeg(
    api_client: SoundcloudAPIClient,
    install_dir: Path,
    binary_name: str,
    release: Optional[FFmpegRelease] = None,
) -> Path:
    """
    Downloads the release archive to a temporary file and extracts ffmpeg
    into `install_dir`.

    Returns:
        The path of the installed binary.
    """
    release = release or release_for()
    url, extractor = release.url, release.extractor
    log.info(f"Downloading ffmpeg from [dim]{url}[/dim]...")
    data = await api_client.fetch_bytes(url)

    with tempfile.TemporaryDirectory(prefix="soundcloud-cli-ffmpeg-") as tmp:
        archive_path = Path(tmp) / f"ffmpeg{extractor.suffix}"
        async with aiofiles.open(archive_path, "wb") as f:
            await f.write(data)
        binary = await asyncio.to_thread(
            extractor.extract_binary, archive_path, binary_name, install_dir
        )

    log.info(f"[green]✓ Installed ffmpeg to[/] [dim]{binary}[/dim]")
    return binary
