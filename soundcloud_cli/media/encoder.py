"""
Locates the ffmpeg binary and uses it to mux raw streams into audio files.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles

from soundcloud_cli.exceptions import (
    EncodeFailedError,
    EncoderUnavailableError,
    SoundcloudCliError,
)
from soundcloud_cli.models.config import get_format_info

log = logging.getLogger(__name__)

BINARY_NAME = "ffmpeg.exe" if os.name == "nt" else "ffmpeg"


@dataclass(frozen=True)
class EncoderHandle:
    """A resolved ffmpeg binary. Resolved once per run and shared by all jobs."""

    path: Path
    source: str  # explicit | path | installed | downloaded


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


async def resolve_encoder(
    explicit_path: Optional[str] = None,
    install_dir: Optional[Path] = None,
    download: Optional[Callable[[], Awaitable[Path]]] = None,
    confirm_download: Optional[Callable[[], bool]] = None,
) -> EncoderHandle:
    """
    Finds ffmpeg, in order of preference:

    1. `explicit_path` (a directory is searched for the binary);
    2. the first `ffmpeg` on PATH;
    3. a copy previously installed into `install_dir`;
    4. a fresh download via `download()`, after `confirm_download()` agrees.

    Raises:
        EncoderUnavailableError: If the explicit path is unusable, or no
            strategy produced a binary.
    """
    if explicit_path:
        path = Path(explicit_path).expanduser()
        if path.is_dir():
            path = path / BINARY_NAME
        if not _is_executable(path):
            raise EncoderUnavailableError(f"FFmpeg not found at path: {path}")
        return EncoderHandle(path, "explicit")

    if found := shutil.which("ffmpeg"):
        return EncoderHandle(Path(found), "path")

    if install_dir and _is_executable(install_dir / BINARY_NAME):
        return EncoderHandle(install_dir / BINARY_NAME, "installed")

    if download is None:
        raise EncoderUnavailableError(
            "FFmpeg not found on PATH. Install it or pass --ffmpeg-path."
        )
    if confirm_download and not confirm_download():
        raise EncoderUnavailableError(
            "FFmpeg is required. Install it, pass --ffmpeg-path, or allow the download."
        )

    try:
        path = await download()
    except EncoderUnavailableError:
        raise
    except (SoundcloudCliError, OSError) as e:
        raise EncoderUnavailableError(f"Failed to download ffmpeg: {e}") from e
    return EncoderHandle(path, "downloaded")


@dataclass(frozen=True)
class EncodeProfile:
    """
    Output settings. With `target="auto"` the source codec is kept and the
    stream is only remuxed; any other target is re-encoded at `bitrate`.
    """

    target: str = "auto"
    bitrate: str = "256k"

    def output_format(self, source_format: str) -> str:
        return source_format if self.target == "auto" else self.target

    def codec_args(self, source_format: str) -> list[str]:
        output_format = self.output_format(source_format)
        info = get_format_info(output_format)
        if output_format == source_format:
            args = ["-c:a", "copy"]
        else:
            args = ["-c:a", info["codec"], "-b:a", self.bitrate]
        args += ["-f", info["muxer"]]
        if output_format == "m4a":
            args += ["-movflags", "+faststart"]
        return args


class FFmpegEncoder:
    """Runs ffmpeg on in-memory audio inside a scoped temporary directory."""

    def __init__(self, handle: EncoderHandle):
        self.handle = handle

    def build_command(
        self, input_path: Path, output_path: Path, source_format: str, profile: EncodeProfile
    ) -> list[str]:
        return [
            str(self.handle.path),
            "-y",
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            str(input_path),
            "-vn",
            *profile.codec_args(source_format),
            str(output_path),
        ]

    async def encode(
        self,
        raw: bytes,
        source_format: str,
        output_path: Path,
        profile: EncodeProfile,
    ) -> Path:
        """
        Writes `raw` to a temp file, runs ffmpeg, and moves the result to
        `output_path` only after ffmpeg exits successfully.

        If the calling task is cancelled, the ffmpeg process is killed and
        reaped before the cancellation propagates.

        Raises:
            EncodeFailedError: If ffmpeg exits with a non-zero status.
            EncoderUnavailableError: If the binary cannot be started.
        """
        source_ext = get_format_info(source_format)["ext"]
        target_ext = get_format_info(profile.output_format(source_format))["ext"]

        with tempfile.TemporaryDirectory(prefix="soundcloud-cli-") as tmp:
            input_path = Path(tmp) / f"input.{source_ext}"
            encoded_path = Path(tmp) / f"output.{target_ext}"
            async with aiofiles.open(input_path, "wb") as f:
                await f.write(raw)

            command = self.build_command(input_path, encoded_path, source_format, profile)
            log.debug(f"Running: {' '.join(command)}")
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise EncoderUnavailableError(
                    f"Could not start ffmpeg at {self.handle.path}: {e}"
                ) from e

            try:
                _, stderr = await process.communicate()
            except BaseException:
                if process.returncode is None:
                    process.kill()
                    await process.wait()
                raise

            if process.returncode != 0:
                raise EncodeFailedError(
                    process.returncode, stderr.decode("utf-8", errors="replace")
                )

            output_path.parent.mkdir(parents=True, exist_ok=True)
            partial_path = output_path.with_name(output_path.name + ".part")
            shutil.move(str(encoded_path), partial_path)
            os.replace(partial_path, output_path)

        return output_path
