import asyncio
import os
import shutil

import pytest

from soundcloud_cli.exceptions import EncodeFailedError, EncoderUnavailableError
from soundcloud_cli.media import EncodeProfile, EncoderHandle, FFmpegEncoder, resolve_encoder
from soundcloud_cli.media.encoder import BINARY_NAME

posix_only = pytest.mark.skipif(os.name == "nt", reason="uses shell scripts as ffmpeg")

# Copies the file after -i to the last argument, like a stream-copy ffmpeg run.
COPYING_FFMPEG = """#!/bin/sh
while [ $# -gt 1 ]; do
  if [ "$1" = "-i" ]; then src="$2"; fi
  shift
done
cp "$src" "$1"
"""

FAILING_FFMPEG = """#!/bin/sh
echo "header parsing failed" >&2
echo "Invalid data found when processing input" >&2
exit 3
"""


@pytest.fixture
def no_path_ffmpeg(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)


def never_download():
    raise AssertionError("download must not be attempted")


@posix_only
class TestResolveEncoder:
    def test_explicit_path_wins_over_path(self, monkeypatch, executable, tmp_path):
        explicit = executable("my-ffmpeg")
        monkeypatch.setattr(shutil, "which", lambda name: "/usr/bin/ffmpeg")

        handle = asyncio.run(resolve_encoder(explicit_path=str(explicit), download=never_download))

        assert handle == EncoderHandle(explicit, "explicit")

    def test_explicit_directory_is_searched_for_binary(self, no_path_ffmpeg, executable, tmp_path):
        binary = executable(BINARY_NAME)

        handle = asyncio.run(resolve_encoder(explicit_path=str(tmp_path)))

        assert handle.path == binary

    def test_missing_explicit_path_does_not_fall_back(self, monkeypatch, tmp_path):
        monkeypatch.setattr(shutil, "which", lambda name: "/usr/bin/ffmpeg")

        with pytest.raises(EncoderUnavailableError):
            asyncio.run(resolve_encoder(explicit_path=str(tmp_path / "nope" / "ffmpeg")))

    def test_path_wins_over_installed_and_download(self, monkeypatch, executable, tmp_path):
        executable(BINARY_NAME)
        monkeypatch.setattr(shutil, "which", lambda name: "/opt/bin/ffmpeg")

        handle = asyncio.run(resolve_encoder(install_dir=tmp_path, download=never_download))

        assert (str(handle.path), handle.source) == ("/opt/bin/ffmpeg", "path")

    def test_installed_copy_wins_over_download(self, no_path_ffmpeg, executable, tmp_path):
        binary = executable(BINARY_NAME)

        handle = asyncio.run(resolve_encoder(install_dir=tmp_path, download=never_download))

        assert handle == EncoderHandle(binary, "installed")

    def test_downloads_when_nothing_else_is_found(self, no_path_ffmpeg, executable, tmp_path):
        downloaded = executable("downloaded-ffmpeg")

        async def download():
            return downloaded

        handle = asyncio.run(
            resolve_encoder(
                install_dir=tmp_path / "empty",
                download=download,
                confirm_download=lambda: True,
            )
        )

        assert handle == EncoderHandle(downloaded, "downloaded")

    def test_declined_download_is_unavailable(self, no_path_ffmpeg, tmp_path):
        with pytest.raises(EncoderUnavailableError):
            asyncio.run(
                resolve_encoder(
                    install_dir=tmp_path,
                    download=never_download,
                    confirm_download=lambda: False,
                )
            )

    def test_no_strategy_left_is_unavailable(self, no_path_ffmpeg, tmp_path):
        with pytest.raises(EncoderUnavailableError):
            asyncio.run(resolve_encoder(install_dir=tmp_path))

    def test_download_errors_become_unavailable(self, no_path_ffmpeg, tmp_path):
        async def download():
            raise OSError("disk full")

        with pytest.raises(EncoderUnavailableError, match="disk full"):
            asyncio.run(resolve_encoder(install_dir=tmp_path, download=download))


class TestEncodeProfile:
    def test_auto_keeps_source_codec(self):
        profile = EncodeProfile()
        assert profile.output_format("opus") == "opus"
        assert profile.codec_args("opus") == ["-c:a", "copy", "-f", "ogg"]

    def test_same_target_as_source_is_copied(self):
        assert EncodeProfile("mp3").codec_args("mp3") == ["-c:a", "copy", "-f", "mp3"]

    def test_forced_target_is_reencoded_at_bitrate(self):
        profile = EncodeProfile("m4a", "192k")
        assert profile.codec_args("mp3") == [
            "-c:a",
            "aac",
            "-b:a",
            "192k",
            "-f",
            "mp4",
            "-movflags",
            "+faststart",
        ]


def test_build_command_runs_noninteractively(tmp_path):
    encoder = FFmpegEncoder(EncoderHandle(tmp_path / "ffmpeg", "explicit"))

    command = encoder.build_command(
        tmp_path / "in.mp3", tmp_path / "out.mp3", "mp3", EncodeProfile()
    )

    assert command[0] == str(tmp_path / "ffmpeg")
    assert command[1] == "-y"
    assert command[command.index("-i") + 1] == str(tmp_path / "in.mp3")
    assert command[-1] == str(tmp_path / "out.mp3")


@posix_only
def test_encode_moves_result_into_place(executable, tmp_path):
    encoder = FFmpegEncoder(EncoderHandle(executable(body=COPYING_FFMPEG), "explicit"))
    output = tmp_path / "out" / "Artist - Song.mp3"

    result = asyncio.run(encoder.encode(b"raw-audio", "mp3", output, EncodeProfile()))

    assert result == output
    assert output.read_bytes() == b"raw-audio"
    assert list(output.parent.iterdir()) == [output]


@posix_only
def test_encode_failure_reports_exit_code_and_leaves_no_file(executable, tmp_path):
    encoder = FFmpegEncoder(EncoderHandle(executable(body=FAILING_FFMPEG), "explicit"))
    output = tmp_path / "Artist - Song.mp3"

    with pytest.raises(EncodeFailedError) as exc_info:
        asyncio.run(encoder.encode(b"raw-audio", "mp3", output, EncodeProfile()))

    assert exc_info.value.exit_code == 3
    assert "Invalid data found" in str(exc_info.value)
    assert not output.exists()


def test_unstartable_binary_is_unavailable(tmp_path):
    encoder = FFmpegEncoder(EncoderHandle(tmp_path / "missing-ffmpeg", "explicit"))

    with pytest.raises(EncoderUnavailableError):
        asyncio.run(encoder.encode(b"x", "mp3", tmp_path / "o.mp3", EncodeProfile()))


# Publishes its pid, then waits far longer than any test runs.
SLEEPING_FFMPEG = """#!/bin/sh
dir=$(dirname "$0")
echo $$ > "$dir/ffmpeg.pid.tmp"
mv "$dir/ffmpeg.pid.tmp" "$dir/ffmpeg.pid"
exec sleep 60
"""


@posix_only
def test_cancelled_encode_kills_ffmpeg_and_leaves_no_file(executable, tmp_path):
    encoder = FFmpegEncoder(EncoderHandle(executable(body=SLEEPING_FFMPEG), "explicit"))
    output = tmp_path / "out" / "Artist - Song.mp3"
    pid_file = tmp_path / "ffmpeg.pid"

    async def cancel_mid_encode():
        task = asyncio.create_task(encoder.encode(b"raw-audio", "mp3", output, EncodeProfile()))
        for _ in range(500):
            if pid_file.exists():
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(cancel_mid_encode())

    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
    assert not output.exists()
    assert not output.parent.exists()
