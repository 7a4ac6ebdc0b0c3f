import os
import sys

import pytest

# Ensure project root is on sys.path so 'soundcloud_cli' imports without installing
_ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)

from soundcloud_cli.api.client import SoundcloudAPIClient  # noqa: E402
from tests.support.fakes import FakeSession  # noqa: E402


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def make_client(session):
    """Builds an API client on the fake session with instant retries."""

    def _make(retries=3, max_workers=3):
        return SoundcloudAPIClient(
            "secret-token",
            max_workers=max_workers,
            retries=retries,
            base_delay=0,
            session=session,
        )

    return _make


@pytest.fixture
def executable(tmp_path):
    """Creates an executable shell script and returns its path."""

    def _make(name="ffmpeg", body="#!/bin/sh\nexit 0\n"):
        path = tmp_path / name
        path.write_text(body)
        path.chmod(0o755)
        return path

    return _make
