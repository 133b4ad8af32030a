"""
Test Configuration
==================

Pytest fixtures and test configuration for framecast.
"""

from pathlib import Path

import pytest

from framecast.models.geometry import FrameGeometry
from framecast.models.request import ExtractionRequest


@pytest.fixture
def tiny_geometry() -> FrameGeometry:
    """4x2 RGBA at 30 fps: 32 bytes per frame."""
    return FrameGeometry(width=4, height=2, frame_rate=30)


@pytest.fixture
def hd_geometry() -> FrameGeometry:
    """Default service geometry: 640x360 RGBA at 30 fps."""
    return FrameGeometry(width=640, height=360, frame_rate=30)


@pytest.fixture
def video_dir(tmp_path) -> Path:
    """Directory holding one (fake) video file."""
    movies = tmp_path / "movies"
    movies.mkdir()
    (movies / "clip.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return movies


@pytest.fixture
def video_path(video_dir) -> Path:
    return video_dir / "clip.mp4"


@pytest.fixture
def make_request(video_path):
    """Factory for ExtractionRequest against the fixture video."""

    def _make(start_frame: int = 0, count: int = 1) -> ExtractionRequest:
        return ExtractionRequest(video_path=video_path, start_frame=start_frame, count=count)

    return _make
