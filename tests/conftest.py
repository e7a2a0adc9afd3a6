"""
Pytest fixtures for exporter tests.

Most tests stub ffmpeg out. Tests that run the real binary are marked with
@pytest.mark.requires_ffmpeg and skipped when ffmpeg/ffprobe are not on PATH:
run `pytest -m "not requires_ffmpeg"` to skip them explicitly.
"""

import asyncio
import io
import shutil
from pathlib import Path

import pytest

from ffmpeg_exporter.config import Settings
from ffmpeg_exporter.exceptions import EncoderProcessError
from ffmpeg_exporter.render.exporter import FFmpegExporter
from ffmpeg_exporter.render.models import AssetSnapshot, ExportSettings, JobIdentity


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def pytest_collection_modifyitems(config, items):
    """Skip requires_ffmpeg tests when the binaries are missing."""
    if _ffmpeg_available():
        return
    skip = pytest.mark.skip(reason="ffmpeg/ffprobe not available on PATH")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Output directory with a sibling public directory, like a project."""
    out = tmp_path / "project" / "output"
    (tmp_path / "project" / "public").mkdir(parents=True)
    return out


@pytest.fixture
def make_settings(output_dir: Path, tmp_path: Path):
    """Factory for ExportSettings rooted in tmp_path."""

    def _make(**overrides) -> ExportSettings:
        values = dict(
            fps=30,
            width=64,
            height=64,
            output_dir=output_dir,
            job=JobIdentity(name="test-job", job_id="abc123"),
            include_audio=True,
            fast_start=True,
            scratch_root=str(tmp_path / "scratch"),
        )
        values.update(overrides)
        return ExportSettings(**values)

    return _make


@pytest.fixture
def snapshot():
    """Factory for AssetSnapshot with sensible defaults."""

    def _snapshot(key: str = "a", current_time: float = 0.0, **overrides) -> AssetSnapshot:
        values = dict(
            key=key,
            src=f"/{key}.mp4",
            type="video",
            current_time=current_time,
            playback_rate=1.0,
            volume=1.0,
        )
        values.update(overrides)
        return AssetSnapshot(**values)

    return _snapshot


@pytest.fixture
def png_frames():
    """Factory producing solid-colour PNG frames as bytes."""
    from PIL import Image

    def _frames(count: int, size: tuple[int, int] = (64, 64)) -> list[bytes]:
        frames = []
        for i in range(count):
            buf = io.BytesIO()
            Image.new("RGB", size, ((i * 25) % 256, 64, 128)).save(buf, format="PNG")
            frames.append(buf.getvalue())
        return frames

    return _frames


class FakeEncoder:
    """VideoEncoder double that collects frames instead of spawning ffmpeg."""

    def __init__(self, settings, stream, app_settings=None):
        self.settings = settings
        self.stream = stream
        self.frames: list[bytes] = []
        self.killed = False
        self.fail_with: Exception | None = None
        self.start_error: Exception | None = None
        self._task: asyncio.Task | None = None

    async def start(self):
        if self.start_error:
            raise self.start_error
        self._task = asyncio.create_task(self._consume())

    async def _consume(self):
        async for frame in self.stream:
            self.frames.append(frame)

    async def wait(self):
        await self._task
        if self.killed:
            raise EncoderProcessError("Video encoder killed")
        if self.fail_with:
            raise self.fail_with

    def kill(self):
        self.killed = True
        if not self.stream.ended:
            self.stream.end()


@pytest.fixture
def exporter_factory():
    """Build FFmpegExporters whose encoder is a FakeEncoder."""

    def _factory(settings: ExportSettings) -> FFmpegExporter:
        return FFmpegExporter(settings, Settings(ffmpeg_path="ffmpeg"), encoder_factory=FakeEncoder)

    return _factory


@pytest.fixture
def make_exporter(make_settings, exporter_factory):
    def _make(**overrides) -> FFmpegExporter:
        return exporter_factory(make_settings(**overrides))

    return _make
