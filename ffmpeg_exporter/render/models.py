"""Data types shared by the render stages."""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Literal, Optional, Sequence
from uuid import uuid4

from ffmpeg_exporter.config import Settings

AssetType = Literal["video", "audio"]


# ============================================================================
# Enums
# ============================================================================


class ExporterState(Enum):
    """Exporter lifecycle state."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


class RenderResult(Enum):
    """Outcome reported by the renderer when it stops producing frames."""

    SUCCESS = "success"
    ERROR = "error"
    ABORTED = "aborted"


# ============================================================================
# Asset observations
# ============================================================================


@dataclass(frozen=True)
class AssetSnapshot:
    """One asset as seen by the renderer on a single frame."""

    key: str
    src: str
    type: AssetType
    current_time: float  # Seconds into the source asset at this frame
    playback_rate: float = 1.0
    volume: float = 1.0


# The ordered assets visible at one frame
FrameSnapshot = Sequence[AssetSnapshot]


@dataclass(frozen=True)
class MediaAsset:
    """Consolidated placement of one asset across the rendered frames."""

    key: str
    src: str
    type: AssetType
    start_in_video: int  # First frame index (inclusive)
    end_in_video: int  # Last frame index (inclusive)
    duration: int  # Frames spanned
    duration_in_seconds: float  # Last observed current_time - first
    playback_rate: float
    volume: float
    trim_left_in_seconds: float  # First observed current_time


# ============================================================================
# Job configuration
# ============================================================================


@dataclass(frozen=True)
class JobIdentity:
    """Name plus unique id of one export job; keys its scratch directory."""

    name: str
    job_id: str = field(default_factory=lambda: uuid4().hex)

    def scratch_dir(self, root: str, prefix: str) -> Path:
        return Path(root) / f"{prefix}-{self.name}-{self.job_id}"


@dataclass(frozen=True)
class ExportSettings:
    """Read-only settings of one export job."""

    fps: float
    width: int  # After resolution scale
    height: int
    output_dir: Path
    job: JobIdentity
    include_audio: bool = True
    audio: Optional[str] = None  # Ready-made audio file fed to the encoder
    audio_offset: float = 0.0  # Seconds, applied with -itsoffset
    fast_start: bool = True
    # Unset values are filled from the app Settings by bind()
    scratch_root: Optional[str] = None
    scratch_prefix: Optional[str] = None
    public_dir_name: Optional[str] = None

    @classmethod
    def scaled(
        cls,
        *,
        width: int,
        height: int,
        resolution_scale: float = 1.0,
        **kwargs,
    ) -> "ExportSettings":
        """Build settings from the project size and a resolution scale."""
        return cls(
            width=round(width * resolution_scale),
            height=round(height * resolution_scale),
            **kwargs,
        )

    def bind(self, app_settings: Settings) -> "ExportSettings":
        """Copy of these settings with unset path options taken from app_settings."""
        return replace(
            self,
            scratch_root=self.scratch_root or app_settings.scratch_root,
            scratch_prefix=self.scratch_prefix or app_settings.scratch_prefix,
            public_dir_name=self.public_dir_name or app_settings.public_dir_name,
        )

    def _require_bound(self) -> None:
        if None in (self.scratch_root, self.scratch_prefix, self.public_dir_name):
            raise RuntimeError(f"ExportSettings for job {self.name} used before bind()")

    @property
    def name(self) -> str:
        return self.job.name

    @property
    def scratch_dir(self) -> Path:
        self._require_bound()
        return self.job.scratch_dir(self.scratch_root, self.scratch_prefix)

    @property
    def visuals_path(self) -> Path:
        return self.scratch_dir / "visuals.mp4"

    @property
    def mixed_audio_path(self) -> Path:
        return self.scratch_dir / "audio.wav"

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir) / f"{self.name}.mp4"

    @property
    def public_dir(self) -> Path:
        self._require_bound()
        return Path(os.path.normpath(Path(self.output_dir) / ".." / self.public_dir_name))


# ============================================================================
# Partial rendering
# ============================================================================


@dataclass(frozen=True)
class WorkerShard:
    """Contiguous frame range [start_frame, end_frame) owned by one worker."""

    worker_id: int
    num_workers: int
    start_frame: int
    end_frame: int  # Exclusive

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame


@dataclass(frozen=True)
class PartialRenderResult:
    """Silent video and raw (un-muxed) audio of one shard."""

    video_file: Path
    audio_file: Optional[Path] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "audioFile": str(self.audio_file) if self.audio_file else None,
            "videoFile": str(self.video_file),
        }
