from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ffmpeg_exporter.render.models import (
    AssetSnapshot,
    ExportSettings,
    JobIdentity,
    RenderResult,
    WorkerShard,
)


class CamelModel(BaseModel):
    """Accepts the renderer's camelCase field names as well as snake_case."""

    model_config = ConfigDict(populate_by_name=True)


class AssetInfo(CamelModel):
    key: str
    src: str
    type: Literal["video", "audio"]
    current_time: float = Field(alias="currentTime")
    playback_rate: float = Field(1.0, ge=0, alias="playbackRate")
    volume: float = Field(1.0, ge=0)

    def to_snapshot(self) -> AssetSnapshot:
        return AssetSnapshot(
            key=self.key,
            src=self.src,
            type=self.type,
            current_time=self.current_time,
            playback_rate=self.playback_rate,
            volume=self.volume,
        )


class ExporterStartRequest(CamelModel):
    name: str = Field(min_length=1)
    job_id: str | None = Field(None, alias="hiddenFolderId")
    fps: float = Field(gt=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    resolution_scale: float = Field(1.0, gt=0, alias="resolutionScale")
    output_dir: str = Field(alias="output")
    include_audio: bool = Field(True, alias="includeAudio")
    audio: str | None = None
    audio_offset: float = Field(0.0, alias="audioOffset")
    fast_start: bool = Field(True, alias="fastStart")

    def to_settings(self) -> ExportSettings:
        job = JobIdentity(name=self.name, job_id=self.job_id) if self.job_id else JobIdentity(name=self.name)
        return ExportSettings.scaled(
            width=self.width,
            height=self.height,
            resolution_scale=self.resolution_scale,
            fps=self.fps,
            output_dir=Path(self.output_dir),
            job=job,
            include_audio=self.include_audio,
            audio=self.audio,
            audio_offset=self.audio_offset,
            fast_start=self.fast_start,
        )


class FrameRequest(BaseModel):
    data: str  # base64 data URL of one encoded image


class ComposeAudioRequest(CamelModel):
    assets: list[list[AssetInfo]]
    start_frame: int = Field(alias="startFrame", ge=0)
    end_frame: int = Field(alias="endFrame", ge=0)


class EndRequest(BaseModel):
    result: RenderResult = RenderResult.SUCCESS


class ExporterStatusResponse(CamelModel):
    job_id: str = Field(serialization_alias="jobId")
    name: str
    state: str
    frames_pushed: int = Field(serialization_alias="framesPushed")
    output_path: str = Field(serialization_alias="outputPath")


class ComposeAudioResponse(CamelModel):
    audio_file: str | None = Field(serialization_alias="audioFile")
    tracks: int


class MergeResponse(CamelModel):
    output_path: str = Field(serialization_alias="outputPath")


class PartialRenderResponse(CamelModel):
    audio_file: str | None = Field(serialization_alias="audioFile")
    video_file: str = Field(serialization_alias="videoFile")


class WorkerShardResponse(CamelModel):
    worker_id: int = Field(serialization_alias="workerId")
    num_workers: int = Field(serialization_alias="numWorkers")
    start_frame: int = Field(serialization_alias="startFrame")
    end_frame: int = Field(serialization_alias="endFrame")

    @classmethod
    def from_shard(cls, shard: WorkerShard) -> "WorkerShardResponse":
        return cls(
            worker_id=shard.worker_id,
            num_workers=shard.num_workers,
            start_frame=shard.start_frame,
            end_frame=shard.end_frame,
        )
