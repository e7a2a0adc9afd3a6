"""Exporter API endpoints.

The renderer drives one export job over HTTP:
start -> frames... -> end -> audio -> merge (or partial for shard workers).
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ffmpeg_exporter.exceptions import ExporterExistsError, ExporterNotFoundError
from ffmpeg_exporter.render.exporter import DEAD_STATES, FFmpegExporter
from ffmpeg_exporter.render.models import ExportSettings
from ffmpeg_exporter.render.partial_render import plan_worker_shard
from ffmpeg_exporter.schemas.exporter import (
    ComposeAudioRequest,
    ComposeAudioResponse,
    EndRequest,
    ExporterStartRequest,
    ExporterStatusResponse,
    FrameRequest,
    MergeResponse,
    PartialRenderResponse,
    WorkerShardResponse,
)

router = APIRouter(prefix="/exporter", tags=["exporter"])
logger = logging.getLogger(__name__)


class ExporterRegistry:
    """Live export jobs of this process, keyed by job id."""

    def __init__(self, factory: Callable[[ExportSettings], FFmpegExporter] = FFmpegExporter):
        self.factory = factory
        self._exporters: dict[str, FFmpegExporter] = {}

    def create(self, settings: ExportSettings) -> FFmpegExporter:
        if settings.job.job_id in self._exporters:
            raise ExporterExistsError(settings.job.job_id)
        exporter = self.factory(settings)
        self._exporters[exporter.job_id] = exporter
        return exporter

    def get(self, job_id: str) -> FFmpegExporter:
        exporter = self._exporters.get(job_id)
        if exporter is None:
            raise ExporterNotFoundError(job_id)
        return exporter

    def remove(self, job_id: str) -> Optional[FFmpegExporter]:
        return self._exporters.pop(job_id, None)

    def __len__(self) -> int:
        return len(self._exporters)

    async def abort_all(self) -> None:
        for exporter in list(self._exporters.values()):
            await exporter.abort()
        self._exporters.clear()


registry = ExporterRegistry()


def get_registry() -> ExporterRegistry:
    return registry


def _status(exporter: FFmpegExporter) -> ExporterStatusResponse:
    return ExporterStatusResponse(
        job_id=exporter.job_id,
        name=exporter.settings.name,
        state=exporter.state.value,
        frames_pushed=exporter.stream.pushed,
        output_path=str(exporter.settings.output_path),
    )


@router.get("/shards", response_model=WorkerShardResponse)
async def get_worker_shard(
    total_frames: int = Query(alias="totalFrames", ge=0),
    worker_id: int = Query(alias="workerId"),
    num_workers: int = Query(alias="numWorkers"),
) -> WorkerShardResponse:
    """Frame range [startFrame, endFrame) owned by one worker."""
    shard = plan_worker_shard(total_frames, worker_id, num_workers)
    return WorkerShardResponse.from_shard(shard)


@router.post("/jobs", response_model=ExporterStatusResponse, status_code=status.HTTP_201_CREATED)
async def start_export(
    request: ExporterStartRequest,
    registry: ExporterRegistry = Depends(get_registry),
) -> ExporterStatusResponse:
    """Create an export job and launch its video encoder."""
    exporter = registry.create(request.to_settings())
    try:
        await exporter.start()
    except Exception:
        registry.remove(exporter.job_id)
        raise
    return _status(exporter)


@router.get("/jobs/{job_id}", response_model=ExporterStatusResponse)
async def get_export(
    job_id: str,
    registry: ExporterRegistry = Depends(get_registry),
) -> ExporterStatusResponse:
    return _status(registry.get(job_id))


@router.post("/jobs/{job_id}/frames", status_code=status.HTTP_204_NO_CONTENT)
async def push_frame(
    job_id: str,
    request: FrameRequest,
    registry: ExporterRegistry = Depends(get_registry),
) -> Response:
    registry.get(job_id).handle_frame(request.data)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/jobs/{job_id}/end", response_model=ExporterStatusResponse)
async def end_export(
    job_id: str,
    request: EndRequest,
    registry: ExporterRegistry = Depends(get_registry),
) -> ExporterStatusResponse:
    """Stop feeding frames; waits for the encoder or kills it.

    Jobs that end aborted or failed are released along with their scratch files.
    """
    exporter = registry.get(job_id)
    try:
        await exporter.end(request.result)
    finally:
        if exporter.state in DEAD_STATES:
            logger.info(f"[EXPORT] Releasing {exporter.state.value} job {job_id}")
            registry.remove(job_id)
            await exporter.cleanup()
    return _status(exporter)


@router.post("/jobs/{job_id}/audio", response_model=ComposeAudioResponse)
async def compose_audio(
    job_id: str,
    request: ComposeAudioRequest,
    registry: ExporterRegistry = Depends(get_registry),
) -> ComposeAudioResponse:
    exporter = registry.get(job_id)
    frames = [[asset.to_snapshot() for asset in frame] for frame in request.assets]
    audio_file = await exporter.compose_audio(frames, request.start_frame, request.end_frame)
    return ComposeAudioResponse(
        audio_file=str(audio_file) if audio_file else None,
        tracks=len(exporter.audio_tracks),
    )


@router.post("/jobs/{job_id}/merge", response_model=MergeResponse)
async def merge_export(
    job_id: str,
    registry: ExporterRegistry = Depends(get_registry),
) -> MergeResponse:
    """Write the final MP4 and release the job."""
    exporter = registry.get(job_id)
    output_path = await exporter.merge_final()
    registry.remove(job_id)
    await exporter.cleanup()
    return MergeResponse(output_path=str(output_path))


@router.post("/jobs/{job_id}/partial", response_model=PartialRenderResponse)
async def collect_partial(
    job_id: str,
    registry: ExporterRegistry = Depends(get_registry),
) -> PartialRenderResponse:
    """Return this shard's silent video and raw audio (scratch files are kept)."""
    exporter = registry.get(job_id)
    result = await exporter.collect_partial()
    registry.remove(job_id)
    return PartialRenderResponse(
        audio_file=str(result.audio_file) if result.audio_file else None,
        video_file=str(result.video_file),
    )


@router.post("/jobs/{job_id}/kill", status_code=status.HTTP_204_NO_CONTENT)
async def kill_export(
    job_id: str,
    registry: ExporterRegistry = Depends(get_registry),
) -> Response:
    exporter = registry.remove(job_id)
    if exporter is None:
        raise ExporterNotFoundError(job_id)
    await exporter.abort()
    await exporter.cleanup()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
