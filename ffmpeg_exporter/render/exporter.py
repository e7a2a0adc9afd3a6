"""
Export coordinator.

This module sequences one export job:
1. Start the streaming video encoder (frames arrive while it runs)
2. Resolve asset placements from per-frame snapshots
3. Prepare each asset's audio track (concurrently)
4. Mix the tracks
5. Merge audio and video into the final MP4 (or copy the video)

For distributed renders step 5 is replaced by ``collect_partial``, which
hands back this shard's silent video and raw audio for later concatenation.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Optional, Sequence

from ffmpeg_exporter.config import Settings, get_settings
from ffmpeg_exporter.exceptions import ExporterError, InvalidExporterStateError
from ffmpeg_exporter.render.asset_timeline import resolve_asset_placements
from ffmpeg_exporter.render.audio_mixer import AudioMixer
from ffmpeg_exporter.render.audio_preparer import AudioTrackPreparer
from ffmpeg_exporter.render.frame_stream import FrameStream, decode_data_url
from ffmpeg_exporter.render.models import (
    ExporterState,
    ExportSettings,
    FrameSnapshot,
    PartialRenderResult,
    RenderResult,
)
from ffmpeg_exporter.render.muxer import copy_video, merge_audio_with_video
from ffmpeg_exporter.render.video_encoder import VideoEncoder

logger = logging.getLogger(__name__)

# A job in one of these states can make no further progress
DEAD_STATES = (ExporterState.ABORTED, ExporterState.FAILED)


class FFmpegExporter:
    """
    Owns the encoder process and scratch directory of one export job.

    State machine: idle -> running -> {completed, aborted, failed}.
    """

    def __init__(
        self,
        settings: ExportSettings,
        app_settings: Optional[Settings] = None,
        *,
        encoder_factory: Callable[..., VideoEncoder] = VideoEncoder,
    ):
        self.app_settings = app_settings or get_settings()
        self.settings = settings.bind(self.app_settings)
        self.state = ExporterState.IDLE
        self.stream = FrameStream()
        self.encoder = encoder_factory(self.settings, self.stream, self.app_settings)
        self.preparer = AudioTrackPreparer(self.settings, self.app_settings)
        self.mixer = AudioMixer(self.app_settings)

        self.audio_tracks: list[Path] = []
        self.mixed_audio: Optional[Path] = None
        self._window: Optional[tuple[int, int]] = None
        self._progress_callback: Optional[Callable[[str], None]] = None
        self._aborting = False

    @property
    def job_id(self) -> str:
        return self.settings.job.job_id

    def set_progress_callback(self, callback: Callable[[str], None]) -> None:
        """Set callback for lifecycle stage updates."""
        self._progress_callback = callback

    def _update_progress(self, stage: str) -> None:
        if self._progress_callback:
            self._progress_callback(stage)

    def _mark_aborted(self) -> None:
        if self.state == ExporterState.ABORTED:
            return
        self.state = ExporterState.ABORTED
        self._update_progress("aborted")

    def _require(self, *states: ExporterState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidExporterStateError(
                f"Exporter is {self.state.value}; expected one of: {allowed}"
            )

    # ========================================================================
    # Video
    # ========================================================================

    async def start(self) -> None:
        """Create the output and scratch directories and launch the encoder."""
        self._require(ExporterState.IDLE)
        os.makedirs(self.settings.output_dir, exist_ok=True)
        os.makedirs(self.settings.scratch_dir, exist_ok=True)

        try:
            await self.encoder.start()
        except Exception:
            self.state = ExporterState.FAILED
            self._update_progress("failed")
            raise

        self.state = ExporterState.RUNNING
        logger.info(f"[EXPORT] Job {self.settings.name} ({self.job_id}) started")
        self._update_progress("started")

    def feed(self, frame: bytes) -> None:
        """Queue one encoded frame image; never blocks."""
        self._require(ExporterState.RUNNING)
        self.stream.push(frame)

    def handle_frame(self, data: str) -> None:
        """Queue one frame given as a base64 data URL."""
        self.feed(decode_data_url(data))

    def finish_frames(self) -> None:
        """Signal end of stream so the encoder can finalize."""
        if not self.stream.ended:
            self.stream.end()

    async def end(self, result: RenderResult = RenderResult.SUCCESS) -> None:
        """
        Finish the video stage.

        On success waits for the encoder; any encoder error marks the job
        failed and is re-raised, unless abort() killed the encoder meanwhile,
        in which case the job ends aborted. Any other result kills the
        encoder and swallows the resulting error.
        """
        if self.state == ExporterState.ABORTED:
            return
        self._require(ExporterState.RUNNING)
        self.finish_frames()

        if result == RenderResult.SUCCESS:
            try:
                await self.encoder.wait()
            except ExporterError as e:
                if self._aborting:
                    # abort() killed the encoder while we were waiting
                    logger.info(f"[EXPORT] Job {self.settings.name} aborted while finishing: {e.message}")
                    self._mark_aborted()
                    return
                self.state = ExporterState.FAILED
                logger.error(f"[EXPORT] Job {self.settings.name} failed: {e.message}")
                self._update_progress("failed")
                raise
            self.state = ExporterState.COMPLETED
            self._update_progress("completed")
            return

        logger.info(f"[EXPORT] Render ended with {result.value}; stopping encoder")
        self.encoder.kill()
        self.preparer.kill_all()
        try:
            await self.encoder.wait()
        except ExporterError as e:
            logger.warning(f"[EXPORT] Encoder stopped: {e.message}")
        self._mark_aborted()

    async def abort(self) -> None:
        """Kill the encoder and in-flight audio processes. Never raises."""
        if self.state in (ExporterState.ABORTED, ExporterState.FAILED):
            return
        self._aborting = True
        try:
            self.encoder.kill()
            self.preparer.kill_all()
            if self.state == ExporterState.RUNNING:
                await self.encoder.wait()
        except Exception as e:
            logger.info(f"[EXPORT] Abort of {self.settings.name}: {e}")
        if self.state != ExporterState.COMPLETED:
            self._mark_aborted()

    # ========================================================================
    # Audio
    # ========================================================================

    async def compose_audio(
        self,
        frames: Sequence[FrameSnapshot],
        start_frame: int,
        end_frame: int,
    ) -> Optional[Path]:
        """
        Build the mixed audio track for the frames of this render.

        Args:
            frames: Asset snapshots of every frame in [start_frame, end_frame)
            start_frame: First frame of the render window
            end_frame: End frame of the render window

        Returns:
            Path of the mixed track, or None when there is no audio
        """
        self._require(ExporterState.RUNNING, ExporterState.COMPLETED)
        self._window = (start_frame, end_frame)
        if not self.settings.include_audio:
            return None

        assets = resolve_asset_placements(frames)
        self.audio_tracks = await self.preparer.prepare_all(assets, start_frame, end_frame)

        if self.audio_tracks:
            self.mixed_audio = await self.mixer.mix(self.audio_tracks, self.settings.mixed_audio_path)
        self._update_progress("audio_composed")
        return self.mixed_audio

    # ========================================================================
    # Output
    # ========================================================================

    async def merge_final(self) -> Path:
        """Write ``{output_dir}/{name}.mp4``."""
        self._require(ExporterState.COMPLETED)
        output_path = self.settings.output_path
        if self.mixed_audio is not None:
            await merge_audio_with_video(
                self.mixed_audio,
                self.settings.visuals_path,
                output_path,
                self.app_settings,
            )
        else:
            await copy_video(self.settings.visuals_path, output_path)
        self._update_progress("merged")
        return output_path

    async def collect_partial(self) -> PartialRenderResult:
        """
        Return this shard's silent video and raw audio without merging them.

        A shard that has no audio of its own gets a silent track spanning its
        frame window, so concatenated shard audio stays aligned with video.
        """
        self._require(ExporterState.COMPLETED)
        audio_file = self.mixed_audio
        if audio_file is None and self.settings.include_audio and self._window is not None:
            start_frame, end_frame = self._window
            duration_s = (end_frame - start_frame) / self.settings.fps
            audio_file = await self.mixer.generate_silence(self.settings.mixed_audio_path, duration_s)
        return PartialRenderResult(video_file=self.settings.visuals_path, audio_file=audio_file)

    async def cleanup(self) -> None:
        """Remove the job's scratch directory."""
        await asyncio.to_thread(shutil.rmtree, self.settings.scratch_dir, True)
