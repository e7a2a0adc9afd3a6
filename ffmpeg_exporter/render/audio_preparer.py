"""
Per-asset audio preparation.

Each eligible MediaAsset is run through ffmpeg once, producing a stereo PCM
WAV in the job's scratch directory that is already trimmed, time-stretched,
delayed and padded to the render window. Assets are independent, so they are
prepared concurrently; one asset failing never affects its siblings.
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Optional, Sequence

from ffmpeg_exporter.config import Settings, get_settings
from ffmpeg_exporter.exceptions import AssetAudioError, FFmpegError
from ffmpeg_exporter.render.audio_filters import build_audio_filter_chain
from ffmpeg_exporter.render.models import ExportSettings, MediaAsset
from ffmpeg_exporter.utils import media_info
from ffmpeg_exporter.utils.ffmpeg import run_ffmpeg

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[/\\\[\]]")


def sanitize_key(key: str) -> str:
    """Make an asset key usable as a file name."""
    return _UNSAFE_KEY_CHARS.sub("-", key)


def is_remote(src: str) -> bool:
    return src.startswith("http://") or src.startswith("https://")


class AudioTrackPreparer:
    """Turns MediaAssets into normalized audio tracks for one job."""

    def __init__(self, settings: ExportSettings, app_settings: Optional[Settings] = None):
        self.app_settings = app_settings or get_settings()
        self.settings = settings.bind(self.app_settings)
        self._procs: set[asyncio.subprocess.Process] = set()

    def resolve_path(self, src: str) -> str:
        """Resolve an asset source to something ffmpeg can open.

        Remote URLs and existing absolute paths pass through; anything else
        (including the renderer's "/clip.mp4" style paths) is relative to the
        public directory next to the output directory.
        """
        if is_remote(src) or (os.path.isabs(src) and os.path.exists(src)):
            return src
        return str(self.settings.public_dir / src.lstrip("/"))

    def output_path_for(self, asset: MediaAsset) -> Path:
        return self.settings.scratch_dir / f"{sanitize_key(asset.key)}.wav"

    async def is_eligible(self, asset: MediaAsset) -> bool:
        """Muted, frozen, reversed and silent assets are skipped."""
        if asset.playback_rate <= 0 or asset.volume <= 0:
            return False
        if asset.type != "audio":
            return await media_info.has_audio_track_async(
                self.resolve_path(asset.src), ffprobe_path=self.app_settings.ffprobe_path
            )
        return True

    def build_command(
        self,
        asset: MediaAsset,
        *,
        sample_rate: int,
        start_frame: int,
        end_frame: int,
    ) -> list[str]:
        """ffmpeg arguments (binary excluded) that prepare one asset."""
        audio_filters = build_audio_filter_chain(
            asset,
            sample_rate=sample_rate,
            start_frame=start_frame,
            end_frame=end_frame,
            fps=self.settings.fps,
        )
        return [
            "-i", self.resolve_path(asset.src),
            "-vn",
            "-af", audio_filters,
            "-ac", str(self.app_settings.audio_channels),
            "-c:a", self.app_settings.audio_codec,
            "-ar", str(self.app_settings.audio_sample_rate),
            str(self.output_path_for(asset)),
        ]

    async def prepare(self, asset: MediaAsset, start_frame: int, end_frame: int) -> Optional[Path]:
        """
        Prepare one asset's audio track.

        Returns:
            Path of the written WAV, or None if the asset has no usable audio

        Raises:
            AssetAudioError: If probing or ffmpeg fails for this asset
        """
        if not await self.is_eligible(asset):
            logger.info(f"[AUDIO PREP] Skipping asset '{asset.key}' (muted, paused or no audio stream)")
            return None

        resolved = self.resolve_path(asset.src)
        try:
            sample_rate = await media_info.get_sample_rate_async(
                resolved, ffprobe_path=self.app_settings.ffprobe_path
            )
        except RuntimeError as e:
            raise AssetAudioError(asset.key, str(e)) from e

        try:
            args = self.build_command(
                asset,
                sample_rate=sample_rate,
                start_frame=start_frame,
                end_frame=end_frame,
            )
        except ValueError as e:
            raise AssetAudioError(asset.key, str(e)) from e

        try:
            await run_ffmpeg(
                args,
                label=f"audio:{asset.key}",
                ffmpeg_path=self.app_settings.ffmpeg_path,
                on_spawn=self._procs.add,
            )
        except FFmpegError as e:
            logger.error(f"[AUDIO PREP] Error processing audio for asset key: {asset.key}")
            raise AssetAudioError(asset.key, e.stderr or e.message) from e
        finally:
            for proc in [p for p in self._procs if p.returncode is not None]:
                self._procs.discard(proc)

        output_path = self.output_path_for(asset)
        logger.info(f"[AUDIO PREP] Asset '{asset.key}' -> {output_path.name}")
        return output_path

    async def prepare_all(
        self,
        assets: Sequence[MediaAsset],
        start_frame: int,
        end_frame: int,
    ) -> list[Path]:
        """
        Prepare every asset concurrently and wait for all of them.

        Asset-level failures are logged and dropped.

        Returns:
            Prepared track paths in asset order
        """
        semaphore = asyncio.Semaphore(max(1, self.app_settings.max_parallel_audio_jobs))

        async def _bounded(asset: MediaAsset) -> Optional[Path]:
            async with semaphore:
                return await self.prepare(asset, start_frame, end_frame)

        results = await asyncio.gather(
            *(_bounded(asset) for asset in assets),
            return_exceptions=True,
        )

        paths: list[Path] = []
        for asset, result in zip(assets, results):
            if isinstance(result, AssetAudioError):
                logger.warning(f"[AUDIO PREP] {result.message}; continuing without it")
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                paths.append(result)

        logger.info(f"[AUDIO PREP] Prepared {len(paths)}/{len(assets)} assets")
        return paths

    def kill_all(self) -> None:
        """Best-effort SIGKILL of in-flight preparation processes."""
        for proc in list(self._procs):
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
        self._procs.clear()
