"""Reconstruct asset placements from per-frame asset snapshots."""

import logging
from dataclasses import dataclass
from typing import Iterable

from ffmpeg_exporter.render.models import AssetSnapshot, FrameSnapshot, MediaAsset

logger = logging.getLogger(__name__)


@dataclass
class _Bounds:
    first: AssetSnapshot
    start_frame: int
    end_frame: int
    first_time: float
    last_time: float


def resolve_asset_placements(frames: Iterable[FrameSnapshot]) -> list[MediaAsset]:
    """
    Fold frame snapshots into one MediaAsset per asset key.

    Frames are processed in order; the index of a frame in ``frames`` is its
    frame number relative to the rendered range. The first sighting of a key
    fixes ``start_in_video``, ``trim_left_in_seconds`` and the asset's
    source, rate and volume; later sightings only move the end bounds.

    Args:
        frames: Asset snapshots per frame, in frame order

    Returns:
        MediaAssets in order of first appearance
    """
    bounds: dict[str, _Bounds] = {}

    for frame_index, snapshot in enumerate(frames):
        for asset in snapshot:
            entry = bounds.get(asset.key)
            if entry is None:
                bounds[asset.key] = _Bounds(
                    first=asset,
                    start_frame=frame_index,
                    end_frame=frame_index,
                    first_time=asset.current_time,
                    last_time=asset.current_time,
                )
            else:
                entry.end_frame = frame_index
                entry.last_time = asset.current_time

    assets = [_to_media_asset(entry) for entry in bounds.values()]
    logger.debug(f"[ASSETS] Resolved {len(assets)} assets")
    return assets


def _to_media_asset(entry: _Bounds) -> MediaAsset:
    duration_in_seconds = entry.last_time - entry.first_time
    if duration_in_seconds < 0:
        # Backward seek/loop; kept unclamped
        logger.warning(
            f"[ASSETS] Asset '{entry.first.key}' moved backwards in time "
            f"({entry.first_time}s -> {entry.last_time}s); duration_in_seconds={duration_in_seconds}"
        )

    return MediaAsset(
        key=entry.first.key,
        src=entry.first.src,
        type=entry.first.type,
        start_in_video=entry.start_frame,
        end_in_video=entry.end_frame,
        duration=entry.end_frame - entry.start_frame + 1,
        duration_in_seconds=duration_in_seconds,
        playback_rate=entry.first.playback_rate,
        volume=entry.first.volume,
        trim_left_in_seconds=entry.first_time,
    )
