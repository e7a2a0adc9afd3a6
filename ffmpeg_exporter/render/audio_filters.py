"""
Audio filter chain construction for one asset.

The chain applied while extracting an asset's audio is, in order:
1. atempo stages (time-stretch to the playback rate)
2. atrim (source window, in post-tempo time)
3. apad (silence after the asset, so every track spans the render window)
4. adelay (silence before the asset, aligning it to its first frame)
5. volume
"""

import math

from ffmpeg_exporter.render.models import MediaAsset

# Valid range of a single atempo stage
ATEMPO_MIN = 0.5
ATEMPO_MAX = 100.0


def build_atempo_filters(playback_rate: float) -> list[str]:
    """
    Split a playback rate into atempo stages that each lie in [0.5, 100].

    Examples:
        250  -> ["atempo=100.0", "atempo=2.5"]
        0.2  -> ["atempo=0.5", "atempo=0.5", "atempo=0.8"]
        1.0  -> []

    Raises:
        ValueError: If playback_rate is not positive
    """
    if playback_rate <= 0:
        raise ValueError(f"playback_rate must be positive, got {playback_rate}")

    filters: list[str] = []

    # Speed up: chain 100x stages
    rate = playback_rate
    while rate > ATEMPO_MAX:
        filters.append(f"atempo={ATEMPO_MAX}")
        rate /= ATEMPO_MAX
    if rate > 1.0 and not math.isclose(rate, 1.0):
        filters.append(f"atempo={rate}")

    # Slow down: chain 0.5x stages
    rate = playback_rate
    while rate < ATEMPO_MIN:
        filters.append(f"atempo={ATEMPO_MIN}")
        rate *= 2.0
    if rate < 1.0 and not math.isclose(rate, 1.0):
        filters.append(f"atempo={rate}")

    return filters


def compute_trim(
    asset: MediaAsset,
    *,
    start_frame: int,
    end_frame: int,
    fps: float,
) -> tuple[float, float]:
    """Return (start, end) of the atrim window in post-tempo seconds.

    The end is capped by whichever is shorter: the asset's observed duration
    or the render window.
    """
    trim_left = asset.trim_left_in_seconds / asset.playback_rate
    window_seconds = (end_frame - start_frame) / fps
    trim_right = min(
        trim_left + asset.duration_in_seconds,
        trim_left + window_seconds,
    )
    return trim_left, trim_right


def compute_pad_start_ms(asset: MediaAsset, fps: float) -> float:
    return asset.start_in_video / fps * 1000


def compute_pad_end_samples(
    asset: MediaAsset,
    *,
    sample_rate: int,
    start_frame: int,
    end_frame: int,
    fps: float,
) -> int:
    """Samples of silence appended after the asset, at its own sample rate."""
    pad_start_ms = compute_pad_start_ms(asset, fps)
    window_samples = sample_rate * (end_frame - start_frame + 1) / fps
    asset_samples = sample_rate * asset.duration / fps
    delay_samples = sample_rate * pad_start_ms / 1000
    return max(0, int(window_samples - asset_samples - delay_samples))


def build_audio_filter_chain(
    asset: MediaAsset,
    *,
    sample_rate: int,
    start_frame: int,
    end_frame: int,
    fps: float,
) -> str:
    """
    Build the ``-af`` filter graph for one asset.

    Args:
        asset: Consolidated asset placement
        sample_rate: Sample rate of the asset's source audio stream
        start_frame: First frame of the render window
        end_frame: End frame of the render window
        fps: Render frame rate

    Returns:
        Comma-joined filter chain
    """
    trim_left, trim_right = compute_trim(
        asset, start_frame=start_frame, end_frame=end_frame, fps=fps
    )
    pad_start = compute_pad_start_ms(asset, fps)
    pad_end = compute_pad_end_samples(
        asset,
        sample_rate=sample_rate,
        start_frame=start_frame,
        end_frame=end_frame,
        fps=fps,
    )

    filters = [
        *build_atempo_filters(asset.playback_rate),
        f"atrim=start={trim_left}:end={trim_right}",
        f"apad=pad_len={pad_end}",
        f"adelay={pad_start}|{pad_start}|{pad_start}",
        f"volume={asset.volume}",
    ]
    return ",".join(filters)
