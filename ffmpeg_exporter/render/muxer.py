"""
Final muxing and shard concatenation.

A single render merges its mixed audio with the silent video exactly once.
Distributed renders concatenate every shard's silent video and every shard's
raw audio first, then merge the two results once; merging per shard and
concatenating afterwards accumulates audio drift at every boundary.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional, Sequence

from ffmpeg_exporter.config import Settings, get_settings
from ffmpeg_exporter.render.models import PartialRenderResult
from ffmpeg_exporter.utils.ffmpeg import run_ffmpeg

logger = logging.getLogger(__name__)


def build_merge_command(
    audio_path: Path | str,
    video_path: Path | str,
    output_path: Path | str,
    app_settings: Optional[Settings] = None,
) -> list[str]:
    """ffmpeg arguments (binary excluded) combining video and audio.

    The video stream is copied; audio/video length was already reconciled
    by the encoder, so no trimming happens here.
    """
    settings = app_settings or get_settings()
    return [
        "-i", str(video_path),
        "-i", str(audio_path),
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-c:v", "copy",
        "-c:a", "aac",
        "-b:a", settings.audio_bitrate,
        str(output_path),
    ]


async def merge_audio_with_video(
    audio_path: Path | str,
    video_path: Path | str,
    output_path: Path | str,
    app_settings: Optional[Settings] = None,
) -> Path:
    """Combine the mixed audio track and the silent video into one MP4."""
    settings = app_settings or get_settings()
    args = build_merge_command(audio_path, video_path, output_path, settings)
    logger.info(f"[MUX] Merging {audio_path} + {video_path} -> {output_path}")
    await run_ffmpeg(args, label="merge", ffmpeg_path=settings.ffmpeg_path)
    return Path(output_path)


async def copy_video(video_path: Path | str, output_path: Path | str) -> Path:
    """Copy the silent video to the output path (no re-encode)."""
    logger.info(f"[MUX] No audio; copying {video_path} -> {output_path}")
    await asyncio.to_thread(shutil.copyfile, video_path, output_path)
    return Path(output_path)


def write_concat_list(inputs: Sequence[Path | str], list_path: Path) -> Path:
    """Write an ffconcat list file for the concat demuxer."""
    lines = ["ffconcat version 1.0"]
    for path in inputs:
        # The concat demuxer needs single quotes escaped
        escaped = str(Path(path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


async def concatenate_media(
    inputs: Sequence[Path | str],
    output_path: Path | str,
    *,
    work_dir: Path | str,
    app_settings: Optional[Settings] = None,
) -> Path:
    """
    Concatenate identically-encoded files with the concat demuxer (-c copy).

    Raises:
        ValueError: If no inputs are given
        FileNotFoundError: If an input is missing
        FFmpegError: If ffmpeg fails
    """
    settings = app_settings or get_settings()
    if not inputs:
        raise ValueError("concat: no input files provided")
    missing = [str(p) for p in inputs if not Path(p).exists()]
    if missing:
        raise FileNotFoundError(f"concat: missing inputs: {', '.join(missing)}")

    output_path = Path(output_path)
    if len(inputs) == 1:
        await asyncio.to_thread(shutil.copyfile, inputs[0], output_path)
        return output_path

    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)
    list_path = write_concat_list(inputs, work_dir / f"{output_path.stem}.concat.txt")

    logger.info(f"[CONCAT] {len(inputs)} files -> {output_path}")
    await run_ffmpeg(
        ["-f", "concat", "-safe", "0", "-i", str(list_path), "-c", "copy", str(output_path)],
        label="concat",
        ffmpeg_path=settings.ffmpeg_path,
    )
    return output_path


async def merge_partial_renders(
    results: Sequence[PartialRenderResult],
    output_path: Path | str,
    *,
    work_dir: Path | str,
    app_settings: Optional[Settings] = None,
) -> Path:
    """
    Join shard renders (in worker order) into the final MP4.

    Videos and audio files are concatenated separately and merged once. If no
    shard produced audio the concatenated video is the output.
    """
    if not results:
        raise ValueError("No partial renders to merge")

    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    video = await concatenate_media(
        [r.video_file for r in results],
        work_dir / "visuals.mp4",
        work_dir=work_dir,
        app_settings=app_settings,
    )

    audio_files = [r.audio_file for r in results if r.audio_file is not None]
    if not audio_files:
        return await copy_video(video, output_path)

    if len(audio_files) != len(results):
        logger.warning(
            f"[CONCAT] Only {len(audio_files)}/{len(results)} shards have audio; "
            "audio will not line up with shards that lack it"
        )

    audio = await concatenate_media(
        audio_files,
        work_dir / "audio.wav",
        work_dir=work_dir,
        app_settings=app_settings,
    )
    return await merge_audio_with_video(audio, video, output_path, app_settings)
