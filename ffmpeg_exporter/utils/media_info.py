"""Media file information utilities using FFprobe."""

import asyncio
import json
import subprocess
from typing import Optional

from ffmpeg_exporter.config import get_settings


def _run_ffprobe(file_path: str, *args, ffprobe_path: Optional[str] = None) -> dict:
    """Run ffprobe and return parsed JSON."""
    cmd = [
        ffprobe_path or get_settings().ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed for {file_path}: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def has_audio_track(file_path: str, ffprobe_path: Optional[str] = None) -> bool:
    """
    Check if media file has an audio track.

    Args:
        file_path: Path or URL of the media file
        ffprobe_path: ffprobe binary; defaults to the configured one

    Returns:
        True if audio track exists, False otherwise (including probe failure)
    """
    try:
        data = _run_ffprobe(file_path, "-show_streams", "-select_streams", "a", ffprobe_path=ffprobe_path)
        return len(data.get("streams", [])) > 0
    except RuntimeError:
        return False


def get_audio_info(file_path: str, ffprobe_path: Optional[str] = None) -> Optional[dict]:
    """
    Get audio stream information.

    Args:
        file_path: Path or URL of the media file

    Returns:
        Dictionary with codec, sample_rate, channels, or None if no audio
    """
    try:
        data = _run_ffprobe(file_path, "-show_streams", "-select_streams", "a", ffprobe_path=ffprobe_path)
    except RuntimeError:
        return None

    streams = data.get("streams", [])
    if not streams:
        return None

    stream = streams[0]
    return {
        "codec": stream.get("codec_name"),
        "sample_rate": int(stream.get("sample_rate", 0)) or None,
        "channels": stream.get("channels"),
    }


def get_sample_rate(file_path: str, ffprobe_path: Optional[str] = None) -> int:
    """
    Get the sample rate of the first audio stream.

    Raises:
        RuntimeError: If ffprobe fails or the file has no audio stream
    """
    info = get_audio_info(file_path, ffprobe_path)
    if info is None or info["sample_rate"] is None:
        raise RuntimeError(f"No audio stream found in: {file_path}")
    return info["sample_rate"]


async def has_audio_track_async(file_path: str, ffprobe_path: Optional[str] = None) -> bool:
    return await asyncio.to_thread(has_audio_track, file_path, ffprobe_path)


async def get_sample_rate_async(file_path: str, ffprobe_path: Optional[str] = None) -> int:
    return await asyncio.to_thread(get_sample_rate, file_path, ffprobe_path)
