"""
Audio mixing module using FFmpeg.

This module handles:
- Summing N prepared asset tracks into one track
- Extending the mix to the longest input (shorter tracks end in silence)
- Loudness compensation (divide by N so the sum cannot clip)
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from ffmpeg_exporter.config import Settings, get_settings
from ffmpeg_exporter.utils.ffmpeg import run_ffmpeg

logger = logging.getLogger(__name__)


class AudioMixer:
    """
    FFmpeg-based audio mixer.

    The mix is symmetric in its inputs, so the result does not depend on the
    order of ``track_paths``.
    """

    def __init__(self, app_settings: Optional[Settings] = None):
        self.app_settings = app_settings or get_settings()
        self.ffmpeg_path = self.app_settings.ffmpeg_path

    def build_mix_filter(self, num_inputs: int) -> str:
        """Build the filter_complex graph for ``num_inputs`` tracks."""
        if num_inputs < 1:
            raise ValueError("At least one track is required to mix")
        mix_input_str = "".join(f"[{i}:a]" for i in range(num_inputs))
        return (
            f"{mix_input_str}amix=inputs={num_inputs}:duration=longest:normalize=0,"
            f"volume={1 / num_inputs}[out]"
        )

    def build_mix_command(self, track_paths: Sequence[Path | str], output_path: Path | str) -> list[str]:
        """Build ffmpeg arguments (binary excluded) without executing them."""
        inputs: list[str] = []
        for path in track_paths:
            inputs.extend(["-i", str(path)])

        return [
            *inputs,
            "-filter_complex",
            self.build_mix_filter(len(track_paths)),
            "-map",
            "[out]",
            "-c:a",
            self.app_settings.audio_codec,
            "-ar",
            str(self.app_settings.audio_sample_rate),
            str(output_path),
        ]

    async def mix(self, track_paths: Sequence[Path | str], output_path: Path | str) -> Path:
        """
        Mix prepared tracks into one file.

        Args:
            track_paths: Prepared per-asset tracks (at least one)
            output_path: Mixed output file

        Returns:
            Path to the mixed audio file

        Raises:
            ValueError: If no tracks are given
            FFmpegError: If ffmpeg fails
        """
        logger.info(f"[AUDIO MIX] Mixing {len(track_paths)} tracks -> {output_path}")
        args = self.build_mix_command(track_paths, output_path)
        await run_ffmpeg(args, label="audio mix", ffmpeg_path=self.ffmpeg_path)
        return Path(output_path)

    def build_silence_command(self, output_path: Path | str, duration_s: float) -> list[str]:
        channel_layout = "stereo" if self.app_settings.audio_channels == 2 else "mono"
        return [
            "-f",
            "lavfi",
            "-i",
            f"anullsrc=r={self.app_settings.audio_sample_rate}:cl={channel_layout}:d={duration_s}",
            "-c:a",
            self.app_settings.audio_codec,
            str(output_path),
        ]

    async def generate_silence(self, output_path: Path | str, duration_s: float) -> Path:
        """Generate a silent track in the intermediate format."""
        args = self.build_silence_command(output_path, duration_s)
        await run_ffmpeg(args, label="silence", ffmpeg_path=self.ffmpeg_path)
        return Path(output_path)
