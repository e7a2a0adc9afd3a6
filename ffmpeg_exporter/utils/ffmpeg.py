"""Async helpers for running ffmpeg as a child process."""

import asyncio
import logging
from typing import Callable, Optional, Sequence

from ffmpeg_exporter.config import get_settings
from ffmpeg_exporter.exceptions import FFmpegError

logger = logging.getLogger(__name__)

# Number of stderr lines kept on failure
STDERR_TAIL_LINES = 50


def format_command(cmd: Sequence[str]) -> str:
    """Render a command line for logs, quoting arguments with spaces."""
    return " ".join(a if " " not in a else f"'{a}'" for a in cmd)


def stderr_tail(stderr: bytes | str | None, lines: int = STDERR_TAIL_LINES) -> str:
    if not stderr:
        return ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return "\n".join(stderr.splitlines()[-lines:])


def build_ffmpeg_command(args: Sequence[str], ffmpeg_path: str | None = None) -> list[str]:
    """Prefix arguments with the ffmpeg binary and quiet, non-interactive flags."""
    binary = ffmpeg_path or get_settings().ffmpeg_path
    return [binary, "-hide_banner", "-loglevel", "error", "-nostats", "-y", *args]


async def run_ffmpeg(
    args: Sequence[str],
    *,
    label: str = "ffmpeg",
    ffmpeg_path: str | None = None,
    on_spawn: Optional[Callable[[asyncio.subprocess.Process], None]] = None,
) -> None:
    """Run ffmpeg to completion, raising FFmpegError on a non-zero exit.

    Args:
        args: Arguments after the binary (inputs, filters, output)
        label: Short tag used in log lines
        ffmpeg_path: Override for the configured ffmpeg binary
        on_spawn: Called with the process right after it starts, so callers
            can track it for cancellation

    Raises:
        FFmpegError: If ffmpeg exits with a non-zero status
    """
    cmd = build_ffmpeg_command(args, ffmpeg_path)
    logger.debug(f"[{label}] {format_command(cmd)}")

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    if on_spawn is not None:
        on_spawn(proc)
    _, stderr = await proc.communicate()

    if proc.returncode != 0:
        tail = stderr_tail(stderr)
        for line in tail.splitlines():
            logger.error(f"[{label}] ffmpeg: {line}")
        raise FFmpegError(
            f"{label} failed with exit code {proc.returncode}",
            returncode=proc.returncode,
            stderr=tail,
        )
