"""Streaming video encoder: frames in over stdin, silent MP4 out."""

import asyncio
import logging
from typing import Optional

from ffmpeg_exporter.config import Settings, get_settings
from ffmpeg_exporter.exceptions import EncoderProcessError
from ffmpeg_exporter.render.frame_stream import FrameStream
from ffmpeg_exporter.render.models import ExportSettings
from ffmpeg_exporter.utils.ffmpeg import format_command, stderr_tail

logger = logging.getLogger(__name__)


class VideoEncoder:
    """
    Owns one ffmpeg process that encodes an image2pipe stream.

    Completion is a single-fire future: it resolves when ffmpeg exits cleanly
    and fails with EncoderProcessError otherwise (including after ``kill``).
    """

    def __init__(
        self,
        settings: ExportSettings,
        stream: FrameStream,
        app_settings: Optional[Settings] = None,
    ):
        self.app_settings = app_settings or get_settings()
        self.settings = settings.bind(self.app_settings)
        self.stream = stream
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Future] = None
        self._killed = False
        self.frames_written = 0

    def build_command(self) -> list[str]:
        """Build the ffmpeg command line without executing it."""
        s = self.settings
        cmd = [
            self.app_settings.ffmpeg_path,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            # Input image sequence
            "-f", "image2pipe",
            "-framerate", str(s.fps),
            "-i", "pipe:0",
        ]

        # Ready-made audio file; path is relative to the project root
        if s.include_audio and s.audio:
            cmd += [
                "-itsoffset", str(s.audio_offset or 0),
                "-i", s.audio[1:] if s.audio.startswith("/") else s.audio,
            ]

        cmd += [
            "-pix_fmt", self.app_settings.pixel_format,
            "-shortest",
            "-r", str(s.fps),
            "-s", f"{s.width}x{s.height}",
        ]
        if s.fast_start:
            cmd += ["-movflags", "+faststart"]
        cmd.append(str(s.visuals_path))
        return cmd

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        """Spawn ffmpeg and begin draining the frame stream into it."""
        if self._proc is not None:
            raise RuntimeError("Encoder already started")

        cmd = self.build_command()
        logger.info(f"[ENCODER] Starting: {format_command(cmd)}")

        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        self._proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        self._pump_task = asyncio.create_task(self._pump())

    async def _pump(self) -> None:
        proc = self._proc
        assert proc is not None and proc.stdin is not None
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            try:
                async for frame in self.stream:
                    proc.stdin.write(frame)
                    await proc.stdin.drain()
                    self.frames_written += 1
                proc.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                # ffmpeg exited early; its exit code tells why
                pass

            returncode = await proc.wait()
            stderr = await stderr_task
        except asyncio.CancelledError:
            self._reject(EncoderProcessError("Video encoder was cancelled"))
            raise

        if returncode == 0 and not self._killed:
            logger.info(f"[ENCODER] Finished: {self.frames_written} frames -> {self.settings.visuals_path}")
            if not self._done.done():
                self._done.set_result(None)
            return

        tail = stderr_tail(stderr)
        reason = "killed" if self._killed else f"exit code {returncode}"
        logger.error(f"[ENCODER] ffmpeg {reason}: {tail}")
        self._reject(
            EncoderProcessError(
                f"Video encoder {reason}",
                returncode=returncode,
                stderr=tail,
            )
        )

    def _reject(self, error: Exception) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_exception(error)

    async def wait(self) -> None:
        """Wait for the encoder to finish.

        Raises:
            EncoderProcessError: If ffmpeg failed or was killed
        """
        if self._done is None:
            raise RuntimeError("Encoder not started")
        await asyncio.shield(self._done)

    def kill(self) -> None:
        """SIGKILL the encoder process. Safe to call repeatedly."""
        self._killed = True
        if self._proc is None or self._proc.returncode is not None:
            return
        logger.info("[ENCODER] Killing ffmpeg")
        try:
            self._proc.kill()
        except ProcessLookupError:
            pass
        # Unblock the pump if it is still waiting for frames
        if not self.stream.ended:
            self.stream.end()
