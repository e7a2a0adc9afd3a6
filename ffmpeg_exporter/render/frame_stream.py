"""Ordered frame conduit between the renderer and the encoder's stdin."""

import asyncio
import base64
import binascii
from typing import AsyncIterator, Optional

from ffmpeg_exporter.exceptions import InvalidExporterStateError, InvalidFrameError


def decode_data_url(data: str) -> bytes:
    """Decode a ``data:image/...;base64,`` URL (or bare base64) to bytes.

    Raises:
        InvalidFrameError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(data[data.find(",") + 1:], validate=True)
    except binascii.Error as e:
        raise InvalidFrameError(f"Frame data is not valid base64: {e}") from e


class FrameStream:
    """
    Unbounded FIFO of encoded frame images.

    ``push`` never blocks the producer; the consumer drains at its own pace
    through ``async for``. Pushing ``None`` marks the end of the stream.
    """

    def __init__(self):
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._ended = False
        self._pushed = 0

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def pushed(self) -> int:
        """Number of frames pushed so far (end marker excluded)."""
        return self._pushed

    @property
    def pending(self) -> int:
        """Items buffered and not yet consumed."""
        return self._queue.qsize()

    def push(self, frame: Optional[bytes]) -> None:
        if self._ended:
            if frame is None:
                return
            raise InvalidExporterStateError("Cannot push a frame after the end of the stream")
        if frame is None:
            self._ended = True
        else:
            self._pushed += 1
        self._queue.put_nowait(frame)

    def end(self) -> None:
        self.push(None)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame
