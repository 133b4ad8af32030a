"""
Frame Accumulator
=================

Reassembles fixed-size frames from an arbitrarily chunked byte stream.

The decoder writes raw RGBA frames back to back with no header, and the
pipe delivers them in chunks that ignore frame boundaries. FrameAccumulator
holds the leftover bytes between chunks and carves whole frames off the
front, encoding each as base64 text.

Design Rules:
    - Owned by exactly one extraction run, never shared
    - Collection never grows beyond `limit`
    - After each carve-out pass the pending buffer holds less than one
      frame (surplus bytes past a full collection are dropped)
    - Frames are appended in the order their bytes arrived
"""

import base64
import logging
from typing import List


logger = logging.getLogger(__name__)


def encode_frame(frame_bytes: bytes) -> str:
    """Encode one raw frame as base64 text."""
    return base64.b64encode(frame_bytes).decode("ascii")


class FrameAccumulator:
    """
    Pending-bytes buffer plus bounded frame collection.

    Attributes:
        frame_size: Bytes per frame
        limit: Maximum number of frames to collect

    Example:
        acc = FrameAccumulator(frame_size=921_600, limit=3)
        added = acc.feed(chunk)
        if acc.is_full:
            frames = acc.frames
    """

    def __init__(self, frame_size: int, limit: int) -> None:
        """
        Initialize accumulator.

        Args:
            frame_size: Bytes per frame. Must be >= 1.
            limit: Frames to collect before reporting full. Must be >= 1.
        """
        if frame_size < 1:
            raise ValueError("frame_size must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")

        self._frame_size = frame_size
        self._limit = limit
        self._pending = bytearray()
        self._frames: List[str] = []
        self._bytes_received: int = 0

    @property
    def frame_size(self) -> int:
        return self._frame_size

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def pending_bytes(self) -> int:
        """Bytes received but not yet part of a complete frame."""
        return len(self._pending)

    @property
    def bytes_received(self) -> int:
        """Total bytes fed so far."""
        return self._bytes_received

    @property
    def frames(self) -> List[str]:
        """Copy of the collected frames, in capture order."""
        return list(self._frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def is_full(self) -> bool:
        """Whether `limit` frames have been collected."""
        return len(self._frames) >= self._limit

    def feed(self, chunk: bytes) -> int:
        """
        Append a chunk and carve out every complete frame.

        Args:
            chunk: Raw bytes from the decoder

        Returns:
            Number of frames added by this call
        """
        self._bytes_received += len(chunk)
        self._pending.extend(chunk)

        added = 0
        while len(self._pending) >= self._frame_size and not self.is_full:
            frame_bytes = bytes(self._pending[: self._frame_size])
            del self._pending[: self._frame_size]
            self._frames.append(encode_frame(frame_bytes))
            added += 1

        if self.is_full and self._pending:
            # Bytes past the last requested frame are never used
            logger.debug(f"Discarding {len(self._pending)} surplus bytes")
            self._pending.clear()

        return added

    def clear(self) -> None:
        """Drop pending bytes and collected frames."""
        self._pending.clear()
        self._frames.clear()
