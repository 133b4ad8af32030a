"""
Decoder Capability
==================

External decoder abstraction for the extraction pipeline.

This module provides the Decoder protocol and the FFmpegDecoder
implementation. A decoder is started for one (video, window, geometry)
and returns a DecodeSession, which is:

    - an async source of events: DecodeChunk*, then DecodeEnd or DecodeError
    - a control handle: stop() is best-effort, non-blocking and idempotent

The pipeline never talks to a subprocess directly, so tests substitute a
scripted session that emits synthetic chunks and terminal signals.

FFmpeg invocation (built with ffmpeg-python):

    ffmpeg -ss <start_seconds> -i <video>
           -filter_complex [0]fps=<fps>[s0];[s0]scale=<w>:<h>[s1] -map [s1]
           -f rawvideo -pix_fmt rgba -t <duration_seconds> pipe:
           -nostdin -loglevel error

Design Rules:
    - One session per extraction run, owned exclusively by that run
    - Process-level failures become DecodeError events, never exceptions
    - The killed process is still reaped by draining its events
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, List, Optional, Protocol, Union

import ffmpeg

from framecast.models.geometry import PIXEL_FORMAT, DecodeWindow, FrameGeometry


logger = logging.getLogger(__name__)

# Bytes of stderr kept in error messages
_STDERR_TAIL = 500


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True, slots=True)
class DecodeChunk:
    """Raw bytes read from the decoder's output stream."""

    data: bytes

    def __repr__(self) -> str:
        return f"DecodeChunk({len(self.data)} bytes)"


@dataclass(frozen=True, slots=True)
class DecodeEnd:
    """Decoder finished normally and its output stream is exhausted."""

    returncode: int = 0


@dataclass(frozen=True, slots=True)
class DecodeError:
    """Decoder failed at the process level."""

    message: str
    returncode: Optional[int] = None


DecodeEvent = Union[DecodeChunk, DecodeEnd, DecodeError]


# =============================================================================
# Protocols
# =============================================================================

class DecodeSession(Protocol):
    """
    One running decode.

    `events()` must be iterated at most once. `stop()` may be called at
    any time, any number of times, including before iteration starts.
    """

    def events(self) -> AsyncIterator[DecodeEvent]:
        ...

    def stop(self) -> None:
        ...


class Decoder(Protocol):
    """
    Protocol for decoder backends.

    Implemented by:
        - FFmpegDecoder (production)
        - scripted fakes (tests)
    """

    def start(
        self,
        video_path: Path,
        window: DecodeWindow,
        geometry: FrameGeometry,
    ) -> DecodeSession:
        ...


# =============================================================================
# FFmpeg implementation
# =============================================================================

def build_ffmpeg_args(
    video_path: Path,
    window: DecodeWindow,
    geometry: FrameGeometry,
    binary: str = "ffmpeg",
) -> List[str]:
    """
    Build the ffmpeg command line for a raw RGBA decode.

    Args:
        video_path: Source media
        window: Seek position and duration
        geometry: Output size and frame rate
        binary: ffmpeg executable

    Returns:
        Full argv, executable first
    """
    stream = ffmpeg.input(str(video_path), ss=window.start_seconds)
    stream = stream.filter("fps", fps=geometry.frame_rate)
    stream = stream.filter("scale", geometry.width, geometry.height)
    stream = stream.output(
        "pipe:",
        t=window.duration_seconds,
        format="rawvideo",
        pix_fmt=PIXEL_FORMAT,
    )
    stream = stream.global_args("-nostdin", "-loglevel", "error")
    return stream.compile(cmd=binary)


class FFmpegDecodeSession:
    """
    ffmpeg subprocess streaming raw frames to stdout.

    The process is spawned lazily when `events()` is first iterated.
    stderr is collected concurrently so a chatty decoder cannot block
    on a full pipe.
    """

    def __init__(self, args: List[str], read_chunk_size: int = 65536) -> None:
        self.args = args
        self.read_chunk_size = read_chunk_size

        self._process: Optional[asyncio.subprocess.Process] = None
        self._stop_requested: bool = False

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    async def events(self) -> AsyncIterator[DecodeEvent]:
        """Spawn ffmpeg and yield its output as decode events."""
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            yield DecodeError(f"Failed to start ffmpeg: {e}")
            return

        logger.debug(f"ffmpeg started (pid={self._process.pid})")
        if self._stop_requested:
            self._kill()

        stderr_task = asyncio.create_task(self._process.stderr.read())
        try:
            while True:
                try:
                    chunk = await self._process.stdout.read(self.read_chunk_size)
                except OSError as e:
                    self._kill()
                    yield DecodeError(f"Failed to read ffmpeg output: {e}")
                    return
                if not chunk:
                    break
                yield DecodeChunk(chunk)

            returncode = await self._process.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()

            if returncode == 0:
                yield DecodeEnd(returncode=0)
            else:
                yield DecodeError(
                    f"ffmpeg exited with code {returncode}: {stderr[-_STDERR_TAIL:]}",
                    returncode=returncode,
                )
        finally:
            if self._process.returncode is None:
                self._kill()
                await self._process.wait()
            if not stderr_task.done():
                stderr_task.cancel()

    def stop(self) -> None:
        """Kill ffmpeg if it is still running. Safe to call repeatedly."""
        if self._stop_requested:
            return
        self._stop_requested = True
        if self._process is not None:
            self._kill()

    def _kill(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            logger.debug(f"ffmpeg (pid={self._process.pid}) already exited")


class FFmpegDecoder:
    """
    Decoder backed by an ffmpeg subprocess.

    Attributes:
        binary: ffmpeg executable name or path
        read_chunk_size: Max bytes per stdout read
    """

    def __init__(self, binary: str = "ffmpeg", read_chunk_size: int = 65536) -> None:
        if read_chunk_size < 1:
            raise ValueError("read_chunk_size must be >= 1")

        self.binary = binary
        self.read_chunk_size = read_chunk_size

        logger.info(f"FFmpegDecoder initialized: binary={binary}")

    def start(
        self,
        video_path: Path,
        window: DecodeWindow,
        geometry: FrameGeometry,
    ) -> FFmpegDecodeSession:
        args = build_ffmpeg_args(video_path, window, geometry, binary=self.binary)
        logger.debug(f"ffmpeg command: {' '.join(args)}")
        return FFmpegDecodeSession(args, read_chunk_size=self.read_chunk_size)
