"""
Streaming Decode Pipeline
=========================

Drives one decoder session per request and turns its raw byte stream into
an ordered, bounded list of base64 frames.

Per-run state machine:

    IDLE ──start──> RUNNING ──first chunk──> DRAINING
                       │                        │
                       ├── end ────────────────>├──> COMPLETED (natural end,
                       │                        │     possibly under-delivered)
                       │                        ├──> COMPLETED (early: count
                       │                        │     reached, decoder stopped)
                       └── error / watchdog ───>└──> FAILED

Settlement is exactly-once: the first of {count reached, end, error,
watchdog} settles the run's future. Every later event (a straggler error
from the killed decoder, an end racing the soft close, surplus chunks) is
ignored and counted.

Design Rules:
    - One ExtractionRun per request; nothing mutable is shared between runs
    - Events of a run are handled sequentially, in the order emitted
    - Under-delivery is a warning, not an error
    - A failed run never returns partial frames
    - Stopping the decoder is advisory: failures are logged, not raised
"""

import asyncio
import itertools
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Set, Tuple

from framecast.errors import (
    DecodeFailureError,
    DecodeTimeoutError,
    InvalidArgumentError,
)
from framecast.extraction.accumulator import FrameAccumulator
from framecast.extraction.decoder import (
    DecodeChunk,
    DecodeEnd,
    DecodeError,
    DecodeEvent,
    Decoder,
    DecodeSession,
)
from framecast.extraction.metrics import ExtractionMetrics
from framecast.extraction.window import compute_window
from framecast.models.geometry import DecodeWindow, FrameGeometry
from framecast.models.request import ExtractionRequest


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Lifecycle of one extraction run."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    DRAINING = "DRAINING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """
    Successful extraction.

    Attributes:
        frames: Base64 RGBA payloads in capture order
        start_frame: Index of frames[0] in the source
        requested: Number of frames requested
        elapsed_seconds: Wall-clock generation time
    """

    frames: Tuple[str, ...]
    start_frame: int
    requested: int
    elapsed_seconds: float

    @property
    def under_delivered(self) -> bool:
        """True when the source ended before `requested` frames."""
        return len(self.frames) < self.requested

    def __repr__(self) -> str:
        return (
            f"ExtractionResult(frames={len(self.frames)}/{self.requested}, "
            f"start_frame={self.start_frame}, "
            f"elapsed={self.elapsed_seconds:.3f}s)"
        )


class ExtractionRun:
    """
    One in-flight extraction with its own accumulator and decoder session.

    Event handlers (`on_chunk`, `on_end`, `on_error`, `expire`) are called
    from a single driver task plus the watchdog timer, both on the event
    loop, so they never run concurrently.
    """

    def __init__(
        self,
        run_id: int,
        request: ExtractionRequest,
        window: DecodeWindow,
        session: DecodeSession,
        accumulator: FrameAccumulator,
        metrics: Optional[ExtractionMetrics] = None,
    ) -> None:
        self.run_id = run_id
        self.request = request
        self.window = window
        self.session = session
        self.accumulator = accumulator
        self.metrics = metrics

        self.state: PipelineState = PipelineState.IDLE
        self.ignored_events: int = 0
        self.error: Optional[DecodeFailureError] = None
        self.timeout_seconds: Optional[float] = None

        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._started_at: float = time.perf_counter()
        self._watchdog: Optional[asyncio.TimerHandle] = None
        self._stop_issued: bool = False

    @property
    def result(self) -> asyncio.Future:
        """Future settled exactly once with ExtractionResult or an error."""
        return self._future

    @property
    def settled(self) -> bool:
        return self._future.done()

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self._started_at

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------

    async def drive(self) -> None:
        """
        Consume decoder events until the source is exhausted.

        Keeps draining after settlement so a stopped decoder is reaped;
        those late events are ignored by the latch.
        """
        self.state = PipelineState.RUNNING
        try:
            async with aclosing(self.session.events()) as events:
                async for event in events:
                    self.dispatch(event)
        except asyncio.CancelledError:
            self.on_error("extraction cancelled")
            self.soft_close()
            raise
        except Exception as e:
            logger.error(f"[run {self.run_id}] Decoder stream raised: {e}")
            self.on_error(f"decoder stream failed: {e}")
        else:
            # Output exhausted without an explicit terminal signal
            if not self.settled:
                self.on_end()

    def dispatch(self, event: DecodeEvent) -> None:
        if isinstance(event, DecodeChunk):
            self.on_chunk(event.data)
        elif isinstance(event, DecodeEnd):
            self.on_end()
        elif isinstance(event, DecodeError):
            self.on_error(event.message)
        else:
            logger.warning(f"[run {self.run_id}] Unknown decoder event: {event!r}")

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    def on_chunk(self, data: bytes) -> None:
        if self.settled:
            self._ignore("chunk")
            return

        self.state = PipelineState.DRAINING
        self.accumulator.feed(data)

        if self.accumulator.is_full:
            self._resolve()
            self.soft_close()

    def on_end(self) -> None:
        if self.settled:
            self._ignore("end")
            return

        collected = self.accumulator.frame_count
        if collected < self.request.count:
            logger.warning(
                f"[run {self.run_id}] Only got {collected} frames "
                f"(expected {self.request.count})"
            )
        self._resolve()

    def on_error(self, message: str) -> None:
        if self.settled:
            self._ignore("error")
            return

        logger.error(f"[run {self.run_id}] Decoder error: {message}")
        self._reject(DecodeFailureError(message))

    def expire(self) -> None:
        """Watchdog callback: fail the run and stop the decoder."""
        if self.settled:
            return

        timeout = self.timeout_seconds or 0.0
        logger.error(
            f"[run {self.run_id}] Decoder timed out after {timeout:.1f}s "
            f"({self.accumulator.frame_count}/{self.request.count} frames)"
        )
        self._reject(DecodeTimeoutError(timeout))
        self.soft_close()

    # -------------------------------------------------------------------------
    # Watchdog / shutdown
    # -------------------------------------------------------------------------

    def arm_watchdog(self, timeout_seconds: Optional[float]) -> None:
        if not timeout_seconds:
            return
        self.timeout_seconds = timeout_seconds
        loop = asyncio.get_running_loop()
        self._watchdog = loop.call_later(timeout_seconds, self.expire)

    def soft_close(self) -> None:
        """Best-effort, idempotent request to stop the decoder."""
        if self._stop_issued:
            return
        self._stop_issued = True
        try:
            self.session.stop()
        except Exception as e:
            logger.warning(f"[run {self.run_id}] Failed to stop decoder gracefully: {e}")

    # -------------------------------------------------------------------------
    # Settlement latch
    # -------------------------------------------------------------------------

    def _resolve(self) -> None:
        self._cancel_watchdog()
        self.state = PipelineState.COMPLETED
        result = ExtractionResult(
            frames=tuple(self.accumulator.frames),
            start_frame=self.request.start_frame,
            requested=self.request.count,
            elapsed_seconds=self.elapsed_seconds,
        )
        logger.info(
            f"[run {self.run_id}] Frame generation time: "
            f"{result.elapsed_seconds:.3f}s ({len(result.frames)} frames)"
        )
        self._future.set_result(result)

    def _reject(self, error: DecodeFailureError) -> None:
        self._cancel_watchdog()
        self.state = PipelineState.FAILED
        self.error = error
        # Partial frames are never returned
        self.accumulator.clear()
        self._future.set_exception(error)

    def _ignore(self, kind: str) -> None:
        self.ignored_events += 1
        if self.metrics is not None:
            self.metrics.ignored_events += 1
        logger.debug(
            f"[run {self.run_id}] Ignoring {kind} after settlement "
            f"(state={self.state.value})"
        )

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None


class FramePipeline:
    """
    Streaming decode pipeline.

    Geometry and decoder are fixed at construction; each call to
    `extract` builds an isolated ExtractionRun.

    Attributes:
        geometry: Output frame geometry
        decoder: Decoder capability (FFmpegDecoder in production)
        timeout_seconds: Watchdog timeout per run (None/0 disables)
        max_count: Upper bound on frames per request (None = unbounded)
        metrics: Service-wide counters

    Example:
        pipeline = FramePipeline(
            geometry=FrameGeometry(width=640, height=360, frame_rate=30),
            decoder=FFmpegDecoder(),
            timeout_seconds=30,
        )
        result = await pipeline.extract(
            ExtractionRequest(video_path=path, start_frame=0, count=3)
        )
    """

    def __init__(
        self,
        geometry: FrameGeometry,
        decoder: Decoder,
        timeout_seconds: Optional[float] = None,
        max_count: Optional[int] = None,
        metrics: Optional[ExtractionMetrics] = None,
    ) -> None:
        if timeout_seconds is not None and timeout_seconds < 0:
            raise ValueError("timeout_seconds must be >= 0")
        if max_count is not None and max_count < 1:
            raise ValueError("max_count must be >= 1")

        self.geometry = geometry
        self.decoder = decoder
        self.timeout_seconds = timeout_seconds
        self.max_count = max_count
        self.metrics = metrics if metrics is not None else ExtractionMetrics()

        self._run_ids = itertools.count(1)
        self._active: Set[ExtractionRun] = set()
        self._drivers: Set[asyncio.Task] = set()

        logger.info(
            f"FramePipeline initialized: geometry={geometry!r}, "
            f"frame_bytes={geometry.frame_byte_size}, "
            f"timeout={timeout_seconds}, max_count={max_count}"
        )

    @property
    def active_runs(self) -> int:
        return len(self._active)

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        """
        Extract `request.count` frames starting at `request.start_frame`.

        Args:
            request: Validated extraction request

        Returns:
            ExtractionResult (may be under-delivered if the source is short)

        Raises:
            InvalidArgumentError: If count exceeds max_count
            DecodeFailureError: If the decoder fails or times out
        """
        if self.max_count is not None and request.count > self.max_count:
            raise InvalidArgumentError(
                f"count must be <= {self.max_count}, got {request.count}"
            )

        window, frame_size = compute_window(
            request.start_frame, request.count, self.geometry
        )

        run_id = next(self._run_ids)
        logger.info(
            f"[run {run_id}] Starting frame extraction: "
            f"start_frame={request.start_frame}, count={request.count}, {window!r}"
        )

        session = self.decoder.start(request.video_path, window, self.geometry)
        run = ExtractionRun(
            run_id=run_id,
            request=request,
            window=window,
            session=session,
            accumulator=FrameAccumulator(frame_size=frame_size, limit=request.count),
            metrics=self.metrics,
        )

        self._active.add(run)
        self.metrics.in_flight += 1
        run.arm_watchdog(self.timeout_seconds)

        driver = asyncio.create_task(run.drive(), name=f"extract-{run_id}")
        self._drivers.add(driver)
        driver.add_done_callback(self._drivers.discard)

        try:
            # shield: a cancelled caller must not cancel the shared future
            result = await asyncio.shield(run.result)
        except DecodeFailureError as e:
            self.metrics.record_error(e)
            raise
        except asyncio.CancelledError:
            run.soft_close()
            # Nobody awaits the run any more; consume its eventual outcome
            run.result.add_done_callback(
                lambda f: f.cancelled() or f.exception()
            )
            raise
        finally:
            self._active.discard(run)
            self.metrics.in_flight -= 1

        self.metrics.record_success(
            frames=len(result.frames),
            under_delivered=result.under_delivered,
            elapsed=result.elapsed_seconds,
        )
        return result

    async def extract_frames(
        self,
        video_path: Path,
        start_frame: int = 0,
        count: int = 1,
    ) -> ExtractionResult:
        """Convenience wrapper building the ExtractionRequest."""
        request = ExtractionRequest.from_query(video_path, start=start_frame, count=count)
        return await self.extract(request)

    async def aclose(self, timeout: float = 5.0) -> None:
        """
        Stop all decoders and wait for their drivers to finish.

        Drivers still running after `timeout` are cancelled.
        """
        for run in list(self._active):
            run.soft_close()

        drivers = list(self._drivers)
        if not drivers:
            return

        logger.info(f"Waiting for {len(drivers)} decoder(s) to exit")
        done, pending = await asyncio.wait(drivers, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
