"""
Pipeline Tests
==============

Tests for the streaming decode pipeline: frame bounds, ordering, early
termination, under-delivery, failure, watchdog and exactly-once settlement.
"""

import asyncio
import base64
import logging

import pytest

from framecast.errors import DecodeFailureError, DecodeTimeoutError, InvalidArgumentError
from framecast.extraction.decoder import DecodeChunk, DecodeEnd, DecodeError
from framecast.extraction.pipeline import FramePipeline, PipelineState
from framecast.models.geometry import DecodeWindow
from fakes import FakeDecoder, ScriptedSession, frame_stream, make_frame, split_at


FRAME = 32  # tiny_geometry frame size


def chunks(*parts):
    return [DecodeChunk(p) for p in parts]


def decoded(result):
    return [base64.b64decode(f) for f in result.frames]


class TestExtraction:
    """Happy-path extraction."""

    @pytest.mark.asyncio
    async def test_single_hd_frame(self, hd_geometry, make_request):
        """One chunk of exactly 921600 bytes -> one frame, decoder stopped."""
        session = ScriptedSession(chunks(make_frame(1, 921_600)) + [DecodeEnd()])
        pipeline = FramePipeline(hd_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=1))

        assert len(result.frames) == 1
        assert decoded(result) == [make_frame(1, 921_600)]
        assert not result.under_delivered
        assert session.stop_calls == 1
        await pipeline.aclose()

    @pytest.mark.asyncio
    async def test_irregular_chunks(self, tiny_geometry, make_request):
        """1.5 frames then 2 frames -> exactly 3 ordered frames."""
        data = frame_stream(3, FRAME, first=10)
        session = ScriptedSession(chunks(*split_at(data, [FRAME + FRAME // 2])))
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(start_frame=10, count=3))

        assert decoded(result) == [make_frame(10 + i, FRAME) for i in range(3)]
        assert result.start_frame == 10
        assert result.requested == 3
        await pipeline.aclose()

    @pytest.mark.asyncio
    async def test_decoder_receives_window_and_geometry(self, tiny_geometry, make_request, video_path):
        session = ScriptedSession(chunks(frame_stream(2, FRAME)))
        decoder = FakeDecoder(session)
        pipeline = FramePipeline(tiny_geometry, decoder)

        await pipeline.extract(make_request(start_frame=45, count=2))

        path, window, geometry = decoder.calls[0]
        assert path == video_path
        assert window == DecodeWindow(start_seconds=1.5, duration_seconds=2 / 30)
        assert geometry == tiny_geometry
        await pipeline.aclose()

    @pytest.mark.asyncio
    async def test_surplus_output_is_never_returned(self, tiny_geometry, make_request):
        session = ScriptedSession(chunks(frame_stream(5, FRAME)))
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=2))

        assert len(result.frames) == 2
        await pipeline.aclose()

    @pytest.mark.asyncio
    async def test_extract_frames_wrapper_coerces(self, tiny_geometry, video_path):
        session = ScriptedSession(chunks(frame_stream(2, FRAME)))
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract_frames(video_path, start_frame="0", count="2")

        assert len(result.frames) == 2
        await pipeline.aclose()


class TestEarlyTermination:
    """Soft close once the requested count is reached."""

    @pytest.mark.asyncio
    async def test_stop_issued_once_and_straggler_ignored(self, tiny_geometry, make_request):
        session = ScriptedSession(
            chunks(frame_stream(2, FRAME), frame_stream(2, FRAME, first=2)),
            after_stop=[DecodeError("ffmpeg was killed with signal SIGKILL")],
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=2))
        await pipeline.aclose()

        assert len(result.frames) == 2
        assert session.stop_calls == 1
        assert pipeline.metrics.ignored_events == 1
        assert pipeline.metrics.decode_failures == 0
        assert pipeline.metrics.completed == 1

    @pytest.mark.asyncio
    async def test_stop_failure_is_logged_not_raised(self, tiny_geometry, make_request, caplog):
        session = ScriptedSession(
            chunks(frame_stream(1, FRAME)),
            stop_error=OSError("no such process"),
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        with caplog.at_level(logging.WARNING):
            result = await pipeline.extract(make_request(count=1))
        await pipeline.aclose()

        assert len(result.frames) == 1
        assert "Failed to stop decoder" in caplog.text


class TestUnderDelivery:
    """Source shorter than the requested window."""

    @pytest.mark.asyncio
    async def test_natural_end_with_fewer_frames(self, tiny_geometry, make_request, caplog):
        """Natural end after 2 of 3 frames -> success with 2 frames and a warning."""
        session = ScriptedSession(chunks(frame_stream(2, FRAME)) + [DecodeEnd()])
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        with caplog.at_level(logging.WARNING):
            result = await pipeline.extract(make_request(count=3))
        await pipeline.aclose()

        assert len(result.frames) == 2
        assert result.under_delivered
        assert "Only got 2 frames (expected 3)" in caplog.text
        assert pipeline.metrics.under_deliveries == 1
        assert session.stop_calls == 0

    @pytest.mark.asyncio
    async def test_trailing_partial_frame_is_dropped(self, tiny_geometry, make_request):
        session = ScriptedSession(
            chunks(frame_stream(1, FRAME) + b"\x01" * (FRAME // 2)) + [DecodeEnd()]
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=2))

        assert len(result.frames) == 1
        await pipeline.aclose()

    @pytest.mark.asyncio
    async def test_exhausted_stream_counts_as_end(self, tiny_geometry, make_request):
        session = ScriptedSession(chunks(frame_stream(1, FRAME)))
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=4))

        assert len(result.frames) == 1
        await pipeline.aclose()


class TestFailure:
    """Process-level decoder failures."""

    @pytest.mark.asyncio
    async def test_error_with_zero_frames(self, tiny_geometry, make_request):
        session = ScriptedSession([DecodeError("moov atom not found")])
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        with pytest.raises(DecodeFailureError, match="moov atom not found"):
            await pipeline.extract(make_request(count=3))
        await pipeline.aclose()

        assert pipeline.metrics.decode_failures == 1
        assert pipeline.metrics.in_flight == 0

    @pytest.mark.asyncio
    async def test_partial_frames_discarded_on_error(self, tiny_geometry, make_request):
        session = ScriptedSession(
            chunks(frame_stream(2, FRAME)) + [DecodeError("corrupt packet")]
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        with pytest.raises(DecodeFailureError, match="corrupt packet"):
            await pipeline.extract(make_request(count=3))
        await pipeline.aclose()

        assert pipeline.metrics.frames_delivered == 0

    @pytest.mark.asyncio
    async def test_raising_event_source_fails_run(self, tiny_geometry, make_request):
        class BrokenSession(ScriptedSession):
            async def events(self):
                yield DecodeChunk(b"\x00" * 8)
                raise RuntimeError("pipe closed")

        pipeline = FramePipeline(tiny_geometry, FakeDecoder(BrokenSession()))

        with pytest.raises(DecodeFailureError, match="pipe closed"):
            await pipeline.extract(make_request(count=1))
        await pipeline.aclose()


class TestExactlyOnce:
    """The first terminal signal wins; later ones are ignored."""

    @pytest.mark.asyncio
    async def test_error_after_end_is_ignored(self, tiny_geometry, make_request):
        session = ScriptedSession(
            chunks(frame_stream(1, FRAME)) + [DecodeEnd(), DecodeError("late error")]
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=2))
        await pipeline.aclose()

        assert len(result.frames) == 1
        assert pipeline.metrics.ignored_events == 1
        assert pipeline.metrics.decode_failures == 0

    @pytest.mark.asyncio
    async def test_end_after_error_is_ignored(self, tiny_geometry, make_request):
        session = ScriptedSession(
            [DecodeError("decoder crashed"), DecodeEnd(), DecodeChunk(frame_stream(1, FRAME))]
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        with pytest.raises(DecodeFailureError, match="decoder crashed"):
            await pipeline.extract(make_request(count=1))
        await pipeline.aclose()

        assert pipeline.metrics.ignored_events == 2
        assert pipeline.metrics.completed == 0

    @pytest.mark.asyncio
    async def test_shutdown_after_settlement_is_harmless(self, tiny_geometry, make_request):
        session = ScriptedSession(chunks(frame_stream(1, FRAME)))
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session))

        result = await pipeline.extract(make_request(count=1))
        await pipeline.aclose()
        await pipeline.aclose()

        assert len(result.frames) == 1
        assert session.stop_calls == 1


class TestWatchdog:
    """Timeout for decoders that never settle."""

    @pytest.mark.asyncio
    async def test_hung_decoder_times_out(self, tiny_geometry, make_request):
        session = ScriptedSession(
            chunks(frame_stream(1, FRAME)),
            after_stop=[DecodeError("killed")],
            hang=True,
        )
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session), timeout_seconds=0.05)

        with pytest.raises(DecodeTimeoutError):
            await pipeline.extract(make_request(count=5))
        await pipeline.aclose()

        assert session.stop_calls == 1
        assert pipeline.metrics.timeouts == 1
        assert pipeline.metrics.decode_failures == 1
        assert pipeline.metrics.ignored_events == 1

    @pytest.mark.asyncio
    async def test_watchdog_cancelled_on_success(self, tiny_geometry, make_request):
        session = ScriptedSession(chunks(frame_stream(1, FRAME)))
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(session), timeout_seconds=0.05)

        result = await pipeline.extract(make_request(count=1))
        await asyncio.sleep(0.1)
        await pipeline.aclose()

        assert len(result.frames) == 1
        assert pipeline.metrics.timeouts == 0


class TestLimits:
    """Request bounds enforced before any decoder starts."""

    @pytest.mark.asyncio
    async def test_count_above_max_rejected(self, tiny_geometry, make_request):
        decoder = FakeDecoder()
        pipeline = FramePipeline(tiny_geometry, decoder, max_count=10)

        with pytest.raises(InvalidArgumentError, match="<= 10"):
            await pipeline.extract(make_request(count=11))

        assert decoder.calls == []

    def test_invalid_construction(self, tiny_geometry):
        with pytest.raises(ValueError):
            FramePipeline(tiny_geometry, FakeDecoder(), timeout_seconds=-1)
        with pytest.raises(ValueError):
            FramePipeline(tiny_geometry, FakeDecoder(), max_count=0)


class TestConcurrency:
    """Concurrent runs are isolated from each other."""

    @pytest.mark.asyncio
    async def test_parallel_runs_do_not_share_state(self, tiny_geometry, make_request):
        first = ScriptedSession(chunks(*split_at(frame_stream(3, FRAME, first=0), [5, 40, 7])))
        second = ScriptedSession(chunks(*split_at(frame_stream(2, FRAME, first=100), [50])) + [DecodeEnd()])
        pipeline = FramePipeline(tiny_geometry, FakeDecoder(first, second))

        a, b = await asyncio.gather(
            pipeline.extract(make_request(start_frame=0, count=3)),
            pipeline.extract(make_request(start_frame=100, count=4)),
        )
        await pipeline.aclose()

        assert decoded(a) == [make_frame(i, FRAME) for i in range(3)]
        assert decoded(b) == [make_frame(100 + i, FRAME) for i in range(2)]
        assert b.under_delivered
        assert pipeline.metrics.completed == 2
        assert pipeline.metrics.frames_delivered == 5


class TestExtractionRun:
    """State machine of a single run."""

    @pytest.mark.asyncio
    async def test_states(self, tiny_geometry, make_request):
        from framecast.extraction.accumulator import FrameAccumulator
        from framecast.extraction.pipeline import ExtractionRun

        session = ScriptedSession()
        run = ExtractionRun(
            run_id=1,
            request=make_request(count=2),
            window=DecodeWindow(start_seconds=0.0, duration_seconds=2 / 30),
            session=session,
            accumulator=FrameAccumulator(frame_size=FRAME, limit=2),
        )
        assert run.state == PipelineState.IDLE

        run.on_chunk(make_frame(0, FRAME))
        assert run.state == PipelineState.DRAINING
        assert not run.settled

        run.on_chunk(make_frame(1, FRAME))
        assert run.state == PipelineState.COMPLETED
        assert run.settled
        assert session.stop_calls == 1

        run.on_error("late")
        run.on_end()
        assert run.ignored_events == 2
        assert len(run.result.result().frames) == 2

    @pytest.mark.asyncio
    async def test_failed_state_clears_frames(self, tiny_geometry, make_request):
        from framecast.extraction.accumulator import FrameAccumulator
        from framecast.extraction.pipeline import ExtractionRun

        accumulator = FrameAccumulator(frame_size=FRAME, limit=3)
        run = ExtractionRun(
            run_id=2,
            request=make_request(count=3),
            window=DecodeWindow(start_seconds=0.0, duration_seconds=0.1),
            session=ScriptedSession(),
            accumulator=accumulator,
        )

        run.on_chunk(frame_stream(2, FRAME))
        run.on_error("boom")

        assert run.state == PipelineState.FAILED
        assert accumulator.frame_count == 0
        assert isinstance(run.error, DecodeFailureError)
        with pytest.raises(DecodeFailureError):
            run.result.result()
