"""
Extraction Module
=================

Frame extraction core: window calculation, decoder capability, and the
streaming decode pipeline.

This module provides:
    - compute_window: frame range -> decode time window + frame byte size
    - FrameAccumulator: reframes a chunked byte stream into whole frames
    - Decoder / FFmpegDecoder: external decoder capability
    - FramePipeline: per-request state machine with exactly-once settlement
    - decode_frame_rgba: base64 payload -> numpy RGBA array

Example:
    from framecast.extraction import FFmpegDecoder, FramePipeline
    from framecast.models import ExtractionRequest, FrameGeometry

    pipeline = FramePipeline(
        geometry=FrameGeometry(width=640, height=360, frame_rate=30),
        decoder=FFmpegDecoder(),
    )
    result = await pipeline.extract(
        ExtractionRequest(video_path=path, start_frame=120, count=10)
    )
    for payload in result.frames:
        send(payload)
"""

from framecast.errors import (
    DecodeFailureError,
    DecodeTimeoutError,
    FrameExtractionError,
    InvalidArgumentError,
    SourceNotFoundError,
)
from framecast.extraction.window import compute_window
from framecast.extraction.accumulator import FrameAccumulator, encode_frame
from framecast.extraction.decoder import (
    DecodeChunk,
    DecodeEnd,
    DecodeError,
    DecodeEvent,
    DecodeSession,
    Decoder,
    FFmpegDecoder,
    FFmpegDecodeSession,
    build_ffmpeg_args,
)
from framecast.extraction.metrics import ExtractionMetrics
from framecast.extraction.pipeline import (
    ExtractionResult,
    ExtractionRun,
    FramePipeline,
    PipelineState,
)
from framecast.extraction.frame_decoder import FrameDecodeError, decode_frame_rgba


__all__ = [
    # Errors
    "FrameExtractionError",
    "InvalidArgumentError",
    "SourceNotFoundError",
    "DecodeFailureError",
    "DecodeTimeoutError",
    # Window
    "compute_window",
    # Accumulator
    "FrameAccumulator",
    "encode_frame",
    # Decoder
    "DecodeChunk",
    "DecodeEnd",
    "DecodeError",
    "DecodeEvent",
    "DecodeSession",
    "Decoder",
    "FFmpegDecoder",
    "FFmpegDecodeSession",
    "build_ffmpeg_args",
    # Pipeline
    "ExtractionMetrics",
    "ExtractionResult",
    "ExtractionRun",
    "FramePipeline",
    "PipelineState",
    # Client-side decoding
    "FrameDecodeError",
    "decode_frame_rgba",
]
