#!/usr/bin/env python3
"""
Frame Extraction Smoke Script
=============================

Standalone script to exercise the extraction pipeline against a real video
with a real ffmpeg binary, without the HTTP layer.

This script:
    1. Builds a FramePipeline with the requested geometry
    2. Extracts `count` frames starting at `start`
    3. Decodes every payload back to RGBA and checks its shape
    4. Reports timing, frame count and mean color per frame

Prerequisites:
    - ffmpeg on PATH (or --ffmpeg)
    - pip install -e .

Usage:
    python scripts/extract_frames.py movies/trailer.mp4 --start 120 --count 5
    python scripts/extract_frames.py clip.mp4 --width 320 --height 180 --fps 24
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from framecast.errors import FrameExtractionError
from framecast.extraction import FFmpegDecoder, FramePipeline, decode_frame_rgba
from framecast.extraction.frame_decoder import mean_color
from framecast.models import ExtractionRequest, FrameGeometry


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_extraction(
    video: Path,
    start: int,
    count: int,
    geometry: FrameGeometry,
    ffmpeg_binary: str,
    timeout: float,
) -> int:
    """
    Run one extraction and report the result.

    Returns:
        Number of frames extracted
    """
    logger.info("=" * 60)
    logger.info("Frame Extraction Smoke Test")
    logger.info("=" * 60)
    logger.info(f"Video: {video}")
    logger.info(f"Range: start={start}, count={count}")
    logger.info(f"Geometry: {geometry!r} ({geometry.frame_byte_size} bytes/frame)")
    logger.info("=" * 60)

    pipeline = FramePipeline(
        geometry=geometry,
        decoder=FFmpegDecoder(binary=ffmpeg_binary),
        timeout_seconds=timeout or None,
    )

    try:
        request = ExtractionRequest(video_path=video, start_frame=start, count=count)
        result = await pipeline.extract(request)
    except FrameExtractionError as e:
        logger.error(f"❌ Extraction failed: {e}")
        return 0
    finally:
        await pipeline.aclose()

    for index, payload in enumerate(result.frames):
        rgba = decode_frame_rgba(payload, geometry)
        r, g, b, a = mean_color(payload, geometry)
        logger.info(
            f"  frame {result.start_frame + index}: shape={rgba.shape} "
            f"mean=({r:.1f}, {g:.1f}, {b:.1f}, {a:.1f})"
        )

    logger.info("=" * 60)
    logger.info("SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Frames: {len(result.frames)}/{result.requested}")
    logger.info(f"Generation time: {result.elapsed_seconds:.3f}s")
    if result.under_delivered:
        logger.warning("⚠️ Source ended before the requested window")
    else:
        logger.info("✅ All requested frames extracted")

    return len(result.frames)


def main():
    parser = argparse.ArgumentParser(
        description="Extract raw RGBA frames from a video with ffmpeg"
    )
    parser.add_argument("video", type=Path, help="Path to the source video")
    parser.add_argument("--start", type=int, default=0, help="First frame index (default: 0)")
    parser.add_argument("--count", type=int, default=1, help="Frames to extract (default: 1)")
    parser.add_argument("--width", type=int, default=640, help="Frame width (default: 640)")
    parser.add_argument("--height", type=int, default=360, help="Frame height (default: 360)")
    parser.add_argument("--fps", type=float, default=30.0, help="Frame rate (default: 30)")
    parser.add_argument(
        "--ffmpeg",
        type=str,
        default=os.environ.get("FRAMECAST_FFMPEG", "ffmpeg"),
        help="ffmpeg executable",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Watchdog timeout in seconds, 0 disables (default: 30)",
    )

    args = parser.parse_args()

    if not args.video.is_file():
        logger.error(f"Video not found: {args.video}")
        sys.exit(2)

    extracted = asyncio.run(run_extraction(
        video=args.video.resolve(),
        start=args.start,
        count=args.count,
        geometry=FrameGeometry(width=args.width, height=args.height, frame_rate=args.fps),
        ffmpeg_binary=args.ffmpeg,
        timeout=args.timeout,
    ))

    # Exit with appropriate code
    sys.exit(0 if extracted > 0 else 1)


if __name__ == "__main__":
    main()
