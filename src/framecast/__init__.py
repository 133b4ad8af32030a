"""
framecast
=========

Raw RGBA frame extraction for remote rendering clients.

Given a video, a start frame and a frame count, framecast drives ffmpeg to
decode exactly that window, reframes the raw output into fixed-size RGBA
buffers, stops the decoder as soon as enough frames are collected, and
returns the frames as base64 text.

Components:
    - extraction: window calculator, decoder capability, streaming pipeline
    - models: geometry, request and response models
    - catalog: filename -> validated video path
    - main: FastAPI application (HTTP boundary)

Example:
    from framecast.config import settings
    from framecast.main import create_pipeline

    pipeline = create_pipeline(settings)
    result = await pipeline.extract_frames(path, start_frame=0, count=3)
"""

__version__ = "0.1.0"
__author__ = "framecast contributors"

__all__ = [
    "__version__",
]
