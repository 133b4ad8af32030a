"""
Data Models
===========

Models for framecast.

This module re-exports all data models for convenient access.

Models:
    Geometry:
        - FrameGeometry: Output width/height/frame rate (process-wide)
        - DecodeWindow: Seek position and duration for one decode

    Request:
        - ExtractionRequest: Validated (video_path, start_frame, count)

    Output:
        - FramesResponse: {"frames": [...]}
        - ErrorResponse: {"error": "..."}
        - ServiceInfo, GeometryInfo: Service description
"""

from framecast.models.geometry import (
    CHANNELS_PER_PIXEL,
    PIXEL_FORMAT,
    DecodeWindow,
    FrameGeometry,
)
from framecast.models.request import ExtractionRequest
from framecast.models.output import ErrorResponse, FramesResponse, GeometryInfo, ServiceInfo

__all__ = [
    # Geometry
    "CHANNELS_PER_PIXEL",
    "PIXEL_FORMAT",
    "FrameGeometry",
    "DecodeWindow",
    # Request
    "ExtractionRequest",
    # Output
    "FramesResponse",
    "ErrorResponse",
    "GeometryInfo",
    "ServiceInfo",
]
