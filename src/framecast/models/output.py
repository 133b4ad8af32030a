"""
Response Models
===============

This module defines the HTTP output contract of framecast.

Output Contract (GET /api/frames):
    200: {"frames": ["<base64 RGBA>", ...]}
    4xx/5xx: {"error": "<description>"}

Each frame string decodes to exactly width * height * 4 bytes of raw RGBA,
row-major, top-left first. Frames appear in capture order: frames[i] is
source frame start + i. A short source yields fewer frames than requested
with status 200.

Design Rules:
    - `frames` is the only field clients must read
    - Errors never carry partial frames
"""

from typing import List

from pydantic import BaseModel, Field


class FramesResponse(BaseModel):
    """
    Successful frame extraction.

    Attributes:
        frames: Base64-encoded raw RGBA buffers, in capture order
    """

    frames: List[str] = Field(
        ...,
        description="Base64 RGBA frames in capture order",
    )

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "frames": ["AAAA/wAAAP8AAAD/..."],
            }
        }


class ErrorResponse(BaseModel):
    """Error payload returned with 400, 404 and 500."""

    error: str = Field(..., description="Human-readable error description")


class GeometryInfo(BaseModel):
    """Frame geometry as reported by the service info endpoint."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    channels: int = Field(default=4, description="Bytes per pixel (RGBA)")
    frame_rate: float = Field(..., gt=0)
    frame_byte_size: int = Field(..., gt=0)


class ServiceInfo(BaseModel):
    """Payload of GET /."""

    service: str
    version: str
    status: str = "running"
    geometry: GeometryInfo
    max_count_per_request: int
