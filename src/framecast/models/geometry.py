"""
Frame Geometry Models
=====================

Fixed output geometry and derived decode window.

FrameGeometry is process-wide configuration: it is built once from settings
at startup and passed explicitly to the window calculator and the pipeline.
Changing it changes the frame byte size for every subsequent request.

Byte layout of one frame (raw, headerless, RGBA):

    frame_byte_size = width * height * 4

    Example: 640 x 360 -> 921600 bytes

Example:
    from framecast.models.geometry import FrameGeometry

    geometry = FrameGeometry(width=640, height=360, frame_rate=30)
    assert geometry.frame_byte_size == 921_600
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


# RGBA, one byte per channel
CHANNELS_PER_PIXEL = 4

# ffmpeg pix_fmt matching CHANNELS_PER_PIXEL and the RGBA channel order
PIXEL_FORMAT = "rgba"


class FrameGeometry(BaseModel):
    """
    Output frame geometry and sampling rate.

    Immutable once constructed. Validation rejects non-positive
    dimensions and frame rates.

    Attributes:
        width: Output frame width in pixels
        height: Output frame height in pixels
        frame_rate: Output frames per second (also used to map frame
            indices to timestamps)
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0, description="Output frame width (px)")
    height: int = Field(..., gt=0, description="Output frame height (px)")
    frame_rate: float = Field(..., gt=0, description="Frames per second")

    @property
    def channels(self) -> int:
        """Bytes per pixel (fixed RGBA)."""
        return CHANNELS_PER_PIXEL

    @property
    def frame_byte_size(self) -> int:
        """Size of one raw frame in bytes."""
        return self.width * self.height * CHANNELS_PER_PIXEL

    def __repr__(self) -> str:
        return (
            f"FrameGeometry({self.width}x{self.height}, "
            f"fps={self.frame_rate:g})"
        )


@dataclass(frozen=True, slots=True)
class DecodeWindow:
    """
    Time window handed to the decoder.

    Attributes:
        start_seconds: Seek position (start_frame / frame_rate)
        duration_seconds: Decode duration (count / frame_rate)
    """

    start_seconds: float
    duration_seconds: float

    @property
    def end_seconds(self) -> float:
        return self.start_seconds + self.duration_seconds

    def __repr__(self) -> str:
        return (
            f"DecodeWindow(start={self.start_seconds:.3f}s, "
            f"duration={self.duration_seconds:.3f}s)"
        )
