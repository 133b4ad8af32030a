"""
Frame Window Calculator
=======================

Maps a frame range onto the decoder's time window.

    start_seconds    = start_frame / frame_rate
    duration_seconds = count / frame_rate
    frame_byte_size  = width * height * 4

Design Rules:
    - Pure and deterministic, safe to call concurrently
    - Coerces numeric input, rejects anything else with InvalidArgumentError
    - Geometry is validated on construction, not here
"""

from typing import Any, Tuple

from pydantic import NonNegativeInt, PositiveInt, TypeAdapter, ValidationError

from framecast.errors import InvalidArgumentError
from framecast.models.geometry import DecodeWindow, FrameGeometry


_START_FRAME = TypeAdapter(NonNegativeInt)
_COUNT = TypeAdapter(PositiveInt)


def _coerce(name: str, value: Any, adapter: TypeAdapter, expected: str) -> int:
    try:
        return adapter.validate_python(value)
    except ValidationError as e:
        raise InvalidArgumentError(
            f"{name} must be {expected}, got {value!r}"
        ) from e


def compute_window(
    start_frame: Any,
    count: Any,
    geometry: FrameGeometry,
) -> Tuple[DecodeWindow, int]:
    """
    Compute the decode window and per-frame byte size.

    Args:
        start_frame: First frame index (coerced to a non-negative int)
        count: Number of frames (coerced to a positive int)
        geometry: Output geometry and frame rate

    Returns:
        Tuple of (DecodeWindow, frame_byte_size)

    Raises:
        InvalidArgumentError: If start_frame or count are invalid
    """
    start = _coerce("start_frame", start_frame, _START_FRAME, "a non-negative integer")
    frames = _coerce("count", count, _COUNT, "a positive integer")

    window = DecodeWindow(
        start_seconds=start / geometry.frame_rate,
        duration_seconds=frames / geometry.frame_rate,
    )
    return window, geometry.frame_byte_size
