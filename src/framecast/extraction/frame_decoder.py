"""
Frame Decoder
=============

Decodes base64 frame payloads back into RGBA numpy arrays.

This is the client-side view of a payload: scripts and tests use it to
check that a frame has the configured geometry and to inspect pixels.

Design Rules:
    - Validates payload length against the geometry before reshaping
    - Fails fast on corrupt payloads
    - Returns (H, W, 4) uint8, RGBA channel order
"""

import base64
import binascii
import logging

import numpy as np

from framecast.models.geometry import CHANNELS_PER_PIXEL, FrameGeometry


logger = logging.getLogger(__name__)


class FrameDecodeError(Exception):
    """Raised when a frame payload cannot be decoded."""
    pass


def decode_frame_rgba(payload: str, geometry: FrameGeometry) -> np.ndarray:
    """
    Decode a base64 payload to an RGBA array.

    Args:
        payload: Base64 text of one raw RGBA frame
        geometry: Geometry the frame was produced with

    Returns:
        RGBA image as np.ndarray (H, W, 4), dtype=uint8

    Raises:
        FrameDecodeError: If the payload is not valid base64 or has the
            wrong size for the geometry
    """
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FrameDecodeError(f"Base64 decode failed: {e}")

    if len(raw) != geometry.frame_byte_size:
        raise FrameDecodeError(
            f"Invalid frame size: got {len(raw)} bytes, "
            f"expected {geometry.frame_byte_size} for {geometry!r}"
        )

    pixels = np.frombuffer(raw, dtype=np.uint8)
    return pixels.reshape(geometry.height, geometry.width, CHANNELS_PER_PIXEL)


def mean_color(payload: str, geometry: FrameGeometry) -> np.ndarray:
    """
    Average RGBA value of a frame.

    Returns:
        Array of 4 floats (R, G, B, A)
    """
    rgba = decode_frame_rgba(payload, geometry)
    return rgba.reshape(-1, CHANNELS_PER_PIXEL).mean(axis=0)
