"""
Extraction Request Schema
=========================

This module defines the validated request handed from the HTTP boundary to
the extraction core.

Input Contract (query string of GET /api/frames):
    filename=<name relative to the video directory>   (required)
    start=<frame index>                               (default 0)
    count=<number of frames>                          (default 1)

Numeric coercion happens here: "12", 12 and 12.0 are all accepted as
frame index 12. Non-numeric, fractional or out-of-range values are
rejected with InvalidArgumentError so the caller can answer 400 before
any decoder is started.

Example:
    from framecast.models.request import ExtractionRequest

    request = ExtractionRequest.from_query(path, start="30", count="5")
    print(request.start_frame, request.count)
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, ValidationError

from framecast.errors import InvalidArgumentError


class ExtractionRequest(BaseModel):
    """
    Immutable description of one extraction.

    The video path is not owned by the request: it is resolved and
    checked for existence by the caller (see VideoCatalog).

    Attributes:
        video_path: Resolved path of the source media
        start_frame: Index of the first frame to return
        count: Number of frames requested
    """

    model_config = ConfigDict(frozen=True)

    video_path: Path = Field(..., description="Resolved source media path")
    start_frame: NonNegativeInt = Field(default=0, description="First frame index")
    count: PositiveInt = Field(default=1, description="Frames requested")

    @classmethod
    def from_query(cls, video_path: Path, start: Any = 0, count: Any = 1) -> "ExtractionRequest":
        """
        Build a request from raw boundary values.

        Args:
            video_path: Already-resolved media path
            start: Raw start value (str, int or float)
            count: Raw count value (str, int or float)

        Returns:
            Validated ExtractionRequest

        Raises:
            InvalidArgumentError: If start or count fail coercion/range checks
        """
        try:
            return cls(video_path=video_path, start_frame=start, count=count)
        except ValidationError as e:
            fields = ", ".join(
                str(err["loc"][0]) for err in e.errors() if err.get("loc")
            )
            raise InvalidArgumentError(f"Invalid request parameters: {fields}") from e
