"""
Video Catalog
=============

Resolves request filenames against the configured video directory.

Design Rules:
    - Filenames are relative to the catalog root
    - Names that escape the root (absolute paths, "..") are rejected
    - Existence is checked here, before any decoder is started
"""

import logging
from pathlib import Path
from typing import List, Union

from framecast.errors import InvalidArgumentError, SourceNotFoundError


logger = logging.getLogger(__name__)


class VideoCatalog:
    """
    On-disk directory of source videos.

    Attributes:
        root: Absolute path of the video directory

    Example:
        catalog = VideoCatalog("./movies")
        path = catalog.resolve("trailer.mp4")
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser().resolve()

        if not self.root.is_dir():
            logger.warning(f"Video directory does not exist: {self.root}")
        else:
            logger.info(f"VideoCatalog root: {self.root}")

    def resolve(self, filename: str) -> Path:
        """
        Resolve a filename to an existing file inside the catalog.

        Args:
            filename: Name relative to the catalog root

        Returns:
            Absolute path of the video

        Raises:
            InvalidArgumentError: If filename is empty or escapes the root
            SourceNotFoundError: If the file does not exist
        """
        if not filename or not filename.strip():
            raise InvalidArgumentError("filename query param required")

        candidate = (self.root / filename).resolve()
        if not candidate.is_relative_to(self.root):
            logger.warning(f"Rejected filename outside video directory: {filename!r}")
            raise InvalidArgumentError(f"Invalid filename: {filename}")

        if not candidate.is_file():
            raise SourceNotFoundError(filename)

        return candidate

    def list_videos(self) -> List[str]:
        """Names of regular files in the catalog root, sorted."""
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file())
