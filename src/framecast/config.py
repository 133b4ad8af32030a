"""
framecast Configuration
=======================

This module handles configuration loading for the frame extraction service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAMECAST_VIDEO_DIR       -> video.directory
    FRAMECAST_FRAME_WIDTH     -> frames.width
    FRAMECAST_FRAME_HEIGHT    -> frames.height
    FRAMECAST_FPS             -> frames.frame_rate
    FRAMECAST_MAX_COUNT       -> frames.max_count_per_request
    FRAMECAST_FFMPEG          -> decoder.ffmpeg_binary
    FRAMECAST_DECODE_TIMEOUT  -> decoder.timeout_seconds
    FRAMECAST_PORT            -> server.port
    FRAMECAST_LOG_LEVEL       -> logging.level
    PORT                      -> server.port (Cloud Run)

Example:
    from framecast.config import settings

    print(settings.video.directory)
    print(settings.frame_geometry().frame_byte_size)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from framecast.models.geometry import FrameGeometry


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="framecast", description="Service name")
    version: str = Field(default="v0.1.0", description="API version")


class VideoConfig(BaseModel):
    """Source video catalog configuration."""

    directory: str = Field(
        default="./movies",
        description="Directory that request filenames are resolved against",
    )


class FrameConfig(BaseModel):
    """Output frame geometry (fixed for the lifetime of the process)."""

    width: int = Field(default=640, gt=0, description="Frame width in pixels")
    height: int = Field(default=360, gt=0, description="Frame height in pixels")
    frame_rate: float = Field(
        default=30.0,
        gt=0,
        description="Output FPS; maps frame indices to timestamps",
    )
    max_count_per_request: int = Field(
        default=300,
        ge=1,
        description="Maximum frames returned by one request",
    )


class DecoderConfig(BaseModel):
    """External decoder configuration."""

    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Watchdog per extraction (0 = disabled)",
    )
    read_chunk_size: int = Field(
        default=65536,
        ge=1,
        description="Max bytes per read from the decoder's stdout",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3069, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for framecast.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    video: VideoConfig = Field(default_factory=VideoConfig)
    frames: FrameConfig = Field(default_factory=FrameConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def frame_geometry(self) -> FrameGeometry:
        """Build the immutable geometry handed to the pipeline."""
        return FrameGeometry(
            width=self.frames.width,
            height=self.frames.height,
            frame_rate=self.frames.frame_rate,
        )


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        config_path = os.environ.get("FRAMECAST_CONFIG")
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Video catalog
    if env_dir := os.environ.get("FRAMECAST_VIDEO_DIR"):
        config_data.setdefault("video", {})["directory"] = env_dir

    # Frame geometry
    if env_width := os.environ.get("FRAMECAST_FRAME_WIDTH"):
        config_data.setdefault("frames", {})["width"] = int(env_width)
    if env_height := os.environ.get("FRAMECAST_FRAME_HEIGHT"):
        config_data.setdefault("frames", {})["height"] = int(env_height)
    if env_fps := os.environ.get("FRAMECAST_FPS"):
        config_data.setdefault("frames", {})["frame_rate"] = float(env_fps)
    if env_max := os.environ.get("FRAMECAST_MAX_COUNT"):
        config_data.setdefault("frames", {})["max_count_per_request"] = int(env_max)

    # Decoder
    if env_ffmpeg := os.environ.get("FRAMECAST_FFMPEG"):
        config_data.setdefault("decoder", {})["ffmpeg_binary"] = env_ffmpeg
    if env_timeout := os.environ.get("FRAMECAST_DECODE_TIMEOUT"):
        config_data.setdefault("decoder", {})["timeout_seconds"] = float(env_timeout)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("FRAMECAST_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("FRAMECAST_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
