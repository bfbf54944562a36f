"""
UdpCam Receiver Configuration
=============================

This module handles configuration loading for the scanline receiver.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    UDPCAM_HOST            -> receiver.host
    UDPCAM_PORT            -> receiver.port
    UDPCAM_RECV_BUFFER     -> receiver.recv_buffer_bytes
    UDPCAM_HONOR_FRAME_END -> assembly.honor_frame_end
    UDPCAM_SKIP_EMPTY      -> assembly.skip_empty_triggers
    UDPCAM_SNAPSHOT_FORMAT -> snapshot.format
    UDPCAM_SERVER_PORT     -> server.port
    UDPCAM_LOG_LEVEL       -> logging.level
    PORT                   -> server.port (container platforms)

Example:
    from udpcam.config import settings

    print(settings.receiver.port)
    print(settings.snapshot.format)
"""

import os
import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from udpcam.protocol import DEFAULT_PORT


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="udpcam-receiver", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class ReceiverConfig(BaseModel):
    """Datagram socket configuration."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(
        default=DEFAULT_PORT,
        ge=0,
        le=65535,
        description="UDP port the camera sends to (0 = ephemeral)",
    )
    recv_buffer_bytes: int = Field(
        default=4 * 1024 * 1024,
        ge=0,
        description="SO_RCVBUF size (0 = leave OS default)",
    )
    max_datagram_bytes: int = Field(
        default=65535,
        ge=16,
        le=65535,
        description="recvfrom buffer size",
    )
    log_every_n_drops: int = Field(
        default=100,
        ge=1,
        description="Log discarded datagrams at WARNING every N drops",
    )


class AssemblyConfig(BaseModel):
    """Frame assembly configuration."""

    honor_frame_end: bool = Field(
        default=True,
        description="Treat 0xDEADDEAD frame-end markers as completion triggers",
    )
    skip_empty_triggers: bool = Field(
        default=False,
        description="Ignore markers that arrive with no rows pending",
    )
    log_every_n_frames: int = Field(
        default=100,
        ge=1,
        description="Log a publish summary every N frames",
    )
    fps_smoothing_alpha: float = Field(
        default=0.2,
        gt=0,
        le=1.0,
        description="EMA smoothing factor for the reported frame rate (0, 1]",
    )


class SnapshotConfig(BaseModel):
    """Latest-frame snapshot encoding."""

    format: Literal["png", "jpg"] = Field(default="png", description="png or jpg")
    jpeg_quality: int = Field(default=90, ge=1, le=100, description="JPEG quality")


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8001, ge=1, le=65535, description="Bind port")
    ws_poll_interval_sec: float = Field(
        default=1.0,
        gt=0,
        description="Max wait for a new frame before a /ws/frames keepalive check",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the receiver service.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    receiver: ReceiverConfig = Field(default_factory=ReceiverConfig)
    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


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

    Raises:
        pydantic.ValidationError: If a value is out of range
    """
    # Find config file
    if config_path is None:
        env_path = os.environ.get("UDPCAM_CONFIG")
        search_paths = [
            Path(env_path) if env_path else None,
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path is not None and path.exists():
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

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Receiver settings
    if env_host := os.environ.get("UDPCAM_HOST"):
        config_data.setdefault("receiver", {})["host"] = env_host
    if env_port := os.environ.get("UDPCAM_PORT"):
        config_data.setdefault("receiver", {})["port"] = int(env_port)
    if env_rcvbuf := os.environ.get("UDPCAM_RECV_BUFFER"):
        config_data.setdefault("receiver", {})["recv_buffer_bytes"] = int(env_rcvbuf)

    # Assembly settings
    if env_end := os.environ.get("UDPCAM_HONOR_FRAME_END"):
        config_data.setdefault("assembly", {})["honor_frame_end"] = _parse_bool(env_end)
    if env_skip := os.environ.get("UDPCAM_SKIP_EMPTY"):
        config_data.setdefault("assembly", {})["skip_empty_triggers"] = _parse_bool(env_skip)

    # Snapshot settings
    if env_fmt := os.environ.get("UDPCAM_SNAPSHOT_FORMAT"):
        config_data.setdefault("snapshot", {})["format"] = env_fmt

    # Server settings (container platforms use PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("UDPCAM_SERVER_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("UDPCAM_LOG_LEVEL"):
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
