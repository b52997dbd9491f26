"""
Trailscope Configuration
========================

This module handles configuration for the trail, heatmap and render loop
components.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. trailscope.yaml / config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    TRAILSCOPE_MAX_TRAIL_LENGTH  -> display.max_trail_length
    TRAILSCOPE_FADE_WINDOW_MS    -> display.fade_window_ms
    TRAILSCOPE_CELL_SIZE         -> display.cell_size
    TRAILSCOPE_TARGET_FPS        -> loop.target_fps
    TRAILSCOPE_LOG_LEVEL         -> logging.level

Runtime Configuration:
    Settings are loaded once by the caller and handed to components
    explicitly. The tunables that may change while the viewer is running
    live on a ConfigSurface, which validates every setter and notifies
    subscribed components so they can re-derive state (for example,
    truncating trails when max_trail_length shrinks).

Example:
    from trailscope.config import ConfigSurface, load_config

    settings = load_config()
    surface_config = ConfigSurface(settings.display)
    surface_config.set_cell_size(25)
"""

import os
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from trailscope.colors import is_hex_color
from trailscope.errors import ValidationError
from trailscope.subscriptions import ListenerSet, Subscription


logger = logging.getLogger(__name__)


DEFAULT_TRAIL_PALETTE = [
    "#4CAF50",  # Green
    "#2196F3",  # Blue
    "#FF9800",  # Orange
    "#E91E63",  # Pink
    "#9C27B0",  # Purple
    "#00BCD4",  # Cyan
]

DEFAULT_HEATMAP_PALETTE = [
    "#1a1a2e",  # Very dark (no population)
    "#16213e",
    "#0f4c75",
    "#3282b8",
    "#bbe1fa",
    "#ffeb3b",
    "#ff9800",
    "#f44336",  # Red (high density)
]


# =============================================================================
# Configuration Models
# =============================================================================

class DisplayConfig(BaseModel):
    """Tunable display parameters read by every component."""

    model_config = ConfigDict(frozen=True)

    max_trail_length: int = Field(
        default=50,
        gt=0,
        description="Maximum samples retained per trail",
    )
    fade_window_ms: int = Field(
        default=10000,
        gt=0,
        description="Age beyond which samples are dropped and invisible",
    )
    trail_stroke_width: float = Field(
        default=2.0,
        gt=0,
        description="Stroke width for trail segments in surface pixels",
    )
    cell_size: int = Field(
        default=20,
        gt=0,
        description="Density grid bin size in surface pixels",
    )
    palette: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TRAIL_PALETTE),
        min_length=1,
        description="Trail colors, assigned round-robin",
    )
    heatmap_palette: List[str] = Field(
        default_factory=lambda: list(DEFAULT_HEATMAP_PALETTE),
        min_length=1,
        description="Heatmap gradient stops, low density first",
    )
    trails_visible: bool = Field(default=True, description="Paint trails")
    heatmap_visible: bool = Field(default=True, description="Paint heatmap")
    background_color: str = Field(
        default="#000000",
        description="Surface clear color when the heatmap is hidden",
    )

    @field_validator("palette", "heatmap_palette")
    @classmethod
    def validate_palette(cls, v: List[str]) -> List[str]:
        """Ensure every palette entry is a hex color."""
        for color in v:
            if not is_hex_color(color):
                raise ValueError(f"Palette entry is not a hex color: {color!r}")
        return v

    @field_validator("background_color")
    @classmethod
    def validate_background(cls, v: str) -> str:
        """Ensure background is a hex color."""
        if not is_hex_color(v):
            raise ValueError(f"Background is not a hex color: {v!r}")
        return v


class LoopConfig(BaseModel):
    """Render loop cadence configuration."""

    target_fps: int = Field(
        default=60,
        ge=1,
        le=240,
        description="Frames per second the loop schedules itself at",
    )
    density_refresh_interval_ms: int = Field(
        default=2000,
        ge=0,
        description="Minimum time between density rebins (0 = every frame)",
    )
    analysis_interval_ms: int = Field(
        default=1000,
        ge=500,
        le=5000,
        description="Minimum time between movement analysis runs",
    )
    log_every_n_frames: int = Field(
        default=300,
        ge=1,
        description="Log a frame summary every N frames",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for Trailscope.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    display: DisplayConfig = Field(default_factory=DisplayConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
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
        config_path: Path to a YAML file. If None, searches common locations.

    Returns:
        Settings: Loaded configuration

    Raises:
        ValidationError: If the merged configuration is invalid
    """
    if config_path is None:
        search_paths = [
            Path("trailscope.yaml"),
            Path("config.yaml"),
            Path(__file__).parent.parent.parent / "trailscope.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: Dict[str, Any] = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    try:
        return Settings.model_validate(config_data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data.

    Values stay strings; Settings validation coerces and range-checks them.
    """

    # Display settings
    if env_len := os.environ.get("TRAILSCOPE_MAX_TRAIL_LENGTH"):
        config_data.setdefault("display", {})["max_trail_length"] = env_len
    if env_fade := os.environ.get("TRAILSCOPE_FADE_WINDOW_MS"):
        config_data.setdefault("display", {})["fade_window_ms"] = env_fade
    if env_cell := os.environ.get("TRAILSCOPE_CELL_SIZE"):
        config_data.setdefault("display", {})["cell_size"] = env_cell

    # Loop settings
    if env_fps := os.environ.get("TRAILSCOPE_TARGET_FPS"):
        config_data.setdefault("loop", {})["target_fps"] = env_fps

    # Logging settings
    if env_log := os.environ.get("TRAILSCOPE_LOG_LEVEL"):
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
# Runtime Configuration Surface
# =============================================================================

class ConfigSurface:
    """
    Holder for the live DisplayConfig.

    Mutated only through explicit setters. Each setter validates the new
    value against DisplayConfig; on failure a ValidationError is raised and
    the previous configuration is kept. On a change, subscribers of that
    field are notified with the new value.

    Attributes:
        config: Current (immutable) DisplayConfig snapshot

    Example:
        surface_config = ConfigSurface()
        sub = surface_config.subscribe("cell_size", grid_rebuild)
        surface_config.set_cell_size(10)   # grid_rebuild(10)
        sub.close()
    """

    def __init__(self, config: Optional[DisplayConfig] = None) -> None:
        self._config = config if config is not None else DisplayConfig()
        self._listeners: Dict[str, ListenerSet] = {}

    @property
    def config(self) -> DisplayConfig:
        return self._config

    # Read accessors -----------------------------------------------------

    @property
    def max_trail_length(self) -> int:
        return self._config.max_trail_length

    @property
    def fade_window_ms(self) -> int:
        return self._config.fade_window_ms

    @property
    def trail_stroke_width(self) -> float:
        return self._config.trail_stroke_width

    @property
    def cell_size(self) -> int:
        return self._config.cell_size

    @property
    def palette(self) -> List[str]:
        return list(self._config.palette)

    @property
    def heatmap_palette(self) -> List[str]:
        return list(self._config.heatmap_palette)

    @property
    def trails_visible(self) -> bool:
        return self._config.trails_visible

    @property
    def heatmap_visible(self) -> bool:
        return self._config.heatmap_visible

    @property
    def background_color(self) -> str:
        return self._config.background_color

    # Setters ------------------------------------------------------------

    def set_max_trail_length(self, value: int) -> None:
        self._update("max_trail_length", value)

    def set_fade_window(self, value: int) -> None:
        self._update("fade_window_ms", value)

    def set_trail_stroke_width(self, value: float) -> None:
        self._update("trail_stroke_width", value)

    def set_cell_size(self, value: int) -> None:
        self._update("cell_size", value)

    def set_palette(self, value: List[str]) -> None:
        self._update("palette", list(value))

    def set_heatmap_palette(self, value: List[str]) -> None:
        self._update("heatmap_palette", list(value))

    def set_trails_visible(self, value: bool) -> None:
        self._update("trails_visible", value)

    def set_heatmap_visible(self, value: bool) -> None:
        self._update("heatmap_visible", value)

    # Subscriptions ------------------------------------------------------

    def subscribe(self, field: str, callback: Callable[[Any], None]) -> Subscription:
        """
        Listen for changes of one field.

        Args:
            field: DisplayConfig field name
            callback: Called with the new value after a change

        Returns:
            Subscription handle owned by the caller

        Raises:
            ValidationError: If the field does not exist
        """
        if field not in DisplayConfig.model_fields:
            raise ValidationError(f"Unknown config field: {field!r}")

        listeners = self._listeners.setdefault(field, ListenerSet(f"config.{field}"))
        return listeners.add(callback)

    def _update(self, field: str, value: Any) -> None:
        """Validate and apply a single field change."""
        data = self._config.model_dump()
        data[field] = value

        try:
            new_config = DisplayConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for {field}: {value!r}") from e

        old_value = getattr(self._config, field)
        self._config = new_config
        new_value = getattr(new_config, field)

        if new_value != old_value:
            logger.debug(f"Config {field}: {old_value!r} -> {new_value!r}")
            listeners = self._listeners.get(field)
            if listeners is not None:
                listeners.notify(new_value)
