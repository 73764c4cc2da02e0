"""
FishFlow Configuration
======================

This module handles configuration loading and validation.

Configuration Sources (in order of precedence):
    1. Explicit overrides (command line)
    2. Environment variables
    3. YAML config files (later files win)
    4. Default values (lowest priority)

Environment Variable Mapping:
    FISHFLOW_INPUT_FILE   -> input.file
    FISHFLOW_BACKGROUND   -> input.background
    FISHFLOW_SCALE        -> calc.scale
    FISHFLOW_WINDOW_SIZE  -> calc.window_size
    FISHFLOW_GRID_WIDTH   -> output.width
    FISHFLOW_GRID_HEIGHT  -> output.height
    FISHFLOW_OUTPUT_FILE  -> output.file
    FISHFLOW_LOG_LEVEL    -> logging.level

Video-dependent values (crop rectangle, frame range) are only known once
the input is opened; resolve_crop and resolve_frame_range turn the
configured values into a CropRect and a FrameRange.

Example:
    from fishflow.config import load_config

    settings = load_config("school.yaml")
    print(settings.calc.window_size)
    print(settings.output.width, settings.output.height)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from fishflow.errors import InvalidConfigurationError
from fishflow.models.frames import FrameRange
from fishflow.models.grid import CropRect
from fishflow.models.result import AlignmentMode


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class InputConfig(BaseModel):
    """Input video and background."""

    file: Optional[str] = Field(default=None, description="Path of the input video")
    background: Optional[str] = Field(
        default=None,
        description="Path of a grayscale background image",
    )


class FrameConfig(BaseModel):
    """Frames of interest (1-based)."""

    start: int = Field(default=1, ge=0, description="First frame of interest")
    stop: Optional[int] = Field(default=None, ge=0, description="Last frame of interest")
    step: int = Field(default=1, ge=0, description="Step between frames of interest")
    count: Optional[int] = Field(default=None, ge=0, description="Number of frames of interest")


class CropConfig(BaseModel):
    """Crop rectangle. Missing values are derived from the video size."""

    xmin: int = Field(default=0, ge=0, description="Min x coord of crop rectangle")
    ymin: int = Field(default=0, ge=0, description="Min y coord of crop rectangle")
    xmax: Optional[int] = Field(default=None, ge=0, description="Max x coord of crop rectangle")
    ymax: Optional[int] = Field(default=None, ge=0, description="Max y coord of crop rectangle")
    width: Optional[int] = Field(default=None, ge=0, description="Width of crop rectangle")
    height: Optional[int] = Field(default=None, ge=0, description="Height of crop rectangle")


class CalcConfig(BaseModel):
    """Velocity estimation parameters."""

    scale: float = Field(default=100.0, description="Velocity scale factor")
    window_size: int = Field(
        default=45,
        ge=1,
        description="Gaussian window size (forced odd)",
    )
    singular_tolerance: float = Field(
        default=1e-9,
        ge=0,
        description="det(M) <= tol * trace(M)^2 marks a singular cell",
    )
    alignment: AlignmentMode = Field(
        default=AlignmentMode.NONE,
        description="Alignment strategy",
    )

    @field_validator("window_size")
    @classmethod
    def _force_odd(cls, value: int) -> int:
        return value | 1


class VideoOutputConfig(BaseModel):
    """Output videos, one per plot kind."""

    velocity: Optional[str] = None
    density: Optional[str] = None
    velocity_original: Optional[str] = None
    density_original: Optional[str] = None
    velocity_density: Optional[str] = None
    velocity_density_original: Optional[str] = None


class BackgroundOutputConfig(BaseModel):
    """Computed background image output."""

    file: Optional[str] = Field(default=None, description="Where to write the mean background")
    cropped: bool = Field(default=False, description="Crop the background to the ROI")


class OutputConfig(BaseModel):
    """Output grid and destinations."""

    file: Optional[str] = Field(
        default=None,
        description="Array store path ('' derives it from the input path)",
    )
    width: int = Field(default=128, ge=1, description="Horizontal grid resolution")
    height: int = Field(default=64, ge=1, description="Vertical grid resolution")
    live: bool = Field(default=False, description="Display a live window")
    video: VideoOutputConfig = Field(default_factory=VideoOutputConfig)
    background: BackgroundOutputConfig = Field(default_factory=BackgroundOutputConfig)


class PlotConfig(BaseModel):
    """Arrow style for velocity plots."""

    arrow_thickness: int = Field(default=2, ge=1, description="Thickness of arrows")
    arrow_head_size: int = Field(default=4, ge=0, description="Size of arrow heads")
    arrow_overlap: bool = Field(default=True, description="Allow arrows to overlap")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    progress_every: int = Field(default=50, ge=1, description="Log progress every N frames")


class Settings(BaseModel):
    """
    Main settings class for FishFlow.

    Loads configuration from YAML files and environment variables.
    """

    input: InputConfig = Field(default_factory=InputConfig)
    frame: FrameConfig = Field(default_factory=FrameConfig)
    crop: CropConfig = Field(default_factory=CropConfig)
    calc: CalcConfig = Field(default_factory=CalcConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    plot: PlotConfig = Field(default_factory=PlotConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(
    config_path: Optional[Union[str, Sequence[str]]] = None,
    overrides: Optional[dict] = None,
) -> Settings:
    """
    Load configuration from YAML files and environment variables.

    Args:
        config_path: Path or paths of YAML files. If None, searches
            fishflow.yaml and config.yaml in the working directory.
        overrides: Nested dict applied last (e.g. from the command line)

    Returns:
        Settings: Loaded configuration

    Raises:
        InvalidConfigurationError: If a file is missing or a value is invalid
    """
    paths = config_files(config_path)

    config_data: dict = {}
    for path in paths:
        if not path.exists():
            raise InvalidConfigurationError(f"Config file not found: {path}")
        logger.debug(f"Reading config file: {path}")
        with open(path, "r") as f:
            _deep_merge(config_data, yaml.safe_load(f) or {})

    if not paths:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)
    if overrides:
        _deep_merge(config_data, overrides)

    try:
        return Settings.model_validate(config_data)
    except ValidationError as e:
        raise InvalidConfigurationError(str(e)) from e


def config_files(config_path: Optional[Union[str, Sequence[str]]] = None) -> List[Path]:
    """
    Config files read by load_config, in merge order.

    Without an explicit path, the first existing of fishflow.yaml and
    config.yaml in the working directory is used, if any.
    """
    if config_path is None:
        return [p for p in (Path("fishflow.yaml"), Path("config.yaml")) if p.exists()][:1]
    if isinstance(config_path, (str, Path)):
        return [Path(config_path)]
    return [Path(p) for p in config_path]


def _deep_merge(target: dict, source: dict) -> None:
    """Merge source into target, recursing into nested dicts."""
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Input settings
    if env_input := os.environ.get("FISHFLOW_INPUT_FILE"):
        config_data.setdefault("input", {})["file"] = env_input
    if env_bg := os.environ.get("FISHFLOW_BACKGROUND"):
        config_data.setdefault("input", {})["background"] = env_bg

    # Calc settings
    if env_scale := os.environ.get("FISHFLOW_SCALE"):
        config_data.setdefault("calc", {})["scale"] = float(env_scale)
    if env_window := os.environ.get("FISHFLOW_WINDOW_SIZE"):
        config_data.setdefault("calc", {})["window_size"] = int(env_window)

    # Output settings
    if env_width := os.environ.get("FISHFLOW_GRID_WIDTH"):
        config_data.setdefault("output", {})["width"] = int(env_width)
    if env_height := os.environ.get("FISHFLOW_GRID_HEIGHT"):
        config_data.setdefault("output", {})["height"] = int(env_height)
    if (env_out := os.environ.get("FISHFLOW_OUTPUT_FILE")) is not None:
        config_data.setdefault("output", {})["file"] = env_out

    # Logging settings
    if env_log := os.environ.get("FISHFLOW_LOG_LEVEL"):
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
# Video-Dependent Resolution
# =============================================================================

def resolve_crop(crop: CropConfig, max_width: int, max_height: int) -> CropRect:
    """
    Resolve the configured crop against the video size.

    Rules:
        1. xmin < xmax and ymin < ymax
        2. width > 0 and height > 0
        3. If xmax - xmin != width (or y likewise) the smaller
           rectangle is used, with a warning
        4. Rectangles past the video edge are clamped, with a warning

    Args:
        crop: Configured crop values
        max_width: Video frame width
        max_height: Video frame height

    Returns:
        CropRect inside the video

    Raises:
        InvalidConfigurationError: If the rectangle is empty or inverted
    """
    xmin, ymin = crop.xmin, crop.ymin
    xmax = crop.xmax if crop.xmax is not None else max_width
    ymax = crop.ymax if crop.ymax is not None else max_height
    width = crop.width if crop.width is not None else max_width - xmin
    height = crop.height if crop.height is not None else max_height - ymin

    if xmin >= xmax:
        raise InvalidConfigurationError(f"crop xmin >= xmax ({xmin} >= {xmax})")
    if ymin >= ymax:
        raise InvalidConfigurationError(f"crop ymin >= ymax ({ymin} >= {ymax})")
    if width <= 0:
        raise InvalidConfigurationError("crop width must be positive")
    if height <= 0:
        raise InvalidConfigurationError("crop height must be positive")

    if xmax - xmin > width:
        xmax = xmin + width
        if crop.xmax is not None:
            logger.warning(f"crop: xmax - xmin > width, setting xmax to {xmax}")
    elif xmax - xmin < width:
        width = xmax - xmin
        if crop.width is not None:
            logger.warning(f"crop: xmax - xmin < width, setting width to {width}")

    if ymax - ymin > height:
        ymax = ymin + height
        if crop.ymax is not None:
            logger.warning(f"crop: ymax - ymin > height, setting ymax to {ymax}")
    elif ymax - ymin < height:
        height = ymax - ymin
        if crop.height is not None:
            logger.warning(f"crop: ymax - ymin < height, setting height to {height}")

    if xmin >= max_width or ymin >= max_height:
        raise InvalidConfigurationError(
            f"crop origin ({xmin}, {ymin}) is outside the {max_width}x{max_height} video"
        )

    if xmax > max_width:
        logger.warning(f"crop.xmax is larger than the video width, setting it to {max_width}")
        width = max_width - xmin
    if ymax > max_height:
        logger.warning(f"crop.ymax is larger than the video height, setting it to {max_height}")
        height = max_height - ymin

    return CropRect(xmin=xmin, ymin=ymin, width=width, height=height)


def resolve_frame_range(frame: FrameConfig, max_count: int) -> FrameRange:
    """
    Resolve the configured frames of interest against the video length.

    Rules:
        1. 1 <= start <= stop <= max_count
        2. step >= 1
        3. stop and count must agree when both are given
        4. At least two frames are needed to compute optical flow

    Args:
        frame: Configured frame values
        max_count: Number of frames in the video

    Returns:
        FrameRange

    Raises:
        InvalidConfigurationError: If the range is impossible
    """
    start, step = frame.start, frame.step
    stop = frame.stop if frame.stop is not None else max_count

    if start == 0:
        raise InvalidConfigurationError("frame start cannot be zero (frames start at one)")
    if step < 1:
        raise InvalidConfigurationError("frame step cannot be less than one")
    if start > stop:
        raise InvalidConfigurationError(f"frame start ({start}) is after frame stop ({stop})")
    if stop > max_count:
        raise InvalidConfigurationError(
            f"frame stop ({stop}) is past the last frame ({max_count})"
        )

    count = frame.count if frame.count is not None else (stop - start + 1) // step
    if (stop - start + 1) // step != count:
        if frame.stop is not None and frame.count is not None:
            raise InvalidConfigurationError("both frame stop and frame count specified and they disagree")
        stop = start + (count - 1) * step

    if start == stop or count < 2:
        raise InvalidConfigurationError("not enough frames to process (at least two are needed)")
    if stop > max_count:
        logger.warning(f"frame stop is past the last frame, setting it to {max_count}")
        stop = max_count
        count = (stop - start) // step + 1

    return FrameRange(start=start, stop=stop, step=step, count=count)
