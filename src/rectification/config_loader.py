"""
Configuration loader with Pydantic validation for the Rectification module.

Loads rectification settings from config.yaml and validates them with
Pydantic models that also supply defaults for omitted keys.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import cv2
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from src.rectification.types import OutputSpec
from src.utils.constants import (
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OUTPUT_WIDTH,
    DEFAULT_ZOOM,
    EXPECTED_MARKER_IDS,
    MIN_ZOOM,
)
from src.utils.io import load_yaml

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

INTERPOLATION_FLAGS = {
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "nearest": cv2.INTER_NEAREST,
    "area": cv2.INTER_AREA,
    "lanczos": cv2.INTER_LANCZOS4,
}


class OutputConfig(BaseModel):
    """Default output frame and zoom adjustment range.

    Attributes:
        width: Output width in pixels
        height: Output height in pixels
        zoom: Initial zoom factor
        zoom_min: Lowest zoom a session may step down to
        zoom_max: Highest zoom a session may step up to
        zoom_step: Increment applied by zoom in/out
    """

    width: int = Field(default=DEFAULT_OUTPUT_WIDTH, gt=0)
    height: int = Field(default=DEFAULT_OUTPUT_HEIGHT, gt=0)
    zoom: float = Field(default=DEFAULT_ZOOM, ge=MIN_ZOOM)
    zoom_min: float = Field(default=1.0, ge=MIN_ZOOM)
    zoom_max: float = Field(default=2.5, ge=MIN_ZOOM)
    zoom_step: float = Field(default=0.1, gt=0.0)

    @model_validator(mode="after")
    def _check_zoom_range(self) -> "OutputConfig":
        if self.zoom_min > self.zoom_max:
            raise ValueError(
                f"zoom_min ({self.zoom_min}) must not exceed zoom_max ({self.zoom_max})"
            )
        if not self.zoom_min <= self.zoom <= self.zoom_max:
            raise ValueError(
                f"zoom ({self.zoom}) must lie within [{self.zoom_min}, {self.zoom_max}]"
            )
        return self

    def to_output_spec(self) -> OutputSpec:
        return OutputSpec(width=self.width, height=self.height, zoom=self.zoom)


class ResizeConfig(BaseModel):
    """Working-resolution bound applied before detection.

    Attributes:
        max_width: Maximum working width (None: use the requested output width)
        max_height: Maximum working height (None: use the requested output height)
        interpolation: Interpolation used when shrinking
    """

    max_width: Optional[int] = Field(default=None, gt=0)
    max_height: Optional[int] = Field(default=None, gt=0)
    interpolation: Literal["linear", "cubic", "nearest", "area", "lanczos"] = "area"


class DetectionConfig(BaseModel):
    """Marker detector configuration.

    Attributes:
        dictionary: Name of a predefined ArUco dictionary (cv2.aruco.DICT_*)
        parameters: Overrides for cv2.aruco.DetectorParameters attributes
        expected_ids: Marker IDs at TL, TR, BR, BL (fixed print convention)
    """

    dictionary: str = "DICT_4X4_50"
    parameters: Dict[str, Any] = Field(default_factory=dict)
    expected_ids: List[int] = Field(default_factory=lambda: list(EXPECTED_MARKER_IDS))

    @field_validator("dictionary")
    @classmethod
    def _check_dictionary_name(cls, v: str) -> str:
        if not v.startswith("DICT_"):
            raise ValueError(f"Invalid dictionary name: {v}. Expected a DICT_* name")
        return v

    @field_validator("expected_ids")
    @classmethod
    def _check_expected_ids(cls, v: List[int]) -> List[int]:
        if list(v) != list(EXPECTED_MARKER_IDS):
            raise ValueError(
                f"expected_ids must be {list(EXPECTED_MARKER_IDS)}; the corner "
                f"assignment is fixed by how markers are printed, got {v}"
            )
        return v


class GeometryConfig(BaseModel):
    """Corner resolution and warp configuration.

    Attributes:
        reference_point: Marker point used as quad corner ("outer_corner" or "center")
        margin_anchor: Where the zoom margin goes ("center" or "top_left")
        warp_interpolation: Interpolation used by the perspective warp
        border_value: Fill colour for pixels mapped from outside the source
        min_quad_area: Quads smaller than this (px^2) are degenerate
    """

    reference_point: Literal["outer_corner", "center"] = "outer_corner"
    margin_anchor: Literal["center", "top_left"] = "center"
    warp_interpolation: Literal["linear", "cubic", "nearest", "area", "lanczos"] = (
        "linear"
    )
    border_value: List[int] = Field(default_factory=lambda: [0, 0, 0])
    min_quad_area: float = Field(default=1.0, ge=0.0)

    @field_validator("border_value")
    @classmethod
    def _check_border_value(cls, v: List[int]) -> List[int]:
        if len(v) not in (1, 3) or any(not 0 <= c <= 255 for c in v):
            raise ValueError(
                f"border_value must be 1 or 3 integers in [0, 255], got {v}"
            )
        return v


class RectificationConfig(BaseModel):
    """Complete rectification module configuration."""

    output: OutputConfig = Field(default_factory=OutputConfig)
    resize: ResizeConfig = Field(default_factory=ResizeConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    geometry: GeometryConfig = Field(default_factory=GeometryConfig)


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> RectificationConfig:
    """
    Load rectification configuration from YAML file.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated RectificationConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid or has wrongly typed fields.

    Example:
        >>> config = load_config()
        >>> print(config.output.width, config.output.height)
        600 300
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading rectification config from {config_path}")

    raw_config = load_yaml(config_path)

    if not isinstance(raw_config, dict):
        raise ValueError(
            f"Invalid configuration file: expected a mapping, got {type(raw_config).__name__}"
        )

    try:
        config = RectificationConfig(**raw_config)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration file: {e}") from e

    logger.info("Successfully loaded rectification configuration")
    return config


def get_default_config() -> RectificationConfig:
    """
    Get default configuration from the bundled config.yaml file.

    Falls back to model defaults if the bundled file is missing.
    """
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.warning(f"{DEFAULT_CONFIG_PATH} not found, using built-in defaults")
    return RectificationConfig()


def get_interpolation_flag(name: str) -> int:
    """
    Map an interpolation name from the config to its OpenCV flag.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return INTERPOLATION_FLAGS[name]
    except KeyError:
        raise ValueError(
            f"Invalid interpolation: {name}. Must be one of {list(INTERPOLATION_FLAGS)}"
        ) from None
