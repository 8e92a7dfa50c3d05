"""Vectorization options, mode presets and validation."""
import dataclasses
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from openvec.types import OptionsError


MIN_COLORS = 2
MAX_COLORS = 64
MAX_TOLERANCE = 100.0
DEFAULT_MAX_PIXELS = 2048 * 2048

# Largest speckle (in pixels) discarded at detail=0 on a reference-size canvas
MAX_SPECKLE_AREA = 32
REFERENCE_CANVAS = 256 * 256


class Mode(Enum):
    """Rendering mode; selects a parameter bundle from MODE_PRESETS."""
    LOGO = "logo"
    POSTER = "poster"
    PIXEL_ART = "pixel-art"

    @classmethod
    def parse(cls, value: Any) -> "Mode":
        if isinstance(value, Mode):
            return value
        if not isinstance(value, str):
            raise OptionsError(f"mode must be a string, got {type(value).__name__}")
        key = value.strip().lower().replace("_", "-")
        mode = _MODE_ALIASES.get(key)
        if mode is None:
            raise OptionsError("mode must be one of: logo, poster, pixel")
        return mode


_MODE_ALIASES = {
    "logo": Mode.LOGO,
    "poster": Mode.POSTER,
    "pixel": Mode.PIXEL_ART,
    "pixel-art": Mode.PIXEL_ART,
    "pixelart": Mode.PIXEL_ART,
}


@dataclass(frozen=True)
class ModePreset:
    """Per-mode scaling of the user-facing options."""
    tolerance_scale: float
    smoothness_scale: float
    refine_boundaries: bool
    fit_curves: bool
    corner_angle: float   # interior angle (degrees) below which an anchor is a corner
    speckle_scale: float


MODE_PRESETS = {
    Mode.LOGO: ModePreset(
        tolerance_scale=1.0,
        smoothness_scale=1.0,
        refine_boundaries=True,
        fit_curves=True,
        corner_angle=100.0,
        speckle_scale=1.0,
    ),
    Mode.POSTER: ModePreset(
        tolerance_scale=0.75,
        smoothness_scale=0.8,
        refine_boundaries=True,
        fit_curves=True,
        corner_angle=100.0,
        speckle_scale=0.5,
    ),
    Mode.PIXEL_ART: ModePreset(
        tolerance_scale=0.2,
        smoothness_scale=0.0,
        refine_boundaries=False,
        fit_curves=False,
        corner_angle=180.0,
        speckle_scale=0.0,
    ),
}


def _check_int(name: str, value: Any, low: int, high: Optional[int] = None) -> None:
    if value is None:
        raise OptionsError(f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise OptionsError(f"{name} must be an integer, got {value!r}")
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f">= {low}"
        raise OptionsError(f"{name} must be {bound}, got {value}")


def _check_real(name: str, value: Any, low: float, high: float, low_open: bool = False) -> None:
    if value is None:
        raise OptionsError(f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise OptionsError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise OptionsError(f"{name} must be finite, got {value}")
    too_low = value <= low if low_open else value < low
    if too_low or value > high:
        opener = "(" if low_open else "["
        raise OptionsError(f"{name} must be in {opener}{low}, {high}], got {value}")


@dataclass(frozen=True)
class VectorizeOptions:
    """
    User-facing options for one vectorization run.

    Values are validated on construction; out-of-range values raise
    OptionsError and are never clamped.
    """
    max_colors: int = 8
    mode: Mode = Mode.LOGO
    simplification_tolerance: float = 1.5
    smoothness: float = 0.5
    detail: float = 0.5
    max_pixels: Optional[int] = DEFAULT_MAX_PIXELS

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        _check_int("colors", self.max_colors, MIN_COLORS, MAX_COLORS)
        if not isinstance(self.mode, Mode):
            raise OptionsError(f"mode must be a Mode, got {self.mode!r}")
        _check_real("tolerance", self.simplification_tolerance, 0.0, MAX_TOLERANCE, low_open=True)
        _check_real("smoothness", self.smoothness, 0.0, 1.0)
        _check_real("detail", self.detail, 0.0, 1.0)
        if self.max_pixels is not None:
            _check_int("max_pixels", self.max_pixels, 1)

    @property
    def preset(self) -> ModePreset:
        return MODE_PRESETS[self.mode]

    @property
    def effective_tolerance(self) -> float:
        """Simplification tolerance after mode and detail scaling."""
        return self.simplification_tolerance * self.preset.tolerance_scale * (1.5 - self.detail)

    @property
    def effective_smoothness(self) -> float:
        if not self.preset.fit_curves:
            return 0.0
        return min(1.0, self.smoothness * self.preset.smoothness_scale)

    def min_region_area(self, width: int, height: int) -> int:
        """Regions smaller than this many pixels are dropped."""
        canvas_scale = min(1.0, (width * height) / REFERENCE_CANVAS)
        speckle = (1.0 - self.detail) * MAX_SPECKLE_AREA * self.preset.speckle_scale * canvas_scale
        return max(1, int(round(speckle)))

    def merged(self, **overrides) -> "VectorizeOptions":
        """Copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "mode" in changes:
            changes["mode"] = Mode.parse(changes["mode"])
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(
        cls,
        record: Optional[Mapping[str, Any]],
        base: Optional["VectorizeOptions"] = None,
    ) -> "VectorizeOptions":
        """
        Build options from a flat record such as a parsed JSON object.

        Missing fields come from ``base`` (defaults when omitted). Unknown
        fields are rejected.

        Args:
            record: Mapping with any of colors/maxColors, mode,
                tolerance/simplificationTolerance, smoothness, detail,
                maxPixels
            base: Options supplying values for missing fields

        Returns:
            Validated VectorizeOptions

        Raises:
            OptionsError: On unknown fields or invalid values
        """
        base = base or cls()
        if record is None:
            return base
        if not isinstance(record, Mapping):
            raise OptionsError(f"options must be an object, got {type(record).__name__}")

        changes: Dict[str, Any] = {}
        for key, value in record.items():
            field_name = _RECORD_FIELDS.get(key)
            if field_name is None:
                raise OptionsError(f"unknown option: {key!r}")
            if field_name in changes:
                raise OptionsError(f"option given twice: {key!r}")
            if value is None and field_name != "max_pixels":
                raise OptionsError(f"{key} must not be null")
            changes[field_name] = Mode.parse(value) if field_name == "mode" else value
        return dataclasses.replace(base, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "colors": self.max_colors,
            "mode": self.mode.value,
            "tolerance": self.simplification_tolerance,
            "smoothness": self.smoothness,
            "detail": self.detail,
            "maxPixels": self.max_pixels,
        }


_RECORD_FIELDS = {
    "colors": "max_colors",
    "maxColors": "max_colors",
    "max_colors": "max_colors",
    "mode": "mode",
    "tolerance": "simplification_tolerance",
    "simplificationTolerance": "simplification_tolerance",
    "simplification_tolerance": "simplification_tolerance",
    "smoothness": "smoothness",
    "detail": "detail",
    "maxPixels": "max_pixels",
    "max_pixels": "max_pixels",
}


def default_options() -> VectorizeOptions:
    """Documented defaults: 8 colors, detail 0.5, smoothness 0.5, tolerance 1.5, logo mode."""
    return VectorizeOptions()


PRESETS = {
    "logo": VectorizeOptions(max_colors=6, detail=0.65, smoothness=0.7, mode=Mode.LOGO),
    "poster": VectorizeOptions(max_colors=16, detail=0.9, smoothness=0.5, mode=Mode.POSTER),
    "pixel": VectorizeOptions(max_colors=12, detail=0.4, smoothness=0.3, mode=Mode.PIXEL_ART),
}


def preset_options(name: str) -> VectorizeOptions:
    try:
        return PRESETS[name.lower()]
    except KeyError:
        raise OptionsError(f"unknown preset {name!r}; choose from {', '.join(PRESETS)}") from None
