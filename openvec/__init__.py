"""Raster-to-SVG vectorizer package."""
from openvec.options import (
    Mode,
    VectorizeOptions,
    default_options,
    preset_options,
)
from openvec.pipeline import Vectorizer, vectorize, png_to_svg
from openvec.types import (
    PixelBuffer,
    VectorDocument,
    VectorizeError,
    DecodeError,
    OptionsError,
    InvalidGeometry,
    InternalError,
    CancelledError,
)

__version__ = "0.1.0"

__all__ = [
    "Mode",
    "VectorizeOptions",
    "default_options",
    "preset_options",
    "Vectorizer",
    "vectorize",
    "png_to_svg",
    "PixelBuffer",
    "VectorDocument",
    "VectorizeError",
    "DecodeError",
    "OptionsError",
    "InvalidGeometry",
    "InternalError",
    "CancelledError",
]
