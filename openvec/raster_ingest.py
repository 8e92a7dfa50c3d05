"""Raster image decoding and normalization to straight-alpha RGBA."""
import io
import logging
import math
from typing import Optional

import cv2
import numpy as np
from PIL import Image
from PIL import ImageOps
from PIL import UnidentifiedImageError

from openvec.types import PixelBuffer, DecodeError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = frozenset({"PNG", "JPEG", "BMP", "GIF", "WEBP", "TIFF"})


def decode_image(image_bytes: bytes, max_pixels: Optional[int] = None) -> PixelBuffer:
    """
    Decode encoded image bytes into a PixelBuffer.

    Applies EXIF orientation, converts every mode to straight-alpha RGBA
    and downsamples with area averaging when the image has more than
    ``max_pixels`` pixels.

    Args:
        image_bytes: Encoded image (PNG, JPEG, BMP, GIF, WebP or TIFF)
        max_pixels: Pixel-count ceiling; None disables downsampling

    Returns:
        PixelBuffer

    Raises:
        DecodeError: If the bytes are empty, malformed or unsupported
    """
    if not isinstance(image_bytes, (bytes, bytearray, memoryview)):
        raise DecodeError(f"Expected image bytes, got {type(image_bytes).__name__}")
    if len(image_bytes) == 0:
        raise DecodeError("Image data is empty")

    try:
        with Image.open(io.BytesIO(bytes(image_bytes))) as img:
            if img.format not in SUPPORTED_FORMATS:
                raise DecodeError(f"Unsupported image format: {img.format}")

            if getattr(img, "n_frames", 1) > 1:
                logger.warning(f"Animated {img.format} with {img.n_frames} frames, using the first")
                img.seek(0)

            img.load()
            img = ImageOps.exif_transpose(img)
            rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
    except DecodeError:
        raise
    except Image.DecompressionBombError as e:
        raise DecodeError(f"Image too large to decode safely: {e}") from e
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e

    return _to_buffer(rgba, max_pixels)


def buffer_from_array(image: np.ndarray, max_pixels: Optional[int] = None) -> PixelBuffer:
    """
    Create a PixelBuffer from a numpy array.

    Args:
        image: Array of shape (H, W), (H, W, 3) or (H, W, 4), either uint8
            or float with values in [0, 1]
        max_pixels: Pixel-count ceiling; None disables downsampling

    Returns:
        PixelBuffer

    Raises:
        DecodeError: If the array shape or dtype is unsupported
    """
    image = np.asarray(image)

    if image.ndim == 2:
        # Grayscale - replicate to RGB
        image = np.stack([image] * 3, axis=-1)

    if image.ndim != 3:
        raise DecodeError(f"Expected 2D or 3D array, got {image.ndim}D")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise DecodeError("Image has no pixels")

    if image.dtype != np.uint8:
        if not np.issubdtype(image.dtype, np.floating):
            raise DecodeError(f"Expected uint8 or float array, got {image.dtype}")
        image = np.round(np.clip(image, 0.0, 1.0) * 255.0).astype(np.uint8)

    if image.shape[2] == 3:
        alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
        image = np.concatenate([image, alpha], axis=-1)
    elif image.shape[2] != 4:
        raise DecodeError(f"Expected 3 or 4 channels, got {image.shape[2]}")

    return _to_buffer(np.ascontiguousarray(image), max_pixels)


def _to_buffer(rgba: np.ndarray, max_pixels: Optional[int]) -> PixelBuffer:
    height, width = rgba.shape[:2]

    if max_pixels is not None and width * height > max_pixels:
        scale = math.sqrt(max_pixels / float(width * height))
        new_width = max(1, int(width * scale))
        new_height = max(1, int(height * scale))
        logger.info(
            f"Downsampling {width}x{height} to {new_width}x{new_height} "
            f"(limit {max_pixels:,} pixels)"
        )
        pixels = area_downsample(rgba, new_width, new_height)
    else:
        pixels = rgba.copy()

    return PixelBuffer(
        width=pixels.shape[1],
        height=pixels.shape[0],
        pixels=pixels,
        source_width=width,
        source_height=height,
    )


def area_downsample(rgba: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Shrink an RGBA image by area averaging.

    Colors are averaged premultiplied so transparent pixels do not bleed
    their (meaningless) RGB into the result.
    """
    rgba_f = rgba.astype(np.float32) / 255.0
    alpha = rgba_f[..., 3:4]
    premultiplied = np.concatenate([rgba_f[..., :3] * alpha, alpha], axis=-1)

    resized = cv2.resize(premultiplied, (width, height), interpolation=cv2.INTER_AREA)
    if resized.ndim == 2:
        resized = resized[..., np.newaxis]

    out_alpha = resized[..., 3:4]
    safe_alpha = np.where(out_alpha > 1e-6, out_alpha, 1.0)
    rgb = np.where(out_alpha > 1e-6, resized[..., :3] / safe_alpha, 0.0)

    out = np.concatenate([rgb, out_alpha], axis=-1)
    return np.round(np.clip(out, 0.0, 1.0) * 255.0).astype(np.uint8)


def has_partial_alpha(buffer: PixelBuffer) -> bool:
    """True when some pixel is neither fully opaque nor fully transparent."""
    alpha = buffer.alpha
    return bool(np.any((alpha > 0) & (alpha < 255)))


def premultiplied_float(buffer: PixelBuffer) -> np.ndarray:
    """Premultiplied RGBA as float64 in [0, 1], shape (H, W, 4)."""
    rgba = buffer.pixels.astype(np.float64) / 255.0
    rgba[..., :3] *= rgba[..., 3:4]
    return rgba
