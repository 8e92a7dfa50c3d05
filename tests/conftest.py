"""Shared fixtures: small synthetic images encoded in memory."""
import io

import numpy as np
import pytest
from PIL import Image


RED = (255, 0, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def encode_png(array: np.ndarray) -> bytes:
    """Encode an (H, W, 3) or (H, W, 4) uint8 array as PNG bytes."""
    array = np.asarray(array, dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(array).save(buf, format="PNG")
    return buf.getvalue()


def solid(height: int, width: int, color, alpha: int = 255) -> np.ndarray:
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[..., :3] = color
    image[..., 3] = alpha
    return image


@pytest.fixture
def make_png():
    """Factory fixture turning a numpy image into PNG bytes."""
    return encode_png


@pytest.fixture
def red_blue_image():
    """8x8 image, left half red, right half blue."""
    image = solid(8, 8, RED)
    image[:, 4:, :3] = BLUE
    return image


@pytest.fixture
def ring_image():
    """16x16 white canvas with a black ring (outer 12x12, inner 4x4 hole)."""
    image = solid(16, 16, WHITE)
    image[2:14, 2:14, :3] = BLACK
    image[6:10, 6:10, :3] = WHITE
    return image


@pytest.fixture
def rectangle_image():
    """Opaque single-color 20x12 image."""
    return solid(12, 20, (30, 120, 200))


@pytest.fixture
def disc_image():
    """Anti-aliased red disc on a transparent 40x40 canvas."""
    size = 40
    ys, xs = np.mgrid[0:size, 0:size] + 0.5
    dist = np.hypot(xs - 20.0, ys - 20.0)
    coverage = np.clip(14.0 - dist + 0.5, 0.0, 1.0)
    image = solid(size, size, RED)
    image[..., 3] = np.round(coverage * 255).astype(np.uint8)
    return image
