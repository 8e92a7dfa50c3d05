"""Median-cut color quantization with exact nearest-color assignment."""
import logging
from typing import List, Tuple

import numpy as np

from openvec.types import PixelBuffer, QuantizeResult

logger = logging.getLogger(__name__)

# Pixels with alpha below this are treated as background and never labeled
ALPHA_THRESHOLD = 128

# Rows per chunk when computing color-to-palette distances
_CHUNK = 8192


def pack_rgb(rgb: np.ndarray) -> np.ndarray:
    """Pack (N, 3) uint8 colors into (N,) int64 keys."""
    rgb = rgb.astype(np.int64)
    return (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]


def unpack_rgb(keys: np.ndarray) -> np.ndarray:
    keys = keys.astype(np.int64)
    return np.stack([(keys >> 16) & 0xFF, (keys >> 8) & 0xFF, keys & 0xFF], axis=1).astype(np.uint8)


def quantize(buffer: PixelBuffer, max_colors: int) -> QuantizeResult:
    """
    Reduce an image to at most ``max_colors`` colors.

    Only covered pixels (alpha >= ALPHA_THRESHOLD) take part; the rest
    get label -1. Images with no more than ``max_colors`` distinct colors
    get an exact palette.

    Args:
        buffer: Decoded image
        max_colors: Palette size limit (>= 2)

    Returns:
        QuantizeResult whose palette is ordered by first occurrence in
        raster order
    """
    h, w = buffer.height, buffer.width
    labels = np.full((h, w), -1, dtype=np.int32)

    flat = buffer.pixels.reshape(-1, 4)
    covered = np.flatnonzero(flat[:, 3] >= ALPHA_THRESHOLD)
    if covered.size == 0:
        logger.debug("No covered pixels, palette is empty")
        return QuantizeResult(
            palette=np.zeros((0, 3), dtype=np.uint8),
            opacity=np.zeros(0, dtype=np.float64),
            labels=labels,
        )

    keys = pack_rgb(flat[covered, :3])
    unique_keys, first_seen, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )
    colors = unpack_rgb(unique_keys)
    inverse = inverse.reshape(-1)

    if len(colors) <= max_colors:
        order = np.argsort(first_seen, kind="stable")
        palette = colors[order]
        logger.debug(f"Exact palette of {len(palette)} colors")
    else:
        boxes = median_cut(colors, counts, max_colors)
        palette = _box_palette(colors, counts, first_seen, boxes)
        logger.debug(f"Median cut reduced {len(colors)} colors to {len(palette)}")

    nearest = nearest_palette_index(colors, palette)

    # Drop entries that no pixel maps to; argmin results are unaffected
    used = np.unique(nearest)
    remap = np.full(len(palette), -1, dtype=np.int32)
    remap[used] = np.arange(len(used), dtype=np.int32)
    palette = palette[used]
    nearest = remap[nearest]

    pixel_labels = nearest[inverse]
    labels.reshape(-1)[covered] = pixel_labels

    alpha = flat[covered, 3].astype(np.float64)
    opacity = np.ones(len(palette), dtype=np.float64)
    for index in range(len(palette)):
        opacity[index] = float(np.median(alpha[pixel_labels == index])) / 255.0

    return QuantizeResult(palette=palette, opacity=opacity, labels=labels)


def median_cut(colors: np.ndarray, counts: np.ndarray, max_boxes: int) -> List[np.ndarray]:
    """
    Split the color set into at most ``max_boxes`` boxes.

    Repeatedly splits the box with the largest count-weighted squared
    error along a single channel, at the weighted median of that channel.

    Args:
        colors: (N, 3) distinct colors
        counts: (N,) pixel count per color
        max_boxes: Target number of boxes

    Returns:
        List of index arrays into ``colors``
    """
    values = colors.astype(np.float64)
    weights = counts.astype(np.float64)

    boxes = [np.arange(len(colors))]
    scores = [_box_score(values, weights, boxes[0])]

    while len(boxes) < max_boxes:
        best = -1
        best_score = 0.0
        for i, box in enumerate(boxes):
            if len(box) > 1 and scores[i][0] > best_score:
                best = i
                best_score = scores[i][0]
        if best < 0:
            break

        box = boxes[best]
        channel = scores[best][1]
        order = np.argsort(values[box, channel], kind="stable")
        box = box[order]

        cumulative = np.cumsum(weights[box])
        split = int(np.searchsorted(cumulative, cumulative[-1] / 2.0, side="left")) + 1
        split = min(max(split, 1), len(box) - 1)

        lower, upper = box[:split], box[split:]
        boxes[best] = lower
        scores[best] = _box_score(values, weights, lower)
        boxes.insert(best + 1, upper)
        scores.insert(best + 1, _box_score(values, weights, upper))

    return boxes


def _box_score(values: np.ndarray, weights: np.ndarray, box: np.ndarray) -> Tuple[float, int]:
    """Largest per-channel weighted squared error and its channel."""
    if len(box) < 2:
        return 0.0, 0
    v = values[box]
    w = weights[box]
    mean = (v * w[:, None]).sum(axis=0) / w.sum()
    sse = (w[:, None] * (v - mean) ** 2).sum(axis=0)
    channel = int(np.argmax(sse))
    return float(sse[channel]), channel


def _box_palette(
    colors: np.ndarray,
    counts: np.ndarray,
    first_seen: np.ndarray,
    boxes: List[np.ndarray],
) -> np.ndarray:
    """Weighted mean color per box, ordered by first occurrence, deduplicated."""
    entries = []
    for box in boxes:
        w = counts[box].astype(np.float64)
        mean = (colors[box].astype(np.float64) * w[:, None]).sum(axis=0) / w.sum()
        color = np.clip(np.round(mean), 0, 255).astype(np.uint8)
        entries.append((int(first_seen[box].min()), color))

    entries.sort(key=lambda e: e[0])

    palette = []
    seen = set()
    for _, color in entries:
        key = tuple(int(c) for c in color)
        if key in seen:
            continue
        seen.add(key)
        palette.append(color)

    return np.array(palette, dtype=np.uint8).reshape(-1, 3)


def nearest_palette_index(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """
    Index of the closest palette entry for each color.

    Squared Euclidean RGB distance in integer arithmetic; ties go to the
    lower palette index.
    """
    result = np.empty(len(colors), dtype=np.int32)
    for start in range(0, len(colors), _CHUNK):
        dist = squared_distances(colors[start:start + _CHUNK], palette)
        result[start:start + _CHUNK] = np.argmin(dist, axis=1)
    return result


def squared_distances(colors: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """(N, K) integer squared RGB distances."""
    diff = colors.astype(np.int64)[:, None, :] - palette.astype(np.int64)[None, :, :]
    return (diff ** 2).sum(axis=2)
