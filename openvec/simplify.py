"""Ramer-Douglas-Peucker simplification of closed contours and open boundary chains."""
from typing import List, Tuple

import numpy as np


# Deviation below which a point counts as lying on its chord
_EPSILON = 1e-9


def point_segment_distances(points: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Distance from each of ``points`` to the segment ``a``-``b``."""
    ab = b - a
    length_sq = float(np.dot(ab, ab))
    if length_sq < _EPSILON:
        return np.hypot(points[:, 0] - a[0], points[:, 1] - a[1])
    t = np.clip(((points - a) @ ab) / length_sq, 0.0, 1.0)
    nearest = a + t[:, np.newaxis] * ab
    return np.hypot(points[:, 0] - nearest[:, 0], points[:, 1] - nearest[:, 1])


def _farthest(points: np.ndarray, start: int, end: int):
    """Index and deviation of the point between start and end farthest from their chord."""
    if end - start < 2:
        return -1, 0.0
    inner = points[start + 1:end]
    dist = point_segment_distances(inner, points[start], points[end])
    i = int(np.argmax(dist))
    return start + 1 + i, float(dist[i])


def _split_once(points: np.ndarray, start: int, end: int, keep: set) -> List[Tuple[int, int]]:
    """Split a span at its farthest point unless it is already straight."""
    split, deviation = _farthest(points, start, end)
    if split >= 0 and deviation > _EPSILON:
        keep.add(split)
        return [(start, split), (split, end)]
    return [(start, end)]


def _subdivide(points: np.ndarray, spans: List[Tuple[int, int]], keep: set, tolerance: float) -> None:
    while spans:
        start, end = spans.pop()
        split, deviation = _farthest(points, start, end)
        if split >= 0 and deviation > tolerance:
            keep.add(split)
            spans.append((start, split))
            spans.append((split, end))


def simplify_closed(points: np.ndarray, tolerance: float) -> List[int]:
    """
    Simplify a closed contour.

    Index 0 and the point farthest from it are always kept, and each of
    the two halves is split once at its point of maximum deviation, so a
    contour with area keeps at least four anchors. Each remaining span is
    then subdivided while its maximum deviation exceeds ``tolerance``.

    The kept set at a larger tolerance is a subset of the kept set at a
    smaller one.

    Args:
        points: (N, 2) closed contour, first point not repeated at the end
        tolerance: Maximum allowed deviation in pixels

    Returns:
        Sorted indices of the kept points
    """
    n = len(points)
    if n <= 3:
        return list(range(n))

    # Work on the contour with the first point appended to close it
    ring = np.vstack([points, points[:1]])

    dist = np.hypot(points[:, 0] - points[0, 0], points[:, 1] - points[0, 1])
    far = int(np.argmax(dist))
    if far == 0:
        return [0]

    keep = {0, far}
    spans = _split_once(ring, 0, far, keep) + _split_once(ring, far, n, keep)
    _subdivide(ring, spans, keep, tolerance)
    return sorted(keep)


def simplify_open(points: np.ndarray, tolerance: float) -> List[int]:
    """
    Simplify an open chain with fixed end points.

    The chain is split once at its point of maximum deviation, then
    subdivided like a closed contour, so kept sets stay nested across
    tolerances. A chain whose ends coincide goes around a loop and is
    simplified as a closed contour through that point.

    Args:
        points: (N, 2) chain including both end points
        tolerance: Maximum allowed deviation in pixels

    Returns:
        Sorted indices of the kept points, always including 0 and N - 1
    """
    n = len(points)
    if n <= 2:
        return list(range(n))
    if np.array_equal(points[0], points[-1]):
        return simplify_closed(points[:-1], tolerance) + [n - 1]

    keep = {0, n - 1}
    _subdivide(points, _split_once(points, 0, n - 1, keep), keep, tolerance)
    return sorted(keep)
