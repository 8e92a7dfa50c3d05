"""Least-squares cubic Bezier fitting between simplified anchors."""
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from openvec.types import FittedPath, Point

EPS = 1e-9

# Newton reparameterization passes per span
MAX_ITERATIONS = 4


def _unit(v: np.ndarray) -> np.ndarray:
    length = math.hypot(v[0], v[1])
    if length < EPS:
        return np.zeros(2)
    return v / length


def interior_angle(prev: np.ndarray, anchor: np.ndarray, nxt: np.ndarray) -> float:
    """Angle at ``anchor`` between its two neighbours, in degrees (180 = straight)."""
    u = _unit(prev - anchor)
    v = _unit(nxt - anchor)
    if not u.any() or not v.any():
        return 180.0
    cos_angle = float(np.clip(np.dot(u, v), -1.0, 1.0))
    return math.degrees(math.acos(cos_angle))


def find_corners(anchors: np.ndarray, corner_angle: float, closed: bool = True) -> List[bool]:
    """
    Flag anchors whose interior angle is sharper than ``corner_angle`` degrees.

    The end anchors of an open chain are always corners.
    """
    n = len(anchors)
    corners = []
    for i in range(n):
        if not closed and i in (0, n - 1):
            corners.append(True)
        else:
            corners.append(
                interior_angle(anchors[i - 1], anchors[i], anchors[(i + 1) % n]) < corner_angle
            )
    return corners


def anchor_tangents(anchors: np.ndarray, corners: Sequence[bool]):
    """
    Outgoing and incoming unit tangents per anchor.

    Corner anchors use the adjacent chord directions; smooth anchors share
    the bisector of the two chords so neighbouring curves meet with a
    continuous tangent.

    Returns:
        (out_tangents, in_tangents), each (N, 2); ``in_tangents[i]`` is
        the direction of travel on arrival at anchor i
    """
    n = len(anchors)
    out_tangents = np.zeros((n, 2))
    in_tangents = np.zeros((n, 2))
    for i in range(n):
        arrive = _unit(anchors[i] - anchors[i - 1])
        leave = _unit(anchors[(i + 1) % n] - anchors[i])
        if corners[i]:
            in_tangents[i] = arrive
            out_tangents[i] = leave
        else:
            bisector = _unit(arrive + leave)
            if not bisector.any():
                bisector = leave
            in_tangents[i] = bisector
            out_tangents[i] = bisector
    return out_tangents, in_tangents


def chord_length_parameterize(samples: np.ndarray) -> np.ndarray:
    steps = np.hypot(*np.diff(samples, axis=0).T)
    u = np.concatenate([[0.0], np.cumsum(steps)])
    if u[-1] < EPS:
        return np.zeros(len(samples))
    return u / u[-1]


def bezier_eval(bezier: np.ndarray, u: np.ndarray) -> np.ndarray:
    """Evaluate a cubic (4, 2) at parameters u (M,)."""
    u = u[:, np.newaxis]
    v = 1.0 - u
    return (v ** 3 * bezier[0] + 3 * v * v * u * bezier[1]
            + 3 * v * u * u * bezier[2] + u ** 3 * bezier[3])


def _bezier_dt(bezier: np.ndarray, u: np.ndarray) -> np.ndarray:
    u = u[:, np.newaxis]
    v = 1.0 - u
    return (3 * v * v * (bezier[1] - bezier[0]) + 6 * v * u * (bezier[2] - bezier[1])
            + 3 * u * u * (bezier[3] - bezier[2]))


def _bezier_ddt(bezier: np.ndarray, u: np.ndarray) -> np.ndarray:
    u = u[:, np.newaxis]
    v = 1.0 - u
    return (6 * v * (bezier[2] - 2 * bezier[1] + bezier[0])
            + 6 * u * (bezier[3] - 2 * bezier[2] + bezier[1]))


def reparameterize(bezier: np.ndarray, samples: np.ndarray, u: np.ndarray) -> np.ndarray:
    """One Newton-Raphson step towards each sample's closest curve parameter."""
    q = bezier_eval(bezier, u)
    q1 = _bezier_dt(bezier, u)
    q2 = _bezier_ddt(bezier, u)
    diff = q - samples
    numerator = np.einsum("ij,ij->i", diff, q1)
    denominator = np.einsum("ij,ij->i", q1, q1) + np.einsum("ij,ij->i", diff, q2)
    safe = np.where(np.abs(denominator) < 1e-12, 1.0, denominator)
    step = np.where(np.abs(denominator) < 1e-12, 0.0, numerator / safe)
    out = np.clip(u - step, 0.0, 1.0)
    out[0] = 0.0
    out[-1] = 1.0
    return out


def max_error(bezier: np.ndarray, samples: np.ndarray, u: np.ndarray) -> float:
    d = bezier_eval(bezier, u) - samples
    return float(np.max(np.einsum("ij,ij->i", d, d)))


def bezier_from_endpoints(
    samples: np.ndarray,
    u: np.ndarray,
    tangent_start: np.ndarray,
    tangent_end: np.ndarray,
) -> np.ndarray:
    """
    Least-squares control arms along fixed end tangents.

    ``tangent_start`` points from the first sample into the span and
    ``tangent_end`` points from the last sample back into it. Arms that
    come out non-finite or near zero fall back to a third of the chord;
    arms are capped at the chord length.

    Returns:
        (4, 2) control polygon
    """
    p0 = samples[0]
    p3 = samples[-1]
    v = 1.0 - u
    b0 = v ** 3
    b1 = 3 * v * v * u
    b2 = 3 * v * u * u
    b3 = u ** 3

    a0 = b1[:, np.newaxis] * tangent_start
    a1 = b2[:, np.newaxis] * tangent_end
    tmp = samples - (b0[:, np.newaxis] * p0 + b3[:, np.newaxis] * p3
                     + b1[:, np.newaxis] * p0 + b2[:, np.newaxis] * p3)

    c00 = float(np.einsum("ij,ij->", a0, a0))
    c01 = float(np.einsum("ij,ij->", a0, a1))
    c11 = float(np.einsum("ij,ij->", a1, a1))
    x0 = float(np.einsum("ij,ij->", a0, tmp))
    x1 = float(np.einsum("ij,ij->", a1, tmp))

    seglen = math.hypot(*(p3 - p0))
    det = c00 * c11 - c01 * c01
    if abs(det) < 1e-12:
        alpha_start = alpha_end = seglen / 3.0
    else:
        alpha_start = (x0 * c11 - x1 * c01) / det
        alpha_end = (c00 * x1 - c01 * x0) / det

    min_alpha = 1e-6 * seglen
    if not math.isfinite(alpha_start) or alpha_start < min_alpha:
        alpha_start = seglen / 3.0
    if not math.isfinite(alpha_end) or alpha_end < min_alpha:
        alpha_end = seglen / 3.0
    alpha_start = min(alpha_start, seglen)
    alpha_end = min(alpha_end, seglen)

    return np.array([
        p0,
        p0 + alpha_start * tangent_start,
        p3 + alpha_end * tangent_end,
        p3,
    ])


def fit_span(
    samples: np.ndarray,
    tangent_start: np.ndarray,
    tangent_end: np.ndarray,
) -> np.ndarray:
    """Fit one cubic to ``samples``, refining the parameterization while the error drops."""
    u = chord_length_parameterize(samples)
    bezier = bezier_from_endpoints(samples, u, tangent_start, tangent_end)
    error = max_error(bezier, samples, u)

    for _ in range(MAX_ITERATIONS):
        u_new = reparameterize(bezier, samples, u)
        candidate = bezier_from_endpoints(samples, u_new, tangent_start, tangent_end)
        candidate_error = max_error(candidate, samples, u_new)
        if candidate_error >= error:
            break
        bezier, u, error = candidate, u_new, candidate_error

    return bezier


def _span_samples(points: np.ndarray, start: int, end: int) -> np.ndarray:
    """Original samples from index ``start`` to ``end`` inclusive, wrapping around."""
    if end > start:
        return points[start:end + 1]
    return np.vstack([points[start:], points[:end + 1]])


def _on_chord(p0: np.ndarray, p3: np.ndarray, controls: np.ndarray) -> bool:
    chord = p3 - p0
    length = math.hypot(chord[0], chord[1])
    if length < EPS:
        return True
    for c in controls:
        rel = c - p0
        if abs(chord[0] * rel[1] - chord[1] * rel[0]) / length > 1e-6:
            return False
    return True


def _fit_controls(
    points: np.ndarray,
    kept: List[int],
    smoothness: float,
    corner_angle: float,
    fit_curves: bool,
    closed: bool,
) -> List[Optional[Tuple[Point, Point]]]:
    anchors = points[kept]
    n = len(anchors)
    spans = n if closed else max(n - 1, 0)

    controls: List[Optional[Tuple[Point, Point]]] = [None] * spans
    if not fit_curves or smoothness <= 0.0 or n < (3 if closed else 2):
        return controls

    corners = find_corners(anchors, corner_angle, closed=closed)
    out_tangents, in_tangents = anchor_tangents(anchors, corners)

    for i in range(spans):
        j = (i + 1) % n
        samples = _span_samples(points, kept[i], kept[j])
        if len(samples) < 3:
            continue
        p0, p3 = anchors[i], anchors[j]
        if math.hypot(*(p3 - p0)) < EPS:
            continue

        fitted = fit_span(samples, out_tangents[i], -in_tangents[j])
        chord = p3 - p0
        straight = np.array([p0 + chord / 3.0, p3 - chord / 3.0])
        blended = straight + smoothness * (fitted[1:3] - straight)

        if _on_chord(p0, p3, blended):
            continue
        controls[i] = (
            Point(float(blended[0, 0]), float(blended[0, 1])),
            Point(float(blended[1, 0]), float(blended[1, 1])),
        )

    return controls


def fit_closed_path(
    points: np.ndarray,
    kept: Sequence[int],
    smoothness: float,
    corner_angle: float = 100.0,
    fit_curves: bool = True,
) -> FittedPath:
    """
    Turn a simplified closed contour into lines and cubic curves.

    Each span between consecutive kept anchors is fit against the original
    samples it replaces. ``smoothness`` blends each curve's control points
    between the straight chord (0) and the least-squares fit (1). Spans
    whose blended controls lie on the chord become straight segments.

    Args:
        points: (N, 2) original closed contour
        kept: Sorted anchor indices into ``points``
        smoothness: Blend factor in [0, 1]
        corner_angle: Interior angle in degrees below which an anchor is a corner
        fit_curves: False to emit straight segments only

    Returns:
        FittedPath with one segment per anchor
    """
    kept = list(kept)
    controls = _fit_controls(points, kept, smoothness, corner_angle, fit_curves, closed=True)
    return FittedPath(
        anchors=[Point(float(x), float(y)) for x, y in points[kept]],
        controls=controls,
    )


def fit_open_path(
    points: np.ndarray,
    kept: Sequence[int],
    smoothness: float,
    corner_angle: float = 100.0,
    fit_curves: bool = True,
) -> FittedPath:
    """
    Fit an open boundary chain the way fit_closed_path fits a contour.

    Both end anchors are corners, so the result depends only on the
    chain's own samples.

    Returns:
        Open FittedPath with one segment fewer than anchors
    """
    kept = list(kept)
    controls = _fit_controls(points, kept, smoothness, corner_angle, fit_curves, closed=False)
    return FittedPath(
        anchors=[Point(float(x), float(y)) for x, y in points[kept]],
        controls=controls,
        closed=False,
    )
