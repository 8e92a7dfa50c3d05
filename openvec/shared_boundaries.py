"""Boundary chains shared by neighbouring regions."""
import logging
from typing import Dict, List, Tuple

import numpy as np

from openvec.curve_fitting import fit_closed_path, fit_open_path
from openvec.simplify import simplify_closed, simplify_open
from openvec.types import BoundaryChain, Contour, FittedPath, InternalError

logger = logging.getLogger(__name__)

# Region id of uncovered pixels and of everything outside the canvas
OUTSIDE = -1


def junction_map(label_map: np.ndarray) -> np.ndarray:
    """
    Flag the pixel corners where region boundaries branch.

    A corner is a junction when its four surrounding pixels carry three
    or more distinct region ids, or two ids arranged diagonally. Every
    other boundary corner has exactly two boundary edges, so the
    boundary between two junctions is the same curve for both regions.

    Args:
        label_map: (H, W) region ids, OUTSIDE for uncovered pixels

    Returns:
        (H + 1, W + 1) boolean array indexed [y, x] by corner
    """
    padded = np.pad(label_map, 1, constant_values=OUTSIDE)
    a = padded[:-1, :-1]
    b = padded[:-1, 1:]
    c = padded[1:, :-1]
    d = padded[1:, 1:]
    distinct = 1 + (b != a) + ((c != a) & (c != b)) + ((d != a) & (d != b) & (d != c))
    diagonal = (a == d) & (b == c) & (a != b)
    return (distinct >= 3) | diagonal


def edge_neighbours(corners: np.ndarray, padded_labels: np.ndarray) -> np.ndarray:
    """Region id on the left of each edge ``corners[k] -> corners[k + 1]``."""
    step = np.roll(corners, -1, axis=0) - corners
    dx, dy = step[:, 0], step[:, 1]
    px = corners[:, 0] + (dx + dy - 1) // 2
    py = corners[:, 1] + (dy - dx - 1) // 2
    return padded_labels[py + 1, px + 1]


def edge_codes(corners: np.ndarray, width: int) -> np.ndarray:
    """Direction-free id per unit edge: twice its lower corner index, plus one if vertical."""
    index = corners[:, 1] * (width + 1) + corners[:, 0]
    following = np.roll(index, -1)
    vertical = corners[:, 0] == np.roll(corners[:, 0], -1)
    return 2 * np.minimum(index, following) + vertical


class ChainSplitter:
    """
    Cuts traced region contours into chains at junction corners.

    A chain follows one neighbour, either another region or OUTSIDE.
    The region with the lower id owns a shared chain; chains along
    OUTSIDE belong to their only region.
    """

    def __init__(self, label_map: np.ndarray):
        self.height, self.width = label_map.shape
        self._padded = np.pad(label_map, 1, constant_values=OUTSIDE)
        self._junctions = junction_map(label_map)
        logger.debug(f"{int(self._junctions.sum())} junction corners")

    def split(self, traced: Contour, refined: Contour) -> List[BoundaryChain]:
        """
        Split one contour.

        Args:
            traced: Contour on pixel corners, used for neighbours and keys
            refined: Same contour after boundary refinement (may be ``traced``)

        Returns:
            Chains in contour order; a single closed chain when the
            contour has no junctions
        """
        corners = np.rint(traced.points).astype(np.int64)
        n = len(corners)
        region_id = traced.region_id
        neighbours = edge_neighbours(corners, self._padded)
        codes = edge_codes(corners, self.width)
        starts = np.flatnonzero(self._junctions[corners[:, 1], corners[:, 0]])

        if len(starts) == 0:
            return [self._chain(region_id, int(neighbours[0]), codes, refined.points.copy(), closed=True)]

        chains = []
        for i, start in enumerate(starts):
            end = starts[(i + 1) % len(starts)]
            length = (end - start) % n or n
            index = (start + np.arange(length + 1)) % n
            points = refined.points[index].copy()
            # Junctions stay on the pixel grid where every chain meeting there ends
            points[0] = corners[index[0]]
            points[-1] = corners[index[-1]]
            chains.append(self._chain(region_id, int(neighbours[start]), codes[index[:-1]], points))
        return chains

    @staticmethod
    def _chain(
        region_id: int,
        neighbour: int,
        codes: np.ndarray,
        points: np.ndarray,
        closed: bool = False,
    ) -> BoundaryChain:
        low, high = sorted((region_id, neighbour))
        return BoundaryChain(
            key=(low, high, int(codes.min())),
            region_id=region_id,
            owner=region_id if neighbour == OUTSIDE else low,
            points=points,
            closed=closed,
        )


def fit_chain(
    chain: BoundaryChain,
    tolerance: float,
    smoothness: float,
    corner_angle: float = 100.0,
    fit_curves: bool = True,
) -> FittedPath:
    """Simplify and fit one chain in its own direction of travel."""
    if chain.closed:
        kept = simplify_closed(chain.points, tolerance)
        return fit_closed_path(chain.points, kept, smoothness, corner_angle, fit_curves)
    kept = simplify_open(chain.points, tolerance)
    return fit_open_path(chain.points, kept, smoothness, corner_angle, fit_curves)


def join_paths(pieces: List[FittedPath]) -> FittedPath:
    """Close a loop of open paths, each starting where the previous one ends."""
    anchors = []
    controls = []
    for piece in pieces:
        anchors.extend(piece.anchors[:-1])
        controls.extend(piece.controls)
    return FittedPath(anchors=anchors, controls=controls)


def assemble_contour(
    chains: List[BoundaryChain],
    fitted: Dict[Tuple[int, int, int], FittedPath],
) -> FittedPath:
    """
    Rebuild a closed path from fitted chains.

    Chains owned by a neighbour are reused reversed, so both sides of a
    shared boundary emit the same segments. The result starts at its
    topmost, then leftmost, anchor.

    Raises:
        InternalError: If a chain was never fitted
    """
    pieces = []
    for chain in chains:
        path = fitted.get(chain.key)
        if path is None:
            raise InternalError(
                f"Region {chain.region_id}: no fitted boundary for chain {chain.key}"
            )
        pieces.append(path if chain.is_owned else path.reversed())

    if len(pieces) == 1 and pieces[0].closed:
        path = pieces[0]
    else:
        path = join_paths(pieces)

    if not path.anchors:
        return path
    start = min(range(len(path.anchors)), key=lambda i: (path.anchors[i].y, path.anchors[i].x))
    return path.rotated(start)
