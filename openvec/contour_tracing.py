"""Border following on the pixel grid."""
import logging
from typing import List, Tuple

import numpy as np

from openvec.types import Region, Contour, RegionContours, InvalidGeometry, InternalError

logger = logging.getLogger(__name__)

EAST = (1, 0)
WEST = (-1, 0)


def trace_region(region: Region) -> RegionContours:
    """
    Trace the outer boundary and hole boundaries of a region.

    Points lie on pixel corners: pixel (x, y) spans [x, x+1] x [y, y+1].
    The region is kept on the right of the direction of travel, so outer
    boundaries run clockwise and holes counter-clockwise (y axis down).

    Args:
        region: Region from extract_regions

    Returns:
        RegionContours with the outer contour and one contour per hole

    Raises:
        InvalidGeometry: If a boundary cannot be closed
        InternalError: If windings or enclosed areas are inconsistent
    """
    padded = np.pad(region.mask, 1, constant_values=False)
    x0, y0 = region.origin
    # Global pixel (x, y) sits at padded[y - y0 + 1, x - x0 + 1]
    offset = np.array([x0 - 1, y0 - 1], dtype=np.float64)

    sx, sy = region.start
    outer_points = follow_border(padded, (sx - x0 + 1, sy - y0 + 1), EAST)
    outer = Contour(points=outer_points + offset, region_id=region.region_id)

    holes = []
    for hole in region.holes:
        hx, hy = hole.start
        points = follow_border(padded, (hx - x0 + 2, hy - y0 + 1), WEST)
        holes.append(Contour(points=points + offset, region_id=region.region_id, is_hole=True))

    contours = RegionContours(region_id=region.region_id, outer=outer, holes=holes)
    check_winding(region, contours)
    logger.debug(
        f"Region {region.region_id}: {len(outer)} outer points, {len(holes)} holes"
    )
    return contours


def follow_border(
    inside: np.ndarray,
    start: Tuple[int, int],
    direction: Tuple[int, int],
) -> np.ndarray:
    """
    Walk the cracks between inside and outside pixels.

    At each corner the two pixels ahead decide the turn: ahead-left
    inside turns left, else ahead-right inside goes straight, else turn
    right. This follows 8-connected inside pixels.

    Args:
        inside: Boolean mask padded by at least one False pixel
        start: Starting corner (x, y) in mask coordinates
        direction: Starting unit direction with the inside on its right

    Returns:
        (N, 2) array of corner coordinates

    Raises:
        InvalidGeometry: If the walk does not return to its start
    """
    height, width = inside.shape
    max_steps = 4 * width * height + 4

    x, y = start
    dx, dy = direction
    if not _is_boundary_edge(inside, x, y, dx, dy):
        raise InvalidGeometry(f"Corner {start} heading {direction} is not on a region border")

    points: List[Tuple[int, int]] = []
    for _ in range(max_steps):
        points.append((x, y))
        x += dx
        y += dy

        ahead_left = inside[y + (dy - dx - 1) // 2, x + (dx + dy - 1) // 2]
        ahead_right = inside[y + (dy + dx - 1) // 2, x + (dx - dy - 1) // 2]

        if ahead_left:
            dx, dy = dy, -dx
        elif not ahead_right:
            dx, dy = -dy, dx

        if (x, y) == start and (dx, dy) == direction:
            return np.array(points, dtype=np.float64)

    raise InvalidGeometry(f"Border starting at {start} did not close within {max_steps} steps")


def _is_boundary_edge(inside: np.ndarray, x: int, y: int, dx: int, dy: int) -> bool:
    """Edge from corner (x, y) along (dx, dy) has inside on the right, outside on the left."""
    height, width = inside.shape
    # Flanking pixels sit half a step either side of the edge midpoint
    mx, my = x + 0.5 * dx, y + 0.5 * dy
    rx, ry = int(np.floor(mx - 0.5 * dy)), int(np.floor(my + 0.5 * dx))
    lx, ly = int(np.floor(mx + 0.5 * dy)), int(np.floor(my - 0.5 * dx))
    if not (0 <= rx < width and 0 <= ry < height and 0 <= lx < width and 0 <= ly < height):
        return False
    return bool(inside[ry, rx]) and not bool(inside[ly, lx])


def check_winding(region: Region, contours: RegionContours) -> None:
    """
    Verify the traced contours against the region.

    Raises:
        InternalError: If the outer contour is not clockwise, a hole is
            not counter-clockwise, or the enclosed area differs from the
            region's pixel count
    """
    outer_area = contours.outer.signed_area
    if outer_area <= 0:
        raise InternalError(
            f"Region {region.region_id}: outer contour has non-positive area {outer_area}"
        )

    total = outer_area
    for i, hole in enumerate(contours.holes):
        hole_area = hole.signed_area
        if hole_area >= 0:
            raise InternalError(
                f"Region {region.region_id}: hole {i} winds the same way as its outer contour"
            )
        total += hole_area

    if abs(total - region.area) > 1e-6:
        raise InternalError(
            f"Region {region.region_id}: contours enclose {total} px, region has {region.area}"
        )
