"""Region extraction via connected components and hole detection."""
import logging
from typing import List

import numpy as np
from scipy import ndimage
from skimage.measure import regionprops

from openvec.types import Region, Hole, QuantizeResult

logger = logging.getLogger(__name__)

# 8-connectivity for regions; holes use the 4-connected default
EIGHT_CONNECTED = np.ones((3, 3), dtype=int)


def extract_regions(quantized: QuantizeResult, min_area: int = 1) -> List[Region]:
    """
    Extract 8-connected same-label regions from a label map.

    Regions are ordered by palette index, then by the raster position of
    their first pixel. Regions smaller than ``min_area`` are dropped; their
    pixels are not reassigned, so a dropped speck inside another region
    shows up as a hole of that region.

    Args:
        quantized: Quantization result with the label map
        min_area: Minimum pixel count of a retained region

    Returns:
        List of regions with their holes
    """
    labels = quantized.labels
    regions: List[Region] = []
    dropped = 0

    for palette_index in range(len(quantized)):
        color_mask = labels == palette_index
        if not color_mask.any():
            continue

        components, num_features = ndimage.label(color_mask, structure=EIGHT_CONNECTED)
        logger.debug(f"Palette entry {palette_index}: {num_features} components")

        for props in regionprops(components):
            area = int(props.area)
            if area < min_area:
                dropped += 1
                continue

            min_row, min_col, max_row, max_col = props.bbox
            mask = np.ascontiguousarray(props.image, dtype=bool)
            first = int(np.argmax(mask[0]))

            region = Region(
                region_id=len(regions),
                palette_index=palette_index,
                area=area,
                bbox=(int(min_col), int(min_row), int(max_col - min_col), int(max_row - min_row)),
                mask=mask,
                start=(int(min_col) + first, int(min_row)),
            )
            region.holes = find_holes(region)
            regions.append(region)

    if dropped:
        logger.debug(f"Dropped {dropped} regions smaller than {min_area} px")

    return regions


def find_holes(region: Region) -> List[Hole]:
    """
    Find the enclosed non-region areas of a region.

    Holes are 4-connected components of the complement of the region
    mask that do not reach the region's padded bounding box.

    Args:
        region: Region with bbox-local mask

    Returns:
        Holes in raster order of their first pixel
    """
    padded = np.pad(region.mask, 1, constant_values=False)
    complement, num_features = ndimage.label(~padded)
    if num_features <= 1:
        return []

    ids, first_index, counts = np.unique(complement.ravel(), return_index=True, return_counts=True)
    outside = complement[0, 0]
    x0, y0 = region.origin
    width = padded.shape[1]

    holes = []
    for hole_id, index, count in sorted(zip(ids, first_index, counts), key=lambda item: item[1]):
        if hole_id == 0 or hole_id == outside:
            continue
        row, col = divmod(int(index), width)
        holes.append(Hole(
            region_id=region.region_id,
            start=(x0 + col - 1, y0 + row - 1),
            area=int(count),
        ))

    return holes


def region_label_map(regions: List[Region], height: int, width: int) -> np.ndarray:
    """(H, W) int32 map of region ids, -1 where no retained region covers the pixel."""
    label_map = np.full((height, width), -1, dtype=np.int32)
    for region in regions:
        x, y, w, h = region.bbox
        label_map[y:y + h, x:x + w][region.mask] = region.region_id
    return label_map
