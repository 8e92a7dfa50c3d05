"""Core types for vectorization pipeline."""
from dataclasses import dataclass, field
from typing import Optional, List, Tuple
import numpy as np


Color = Tuple[int, int, int]


@dataclass(frozen=True)
class Point:
    """2D point with float coordinates."""
    x: float
    y: float


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded image, straight-alpha RGBA uint8 of shape (H, W, 4)."""
    width: int
    height: int
    pixels: np.ndarray
    source_width: int = 0
    source_height: int = 0

    def __post_init__(self):
        if self.pixels.shape != (self.height, self.width, 4):
            raise InternalError(
                f"Pixel array shape {self.pixels.shape} does not match "
                f"{self.width}x{self.height}"
            )
        self.pixels.setflags(write=False)
        if not self.source_width:
            object.__setattr__(self, 'source_width', self.width)
        if not self.source_height:
            object.__setattr__(self, 'source_height', self.height)

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    @property
    def was_downsampled(self) -> bool:
        return (self.width, self.height) != (self.source_width, self.source_height)


@dataclass
class QuantizeResult:
    """Palette and per-pixel labels from color quantization."""
    palette: np.ndarray   # (K, 3) uint8, first-occurrence order
    opacity: np.ndarray   # (K,) float in (0, 1]
    labels: np.ndarray    # (H, W) int32, -1 for uncovered pixels

    def __len__(self) -> int:
        return len(self.palette)

    def color(self, index: int) -> Color:
        r, g, b = (int(c) for c in self.palette[index])
        return (r, g, b)


@dataclass
class Hole:
    """Enclosed non-region pixels, referencing the enclosing region by id."""
    region_id: int
    start: Tuple[int, int]  # topmost-leftmost hole pixel (x, y)
    area: int


@dataclass
class Region:
    """8-connected set of same-label pixels."""
    region_id: int
    palette_index: int
    area: int
    bbox: Tuple[int, int, int, int]  # x, y, w, h
    mask: np.ndarray                 # bbox-local boolean mask
    start: Tuple[int, int]           # topmost-leftmost pixel (x, y)
    holes: List[Hole] = field(default_factory=list)

    @property
    def origin(self) -> Tuple[int, int]:
        return self.bbox[0], self.bbox[1]


@dataclass
class Contour:
    """Closed boundary on pixel corners. Outer contours have positive area."""
    points: np.ndarray  # (N, 2) float64, x/y
    region_id: int
    is_hole: bool = False

    def __len__(self) -> int:
        return len(self.points)

    @property
    def signed_area(self) -> float:
        return signed_area(self.points)


@dataclass
class RegionContours:
    """Outer boundary and hole boundaries of one region."""
    region_id: int
    outer: Contour
    holes: List[Contour] = field(default_factory=list)

    def all(self) -> List[Contour]:
        return [self.outer] + self.holes


@dataclass
class FittedPath:
    """
    Sequence of anchors joined by lines and cubic curves.

    ``controls[i]`` describes the segment from ``anchors[i]`` to
    ``anchors[(i + 1) % n]``: None for a straight line, or the two
    control points of a cubic bezier. Open paths have one segment fewer
    than anchors.
    """
    anchors: List[Point] = field(default_factory=list)
    controls: List[Optional[Tuple[Point, Point]]] = field(default_factory=list)
    closed: bool = True

    def __len__(self) -> int:
        return len(self.anchors)

    @property
    def curve_count(self) -> int:
        return sum(1 for c in self.controls if c is not None)

    def reversed(self) -> "FittedPath":
        """Same segments traversed the other way."""
        if not self.anchors:
            return FittedPath(closed=self.closed)
        swap = lambda c: None if c is None else (c[1], c[0])
        if self.closed:
            # The closing segment still runs from the last anchor back to the first
            controls = [swap(c) for c in self.controls[-2::-1]] + [swap(self.controls[-1])]
        else:
            controls = [swap(c) for c in self.controls[::-1]]
        return FittedPath(anchors=self.anchors[::-1], controls=controls, closed=self.closed)

    def rotated(self, start: int) -> "FittedPath":
        """Closed path beginning at ``anchors[start]``."""
        return FittedPath(
            anchors=self.anchors[start:] + self.anchors[:start],
            controls=self.controls[start:] + self.controls[:start],
        )


@dataclass
class BoundaryChain:
    """
    Part of a region contour along a single neighbour.

    Open chains run between two junction corners; a contour without
    junctions is one closed chain. Both regions along a shared chain
    compute the same ``key``, and only ``owner`` fits it.
    """
    key: Tuple[int, int, int]  # sorted region pair, lowest edge code
    region_id: int
    owner: int
    points: np.ndarray         # (M, 2) float64 in this contour's direction
    closed: bool = False

    @property
    def is_owned(self) -> bool:
        return self.owner == self.region_id


@dataclass
class PathGroup:
    """Paths sharing one palette color."""
    palette_index: int
    color: Color
    opacity: float = 1.0
    paths: List[str] = field(default_factory=list)

    @property
    def group_id(self) -> str:
        r, g, b = self.color
        return f"color-{self.palette_index}-{r:02x}{g:02x}{b:02x}"


@dataclass
class VectorDocument:
    """Vectorized image: canvas size plus path groups in palette order."""
    width: int
    height: int
    groups: List[PathGroup] = field(default_factory=list)
    palette: List[Color] = field(default_factory=list)
    source_width: int = 0
    source_height: int = 0

    @property
    def region_count(self) -> int:
        return sum(len(g.paths) for g in self.groups)

    def to_svg(self) -> str:
        from openvec.svg_export import render_svg
        return render_svg(self)


def signed_area(points: np.ndarray) -> float:
    """Shoelace area; positive for clockwise loops in y-down coordinates."""
    if len(points) < 3:
        return 0.0
    x = points[:, 0]
    y = points[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


class VectorizeError(Exception):
    """Base exception for vectorization errors."""
    kind = "Vectorize"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class DecodeError(VectorizeError):
    """Input bytes are malformed or in an unsupported encoding."""
    kind = "Decode"


class OptionsError(VectorizeError):
    """An option is missing, mistyped or outside its bounds."""
    kind = "Options"


class InvalidGeometry(VectorizeError):
    """Boundary data could not be traced or fitted."""
    kind = "InvalidGeometry"


class InternalError(VectorizeError):
    """An engine invariant was violated."""
    kind = "Internal"


class CancelledError(VectorizeError):
    """The caller cancelled the run."""
    kind = "Cancelled"
