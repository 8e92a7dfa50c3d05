"""Tests for boundary chains shared between neighbouring regions."""
import numpy as np
import pytest

from openvec.contour_tracing import trace_region
from openvec.region_extraction import extract_regions, region_label_map
from openvec.shared_boundaries import (
    ChainSplitter,
    assemble_contour,
    fit_chain,
    junction_map,
    OUTSIDE,
)
from openvec.svg_export import subpath_data
from openvec.types import Contour, FittedPath, InternalError, Point

from test_region_extraction import label_result


def split_all(labels, refine=None):
    """Regions plus the chains of every contour, region by region."""
    labels = np.asarray(labels, dtype=np.int32)
    regions = extract_regions(label_result(labels))
    splitter = ChainSplitter(region_label_map(regions, *labels.shape))
    chains = []
    for region in regions:
        contours = trace_region(region).all()
        refined = [refine(c) if refine else c for c in contours]
        chains.append([splitter.split(t, r) for t, r in zip(contours, refined)])
    return regions, chains


def fit_owned(chains, fit_curves=False):
    return {
        chain.key: fit_chain(chain, 0.5, 1.0, fit_curves=fit_curves)
        for contours in chains for contour in contours for chain in contour
        if chain.is_owned
    }


HALVES = [[0, 0, 1, 1]] * 4

ISLAND = [
    [0, 0, 0, 0, 0, 0],
    [0, 0, 0, 0, 0, 0],
    [0, 0, 1, 1, 0, 0],
    [0, 0, 1, 1, 0, 0],
    [0, 0, 0, 0, 0, 0],
    [0, 0, 0, 0, 0, 0],
]


class TestJunctionMap:
    """Test junction_map."""

    def test_halves(self):
        """Test only the ends of the dividing line are junctions."""
        junctions = junction_map(np.array(HALVES))
        assert junctions.shape == (5, 5)
        assert np.argwhere(junctions).tolist() == [[0, 2], [4, 2]]

    def test_diagonal_pinch(self):
        """Test two ids touching only diagonally make a junction."""
        junctions = junction_map(np.array([[0, 1], [1, 0]]))
        assert junctions[1, 1]

    def test_uniform_map_has_none(self):
        """Test a single region has no junctions."""
        assert not junction_map(np.zeros((3, 4), dtype=int)).any()


class TestChainSplitter:
    """Test ChainSplitter.split."""

    def test_shared_chain_matches_reversed(self):
        """Test both halves see the dividing line as the same chain, reversed."""
        regions, chains = split_all(HALVES)
        left, right = chains[0][0], chains[1][0]
        assert len(left) == 2 and len(right) == 2

        shared_left = [c for c in left if c.key[:2] == (0, 1)]
        shared_right = [c for c in right if c.key[:2] == (0, 1)]
        assert len(shared_left) == 1 and len(shared_right) == 1
        a, b = shared_left[0], shared_right[0]
        assert a.key == b.key
        assert a.is_owned and not b.is_owned
        np.testing.assert_array_equal(a.points, b.points[::-1])
        np.testing.assert_array_equal(a.points, [[2, 0], [2, 1], [2, 2], [2, 3], [2, 4]])

    def test_outside_chains_owned_by_region(self):
        """Test chains along the canvas edge belong to their region."""
        regions, chains = split_all(HALVES)
        for contour in (chains[0][0], chains[1][0]):
            edge = [c for c in contour if c.key[0] == OUTSIDE]
            assert len(edge) == 1
            assert edge[0].is_owned

    def test_island_is_one_closed_chain(self):
        """Test a junction-free boundary is a single closed chain on both sides."""
        regions, chains = split_all(ISLAND)
        background_outer, background_hole = chains[0]
        island_outer = chains[1][0]
        assert len(background_hole) == 1 and len(island_outer) == 1
        hole, island = background_hole[0], island_outer[0]
        assert hole.closed and island.closed
        assert hole.key == island.key
        assert hole.is_owned and not island.is_owned
        assert background_outer[0].closed and background_outer[0].key[0] == OUTSIDE

    def test_junctions_stay_on_grid(self):
        """Test refined points move but chain end points stay on pixel corners."""
        shift = lambda c: Contour(c.points + 0.25, c.region_id, c.is_hole)
        regions, chains = split_all(HALVES, refine=shift)
        for chain in chains[0][0]:
            np.testing.assert_array_equal(chain.points[[0, -1]] % 1.0, 0.0)
            np.testing.assert_allclose(chain.points[1:-1] % 1.0, 0.25)


class TestAssembleContour:
    """Test fitting owned chains and reassembling contours."""

    def test_halves_paths(self):
        """Test each half becomes its rectangle starting at the top-left anchor."""
        regions, chains = split_all(HALVES)
        fitted = fit_owned(chains)
        left = assemble_contour(chains[0][0], fitted)
        right = assemble_contour(chains[1][0], fitted)
        assert subpath_data(left) == "M0,0 L2,0 L2,4 L0,4 Z"
        assert subpath_data(right) == "M2,0 L4,0 L4,4 L2,4 Z"

    def test_island_reuses_hole(self):
        """Test the island's outline is the background hole traversed the other way."""
        regions, chains = split_all(ISLAND)
        fitted = fit_owned(chains, fit_curves=True)
        hole = assemble_contour(chains[0][1], fitted)
        island = assemble_contour(chains[1][0], fitted)
        assert {(p.x, p.y) for p in hole.anchors} == {(p.x, p.y) for p in island.anchors}
        assert island.anchors[0] == Point(2.0, 2.0)
        assert subpath_data(island) == "M2,2 L3,2 L4,2 L4,4 L2,4 Z"

    def test_missing_chain(self):
        """Test a chain nobody fitted is an internal error."""
        regions, chains = split_all(HALVES)
        with pytest.raises(InternalError):
            assemble_contour(chains[1][0], {})


class TestPathReversal:
    """Test FittedPath.reversed and rotated."""

    def curved_path(self):
        return FittedPath(
            anchors=[Point(0, 0), Point(10, 0), Point(10, 10)],
            controls=[
                (Point(3, -2), Point(7, -2)),
                None,
                (Point(6, 6), Point(2, 3.5)),
            ],
        )

    def test_closed_reversed(self):
        """Test a reversed closed path draws the same curves backwards."""
        reversed_path = self.curved_path().reversed()
        assert subpath_data(reversed_path) == "M10,10 L10,0 C7,-2 3,-2 0,0 C2,3.5 6,6 10,10 Z"

    def test_open_reversed(self):
        """Test an open path keeps one segment fewer than anchors when reversed."""
        path = FittedPath(
            anchors=[Point(0, 0), Point(10, 0), Point(10, 10)],
            controls=[(Point(3, -2), Point(7, -2)), None],
            closed=False,
        )
        reversed_path = path.reversed()
        assert not reversed_path.closed
        assert reversed_path.anchors == [Point(10, 10), Point(10, 0), Point(0, 0)]
        assert reversed_path.controls == [None, (Point(7, -2), Point(3, -2))]

    def test_rotated(self):
        """Test rotation keeps every segment."""
        rotated = self.curved_path().rotated(1)
        assert subpath_data(rotated) == "M10,0 L10,10 C6,6 2,3.5 0,0 C3,-2 7,-2 10,0 Z"
