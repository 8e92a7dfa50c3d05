"""Raster-to-vector pipeline: decode, quantize, extract, trace, refine, fit, emit."""
import logging
import os
import threading
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from openvec.boundary_refiner import BoundaryRefiner
from openvec.contour_tracing import trace_region
from openvec.options import VectorizeOptions
from openvec.quantization import quantize
from openvec.raster_ingest import decode_image
from openvec.region_extraction import extract_regions, region_label_map
from openvec.shared_boundaries import ChainSplitter, assemble_contour, fit_chain
from openvec.svg_export import path_data
from openvec.types import (
    CancelledError,
    InternalError,
    OptionsError,
    PathGroup,
    PixelBuffer,
    RegionContours,
    VectorDocument,
    VectorizeError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def resolve_options(options: Any) -> VectorizeOptions:
    """Accept VectorizeOptions, a flat record, or None for defaults."""
    if options is None:
        return VectorizeOptions()
    if isinstance(options, VectorizeOptions):
        return options
    if isinstance(options, Mapping):
        return VectorizeOptions.from_dict(options)
    raise OptionsError(f"options must be VectorizeOptions or a mapping, got {type(options).__name__}")


def _resolve_workers(max_workers: Optional[int]) -> int:
    if max_workers is None:
        return 1
    if isinstance(max_workers, bool) or not isinstance(max_workers, int):
        raise OptionsError(f"max_workers must be an integer, got {max_workers!r}")
    if max_workers == -1:
        return os.cpu_count() or 1
    if max_workers < 1:
        raise OptionsError(f"max_workers must be >= 1 or -1, got {max_workers}")
    return max_workers


class Vectorizer:
    """
    Converts raster images into vector documents.

    The same options and input always give the same document, whether
    regions are processed sequentially or on a thread pool.
    """

    def __init__(self, options: Any = None, max_workers: Optional[int] = None):
        """
        Initialize vectorizer.

        Args:
            options: VectorizeOptions or flat record (uses defaults if None)
            max_workers: Threads for per-region work; None or 1 runs in
                the calling thread, -1 uses one thread per CPU
        """
        self.options = resolve_options(options)
        self.max_workers = _resolve_workers(max_workers)

    def vectorize(
        self,
        image_bytes: bytes,
        cancel_event: Optional[threading.Event] = None,
    ) -> VectorDocument:
        """
        Vectorize encoded image bytes.

        Args:
            image_bytes: Encoded raster image
            cancel_event: Set from another thread to abort the run

        Returns:
            VectorDocument

        Raises:
            VectorizeError: DecodeError, InvalidGeometry, InternalError or
                CancelledError
        """
        try:
            self._check_cancel(cancel_event)
            logger.info("Step 1/7: Decoding image...")
            buffer = decode_image(image_bytes, self.options.max_pixels)
            logger.info(f"  Image: {buffer.width}x{buffer.height}")
            return self._run(buffer, cancel_event)
        except VectorizeError:
            raise
        except Exception as e:
            raise InternalError(f"Unexpected failure during vectorization: {e}") from e

    def vectorize_buffer(
        self,
        buffer: PixelBuffer,
        cancel_event: Optional[threading.Event] = None,
    ) -> VectorDocument:
        """Vectorize an already decoded PixelBuffer."""
        try:
            return self._run(buffer, cancel_event)
        except VectorizeError:
            raise
        except Exception as e:
            raise InternalError(f"Unexpected failure during vectorization: {e}") from e

    def _run(self, buffer: PixelBuffer, cancel_event: Optional[threading.Event]) -> VectorDocument:
        start_time = time.time()
        options = self.options
        preset = options.preset

        self._check_cancel(cancel_event)
        logger.info(f"Step 2/7: Quantizing to at most {options.max_colors} colors...")
        quantized = quantize(buffer, options.max_colors)
        logger.info(f"  Palette: {len(quantized)} colors")

        self._check_cancel(cancel_event)
        min_area = options.min_region_area(buffer.width, buffer.height)
        logger.info(f"Step 3/7: Extracting regions (min area {min_area} px)...")
        regions = extract_regions(quantized, min_area=min_area)
        logger.info(f"  Found {len(regions)} regions")

        self._check_cancel(cancel_event)
        logger.info("Step 4/7: Tracing contours...")
        traced = self._map(trace_region, regions, cancel_event)

        self._check_cancel(cancel_event)
        refiner = BoundaryRefiner(buffer, enabled=preset.refine_boundaries)
        logger.info(
            f"Step 5/7: Refining boundaries ({'on' if refiner.enabled else 'off'})..."
        )
        refined = traced
        if refiner.enabled:
            refined = self._map(lambda rc: _refine_region(refiner, rc), traced, cancel_event)

        self._check_cancel(cancel_event)
        tolerance = options.effective_tolerance
        smoothness = options.effective_smoothness
        logger.info(
            f"Step 6/7: Simplifying (tolerance {tolerance:.3f}) "
            f"and fitting curves (smoothness {smoothness:.3f})..."
        )
        splitter = ChainSplitter(region_label_map(regions, buffer.height, buffer.width))
        chained = self._map(
            lambda pair: [splitter.split(t, r) for t, r in zip(pair[0].all(), pair[1].all())],
            list(zip(traced, refined)),
            cancel_event,
        )
        owned = self._map(
            lambda contours: [
                (chain.key, fit_chain(chain, tolerance, smoothness,
                                      preset.corner_angle, preset.fit_curves))
                for chains in contours for chain in chains if chain.is_owned
            ],
            chained,
            cancel_event,
        )
        fitted_chains = {key: path for pairs in owned for key, path in pairs}
        logger.debug(f"  Fitted {len(fitted_chains)} boundary chains")
        fitted = self._map(
            lambda contours: [assemble_contour(chains, fitted_chains) for chains in contours],
            chained,
            cancel_event,
        )

        self._check_cancel(cancel_event)
        logger.info("Step 7/7: Emitting paths...")
        groups = [
            PathGroup(
                palette_index=i,
                color=quantized.color(i),
                opacity=float(quantized.opacity[i]),
            )
            for i in range(len(quantized))
        ]
        for region, paths in zip(regions, fitted):
            groups[region.palette_index].paths.append(path_data(paths))

        document = VectorDocument(
            width=buffer.width,
            height=buffer.height,
            groups=[g for g in groups if g.paths],
            palette=[quantized.color(i) for i in range(len(quantized))],
            source_width=buffer.source_width,
            source_height=buffer.source_height,
        )

        elapsed = time.time() - start_time
        curves = sum(p.curve_count for paths in fitted for p in paths)
        logger.debug(f"  {document.region_count} paths, {curves} curves in {elapsed:.3f}s")
        return document

    def _map(
        self,
        func: Callable[[T], R],
        items: Sequence[T],
        cancel_event: Optional[threading.Event],
    ) -> List[R]:
        """Apply func to every item, in order, checking for cancellation before each."""
        def task(item: T) -> R:
            self._check_cancel(cancel_event)
            return func(item)

        if self.max_workers <= 1 or len(items) <= 1:
            return [task(item) for item in items]

        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(task, item) for item in items]
            try:
                return [future.result() for future in futures]
            finally:
                for future in futures:
                    future.cancel()

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CancelledError("Vectorization was cancelled")


def _refine_region(refiner: BoundaryRefiner, contours: RegionContours) -> RegionContours:
    return RegionContours(
        region_id=contours.region_id,
        outer=refiner.refine_contour(contours.outer),
        holes=[refiner.refine_contour(h) for h in contours.holes],
    )


def vectorize(
    image_bytes: bytes,
    options: Any = None,
    *,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> VectorDocument:
    """
    Vectorize encoded image bytes into a VectorDocument.

    Args:
        image_bytes: Encoded raster image
        options: VectorizeOptions or flat record (defaults if None)
        max_workers: Threads for per-region work
        cancel_event: Set from another thread to abort the run

    Returns:
        VectorDocument

    Raises:
        VectorizeError: On invalid options, undecodable input, geometry
            failures or cancellation
    """
    return Vectorizer(options, max_workers=max_workers).vectorize(image_bytes, cancel_event)


def png_to_svg(image_bytes: bytes, options: Any = None, **kwargs) -> str:
    """Vectorize image bytes and render the result as SVG text."""
    return vectorize(image_bytes, options, **kwargs).to_svg()
