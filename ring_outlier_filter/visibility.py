import logging
import math
from dataclasses import dataclass

import cv2
import numpy as np

from ring_outlier_filter.config import FilterConfig
from ring_outlier_filter.errors import ConfigurationError
from ring_outlier_filter.field_decoder import FieldDecoder
from ring_outlier_filter.ring_partition import RingPartition


LOG = logging.getLogger(__name__)

MAX_CELL_COUNT = 255


@dataclass
class VisibilityResult:
    """
    Outcome of one visibility pass.

    Attributes
    ----------
    visibility : float
        ``1 - filled_cells / total_cells``. 1 means no noise-dense cell.
    histogram : np.ndarray
        ``(vertical_bins, horizontal_bins)`` uint8 point counts, clamped to 255.
    binary_image : np.ndarray
        Same shape as ``histogram``; 255 where the cell is filled, else 0.
    filled_cells : int
        Number of filled cells.
    """
    visibility: float
    histogram: np.ndarray
    binary_image: np.ndarray
    filled_cells: int


def histogram_resolution(config: FilterConfig) -> float:
    """
    Width of one azimuth sector in centidegrees.

    Raises
    ------
    ConfigurationError
        If a bin count is not positive or the azimuth window gives a zero,
        negative or non-finite sector width.
    """
    if config.vertical_bins <= 0 or config.horizontal_bins <= 0:
        raise ConfigurationError(
            f"Histogram bins must be positive, got vertical_bins={config.vertical_bins} "
            f"horizontal_bins={config.horizontal_bins}"
        )

    min_azimuth, max_azimuth = config.roi.azimuth_window()
    resolution = (max_azimuth - min_azimuth) / config.horizontal_bins
    if not math.isfinite(resolution) or resolution <= 0.0:
        raise ConfigurationError(
            f"Degenerate azimuth window [{min_azimuth}, {max_azimuth}) for {config.horizontal_bins} bins"
        )
    return resolution


class VisibilityEstimator:
    """
    Ring x azimuth occupancy histogram reduced to a visibility score.

    Each ring is one histogram row and each azimuth sector of the active
    window one column. A point counts toward its cell when it lies inside
    the configured region of interest.
    """
    def __init__(self, config: FilterConfig) -> None:
        self.config = config
        self.resolution = histogram_resolution(config)
        self.min_azimuth, self.max_azimuth = config.roi.azimuth_window()
        self._sector_edges = self.min_azimuth + self.resolution * np.arange(config.horizontal_bins + 1)

    def _count_ring(self, indices: np.ndarray, decoder: FieldDecoder) -> np.ndarray:
        azimuth = np.maximum(decoder.azimuth[indices].astype(np.float64), 0.0)
        order = np.argsort(azimuth, kind="stable")
        indices = indices[order]
        azimuth = azimuth[order]

        in_roi = self.config.roi.contains(
            decoder.x[indices], decoder.y[indices], decoder.z[indices],
            azimuth, decoder.distance[indices]
        )
        roi_cumulative = np.concatenate(([0], np.cumsum(in_roi)))

        # forward-only scan: sector k covers the points between consecutive edges
        scan = np.searchsorted(azimuth, self._sector_edges, side="left")
        return roi_cumulative[scan[1:]] - roi_cumulative[scan[:-1]]

    def build_histogram(self, decoder: FieldDecoder, partition: RingPartition) -> np.ndarray:
        histogram = np.zeros((self.config.vertical_bins, self.config.horizontal_bins), dtype=np.uint8)

        for ring, indices in partition:
            if ring >= self.config.vertical_bins:
                raise ConfigurationError(
                    f"Ring id {ring} does not fit in vertical_bins {self.config.vertical_bins}"
                )
            counts = self._count_ring(indices, decoder)
            histogram[ring] = np.minimum(counts, MAX_CELL_COUNT).astype(np.uint8)

        return histogram

    def estimate(self, decoder: FieldDecoder, partition: RingPartition) -> VisibilityResult:
        histogram = self.build_histogram(decoder, partition)

        _, binary_image = cv2.threshold(histogram, self.config.noise_threshold, 255, cv2.THRESH_BINARY)
        filled_cells = int(cv2.countNonZero(binary_image))
        total_cells = self.config.vertical_bins * self.config.horizontal_bins
        visibility = 1.0 - filled_cells / total_cells

        LOG.debug("filled cells: %d / %d, visibility: %.3f", filled_cells, total_cells, visibility)

        return VisibilityResult(
            visibility=visibility,
            histogram=histogram,
            binary_image=binary_image,
            filled_cells=filled_cells
        )


def render_frequency_image(histogram: np.ndarray) -> np.ndarray:
    """Colorize a uint8 histogram for display (counts x4, JET colormap, BGR)."""
    scaled = cv2.convertScaleAbs(histogram, alpha=4.0)
    return cv2.applyColorMap(scaled, cv2.COLORMAP_JET)
