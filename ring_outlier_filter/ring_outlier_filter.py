import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import numpy as np

from ring_outlier_filter.cluster_classifier import cluster_mask
from ring_outlier_filter.config import (
    DEFAULT_PARAMETERS,
    FilterConfig,
    SetParametersResult,
    config_from_parameters,
    load_parameters_file,
    normalize_parameters
)
from ring_outlier_filter.errors import ConfigurationError
from ring_outlier_filter.field_decoder import FieldDecoder
from ring_outlier_filter.output_compositor import OutputCompositor
from ring_outlier_filter.pointcloud import PointCloud
from ring_outlier_filter.ring_partition import partition_rings
from ring_outlier_filter.transform import TransformInfo, TransformProvider, resolve_transform
from ring_outlier_filter.visibility import VisibilityEstimator, histogram_resolution, render_frequency_image
from ring_outlier_filter.walk_segmenter import walk_bounds


LOG = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """
    Everything produced for one frame.

    Attributes
    ----------
    output : PointCloud
        Accepted points as ``x, y, z, intensity``.
    noise_points : PointCloud or None
        Rejected representatives, when ``publish_noise_points`` is set.
    visibility : float
        Visibility score in ``[0, 1]``.
    histogram : np.ndarray
        ``(vertical_bins, horizontal_bins)`` uint8 counts behind ``visibility``.
    frequency_image : np.ndarray or None
        Colorized BGR histogram, when ``publish_noise_points`` is set.
    """
    output: PointCloud
    noise_points: Optional[PointCloud]
    visibility: float
    histogram: np.ndarray
    frequency_image: Optional[np.ndarray] = None


class RingOutlierFilter:
    """
    Per-frame ring outlier filter with a visibility estimate.

    Points of each ring are split into walks of azimuth- and
    range-continuous returns. Walks that are long enough, or wide enough,
    are kept as objects; the rest is treated as noise. Independently, all
    points of the frame are binned into a ring x azimuth histogram whose
    share of noise-dense cells gives the visibility score.

    Parameter updates and frame processing are serialized by one lock, so
    each frame runs on a single consistent configuration snapshot.

    Parameters
    ----------
    parameters : Mapping[str, Any], optional
        Flat parameter values; missing ones take their defaults.
    """
    def __init__(self, parameters: Optional[Mapping[str, Any]] = None) -> None:
        self._lock = threading.Lock()
        self._parameters: Dict[str, Any] = dict(DEFAULT_PARAMETERS)
        self._parameters.update(normalize_parameters(parameters or {}))
        self._config = self._load_configuration(self._parameters)

    @classmethod
    def from_parameters_file(cls, path: str, node_name: str = "ring_outlier_filter") -> "RingOutlierFilter":
        return cls(load_parameters_file(path, node_name))

    @staticmethod
    def _load_configuration(parameters: Mapping[str, Any]) -> FilterConfig:
        config = config_from_parameters(parameters)
        histogram_resolution(config)
        return config

    @property
    def config(self) -> FilterConfig:
        with self._lock:
            return self._config

    @property
    def parameters(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._parameters)

    def set_parameters(self, updates: Mapping[str, Any]) -> SetParametersResult:
        """
        Apply parameter updates atomically.

        The merged parameter set is validated as a whole; on failure the
        current configuration stays in place and the reason is reported.
        """
        with self._lock:
            try:
                normalized = normalize_parameters(updates)
                merged = dict(self._parameters)
                merged.update(normalized)
                config = self._load_configuration(merged)
            except ConfigurationError as e:
                LOG.warning("Rejected parameter update: %s", e)
                return SetParametersResult(successful=False, reason=str(e))

            self._parameters = merged
            self._config = config

        for name, value in normalized.items():
            LOG.debug("Setting new %s to: %s.", name, value)

        return SetParametersResult(successful=True, reason="success")

    def filter(
        self,
        cloud: PointCloud,
        transform_info: Union[TransformInfo, TransformProvider, None] = None,
        indices: Optional[Sequence[int]] = None
    ) -> FilterResult:
        """
        Run one frame through the filter.

        Parameters
        ----------
        cloud : PointCloud
            Input frame with ``ring, azimuth, distance, intensity, x, y, z`` fields.
        transform_info : TransformInfo or callable, optional
            Transform for the output points, or a zero-argument lookup returning one.
        indices : sequence of int, optional
            Not supported; ignored with a warning.

        Returns
        -------
        FilterResult

        Raises
        ------
        FormatError
            If the input buffer cannot be decoded.
        ConfigurationError
            If the histogram configuration is degenerate for this frame.
        TransformError
            If the transform cannot be obtained.
        """
        with self._lock:
            config = self._config

            if indices is not None:
                LOG.warning("Indices are not supported and will be ignored")

            decoder = FieldDecoder.from_cloud(cloud)
            partition = partition_rings(decoder.ring, config.max_rings_num, config.max_points_num_per_ring)
            transform = resolve_transform(transform_info)

            compositor = OutputCompositor(decoder, config.publish_noise_points)
            for _, ring_indices in partition:
                firsts, lasts = walk_bounds(ring_indices, decoder, config)
                kept = cluster_mask(ring_indices[firsts], ring_indices[lasts], lasts - firsts + 1, decoder, config)
                compositor.add_ring(ring_indices, firsts, lasts, kept)

            visibility = VisibilityEstimator(config).estimate(decoder, partition)
            output, noise_points = compositor.build(cloud, transform)

            frequency_image = None
            if config.publish_noise_points:
                frequency_image = render_frequency_image(visibility.histogram)

        LOG.debug(
            "Filtered %d -> %d points (%s noise), visibility %.3f",
            decoder.num_points, output.num_points,
            noise_points.num_points if noise_points is not None else "no",
            visibility.visibility
        )

        return FilterResult(
            output=output,
            noise_points=noise_points,
            visibility=visibility.visibility,
            histogram=visibility.histogram,
            frequency_image=frequency_image
        )
