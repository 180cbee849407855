import numpy as np

from ring_outlier_filter.config import FilterConfig
from ring_outlier_filter.field_decoder import FieldDecoder


def is_cluster(walk_indices: np.ndarray, decoder: FieldDecoder, config: FilterConfig) -> bool:
    """
    Decide whether a walk is a real object.

    A walk is kept when it holds at least ``num_points_threshold`` points,
    or when its first and last points are at least
    ``object_length_threshold`` apart.
    """
    if len(walk_indices) == 0:
        return False

    if len(walk_indices) >= config.num_points_threshold:
        return True

    first, last = int(walk_indices[0]), int(walk_indices[-1])
    dx = float(decoder.x[first]) - float(decoder.x[last])
    dy = float(decoder.y[first]) - float(decoder.y[last])
    dz = float(decoder.z[first]) - float(decoder.z[last])

    return dx * dx + dy * dy + dz * dz >= config.object_length_threshold * config.object_length_threshold


def cluster_mask(first_indices: np.ndarray, last_indices: np.ndarray, sizes: np.ndarray,
                 decoder: FieldDecoder, config: FilterConfig) -> np.ndarray:
    """
    :func:`is_cluster` for many walks at once.

    Parameters
    ----------
    first_indices, last_indices : np.ndarray
        Point indices of the first and last point of each walk.
    sizes : np.ndarray
        Number of points in each walk.

    Returns
    -------
    np.ndarray
        Boolean mask, True for walks kept as objects.
    """
    dx = decoder.x[first_indices].astype(np.float64) - decoder.x[last_indices].astype(np.float64)
    dy = decoder.y[first_indices].astype(np.float64) - decoder.y[last_indices].astype(np.float64)
    dz = decoder.z[first_indices].astype(np.float64) - decoder.z[last_indices].astype(np.float64)
    extent_sq = dx * dx + dy * dy + dz * dz

    long_enough = sizes >= config.num_points_threshold
    wide_enough = extent_sq >= config.object_length_threshold * config.object_length_threshold
    return (sizes > 0) & (long_enough | wide_enough)
