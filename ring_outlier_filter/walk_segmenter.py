from dataclasses import dataclass
from typing import Iterator, Tuple, Union

import numpy as np

from ring_outlier_filter.config import FULL_ROTATION, FilterConfig
from ring_outlier_filter.field_decoder import FieldDecoder
from ring_outlier_filter.ring_partition import RingPartition


AZIMUTH_CONTINUITY_TOLERANCE = 100.0  # centidegrees


@dataclass(frozen=True)
class Walk:
    """
    Run of continuous points ``[first, last]`` within one ring's index list.

    ``first`` and ``last`` are positions in the ring's index list, not point
    indices. ``is_tail`` marks the last walk of a ring.
    """
    ring: int
    first: int
    last: int
    is_tail: bool = False

    @property
    def size(self) -> int:
        return self.last - self.first + 1

    def point_indices(self, ring_indices: np.ndarray) -> np.ndarray:
        return ring_indices[self.first:self.last + 1]


def azimuth_difference(current: Union[float, np.ndarray], next_: Union[float, np.ndarray]) -> np.ndarray:
    """
    Forward azimuth step from ``current`` to ``next_`` in centidegrees, in ``[0, 36000)``.

    A step across north wraps around: 35950 -> 50 is 100, not -35900.
    """
    diff = np.mod(np.asarray(next_, dtype=np.float64) - np.asarray(current, dtype=np.float64), FULL_ROTATION)
    # a tiny negative step rounds up to a full turn
    return np.where(diff >= FULL_ROTATION, 0.0, diff)


def is_continuous(current_azimuth, next_azimuth, current_distance, next_distance,
                  distance_ratio: float) -> np.ndarray:
    """Continuity predicate for consecutive returns of one ring."""
    current_distance = np.asarray(current_distance, dtype=np.float64)
    next_distance = np.asarray(next_distance, dtype=np.float64)

    near = np.minimum(current_distance, next_distance)
    far = np.maximum(current_distance, next_distance)
    azimuth_diff = azimuth_difference(current_azimuth, next_azimuth)

    return (far < near * distance_ratio) & (azimuth_diff < AZIMUTH_CONTINUITY_TOLERANCE)


def walk_bounds(indices: np.ndarray, decoder: FieldDecoder, config: FilterConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    First and last positions of every walk in one ring.

    Consecutive pairs ``(current, next)`` extend the open walk while they are
    continuous; a break closes ``[walk_first, current]`` and opens a new walk
    at ``next``. The open walk is closed at the end of the ring, so the walks
    tile ``[0, len(indices))`` in order. Rings with fewer than two points
    have no walks.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        ``firsts`` and ``lasts``, positions in the ring's index list.
    """
    if len(indices) < 2:
        empty = np.empty(0, dtype=np.intp)
        return empty, empty

    azimuth = decoder.azimuth[indices]
    distance = decoder.distance[indices]
    continuous = is_continuous(azimuth[:-1], azimuth[1:], distance[:-1], distance[1:], config.distance_ratio)

    breaks = np.flatnonzero(~continuous)
    firsts = np.concatenate(([0], breaks + 1)).astype(np.intp)
    lasts = np.concatenate((breaks, [len(indices) - 1])).astype(np.intp)
    return firsts, lasts


def segment_ring(ring: int, indices: np.ndarray, decoder: FieldDecoder, config: FilterConfig) -> Iterator[Walk]:
    """Walks of one ring as :class:`Walk` records; the last one is the tail."""
    firsts, lasts = walk_bounds(indices, decoder, config)
    for k, (first, last) in enumerate(zip(firsts, lasts)):
        yield Walk(ring=ring, first=int(first), last=int(last), is_tail=k == len(firsts) - 1)


def segment_walks(partition: RingPartition, decoder: FieldDecoder, config: FilterConfig) -> Iterator[Walk]:
    for ring, indices in partition:
        yield from segment_ring(ring, indices, decoder, config)
