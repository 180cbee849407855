import logging
from typing import Iterator, List, Tuple

import numpy as np

from ring_outlier_filter.errors import FormatError


LOG = logging.getLogger(__name__)


class RingPartition:
    """
    Point indices grouped by ring id.

    ``indices_of(ring)`` returns the indices of one ring in acquisition
    order. The byte offset of an index is ``index * point_step``.
    """
    def __init__(self, order: np.ndarray, counts: np.ndarray) -> None:
        self._order = order
        self._counts = counts
        self._starts = np.concatenate(([0], np.cumsum(counts)[:-1])) if counts.size else counts

    def indices_of(self, ring: int) -> np.ndarray:
        start = int(self._starts[ring])
        return self._order[start:start + int(self._counts[ring])]

    def __iter__(self) -> Iterator[Tuple[int, np.ndarray]]:
        for ring in np.flatnonzero(self._counts):
            yield int(ring), self.indices_of(int(ring))

    def rings(self) -> List[int]:
        return [int(r) for r in np.flatnonzero(self._counts)]

    def __len__(self) -> int:
        return int(self._counts.sum())


def partition_rings(ring_ids: np.ndarray, max_rings: int, expected_points_per_ring: int = 0) -> RingPartition:
    """
    Group point indices by ring id, preserving acquisition order within each ring.

    Parameters
    ----------
    ring_ids : np.ndarray
        Ring id of every point, indexed by point index.
    max_rings : int
        Exclusive upper bound on ring ids.
    expected_points_per_ring : int, optional
        Capacity hint. Rings holding more points are reported in the log.

    Raises
    ------
    FormatError
        If any ring id is negative or ``>= max_rings``.
    """
    ring_ids = np.asarray(ring_ids)
    if ring_ids.size:
        lowest, highest = int(ring_ids.min()), int(ring_ids.max())
        if lowest < 0 or highest >= max_rings:
            bad = highest if highest >= max_rings else lowest
            raise FormatError(f"Ring id {bad} out of range for max_rings_num {max_rings}")

    # stable sort on 16-bit keys is a radix sort, one pass over the points
    order = np.argsort(ring_ids, kind="stable")
    counts = np.bincount(ring_ids.astype(np.intp), minlength=max_rings)

    if expected_points_per_ring > 0:
        for ring in np.flatnonzero(counts > expected_points_per_ring):
            LOG.warning(
                "Ring %d holds %d points, more than max_points_num_per_ring %d",
                ring, counts[ring], expected_points_per_ring
            )

    return RingPartition(order, counts)
