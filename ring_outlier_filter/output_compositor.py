from typing import List, Optional, Tuple

import numpy as np

from ring_outlier_filter.field_decoder import FieldDecoder
from ring_outlier_filter.pointcloud import PointCloud, create_xyzi_cloud
from ring_outlier_filter.transform import TransformInfo


class OutputCompositor:
    """
    Collects accepted and rejected points of one frame and packs them into fresh clouds.

    Kept walks contribute all of their points. A rejected walk contributes
    only its first point, except the last walk of a ring, which contributes
    each of its points. Rejected points are only collected when
    ``publish_noise_points`` is set.
    """
    def __init__(self, decoder: FieldDecoder, publish_noise_points: bool = False) -> None:
        self._decoder = decoder
        self._publish_noise_points = publish_noise_points
        self._output_chunks: List[np.ndarray] = []
        self._noise_chunks: List[np.ndarray] = []

    def add_ring(self, ring_indices: np.ndarray, firsts: np.ndarray, lasts: np.ndarray, kept: np.ndarray) -> None:
        """
        Add every walk of one ring.

        ``firsts`` and ``lasts`` are walk bounds as positions in
        ``ring_indices``; the walks tile the ring in order and the last one
        is the tail. ``kept`` holds one decision per walk.
        """
        if firsts.size == 0:
            return

        sizes = lasts - firsts + 1
        self._output_chunks.append(ring_indices[np.repeat(kept, sizes)])

        if self._publish_noise_points:
            noise = np.zeros(ring_indices.shape[0], dtype=bool)
            noise[firsts[~kept]] = True
            if not kept[-1]:
                noise[firsts[-1]:] = True
            self._noise_chunks.append(ring_indices[noise])

    @staticmethod
    def _gather(chunks: List[np.ndarray]) -> np.ndarray:
        if not chunks:
            return np.empty(0, dtype=np.intp)
        return np.concatenate(chunks)

    def _pack(self, indices: np.ndarray, source: PointCloud, transform_info: Optional[TransformInfo]) -> PointCloud:
        xyz = self._decoder.xyz(indices)
        if transform_info is not None:
            xyz = transform_info.apply(xyz)
        intensity = self._decoder.intensity[indices]

        cloud = create_xyzi_cloud(xyz, intensity, template=source)
        if transform_info is not None and transform_info.need_transform and transform_info.target_frame:
            cloud.frame_id = transform_info.target_frame
        return cloud

    def build(self, source: PointCloud,
              transform_info: Optional[TransformInfo] = None) -> Tuple[PointCloud, Optional[PointCloud]]:
        """
        Pack the collected points as ``x, y, z, intensity`` clouds.

        Returns
        -------
        Tuple[PointCloud, Optional[PointCloud]]
            Accepted cloud, and the rejected cloud when noise points are published.
        """
        output = self._pack(self._gather(self._output_chunks), source, transform_info)

        noise_points = None
        if self._publish_noise_points:
            noise_points = self._pack(self._gather(self._noise_chunks), source, transform_info)

        return output, noise_points
