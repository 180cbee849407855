from dataclasses import dataclass
from typing import Dict

import numpy as np

from ring_outlier_filter.errors import FormatError
from ring_outlier_filter.pointcloud import PointCloud, PointField, fields_to_dtype


REQUIRED_FIELDS = ("ring", "azimuth", "distance", "intensity", "x", "y", "z")


@dataclass(frozen=True)
class PointCloudLayout:
    point_step: int
    is_bigendian: bool
    ring_offset: int
    azimuth_offset: int
    distance_offset: int
    intensity_offset: int
    x_offset: int
    y_offset: int
    z_offset: int


class FieldDecoder:
    """
    Typed, read-only view over a point record buffer.

    The buffer is validated once when the decoder is built: every required
    field must be present with a known datatype and fit inside one record,
    and the buffer length must be a whole number of records. After that the
    per-field accessors are numpy views into the original bytes, so reading
    a field never copies the buffer.

    Parameters
    ----------
    cloud : PointCloud
        Source cloud. Its buffer is never written to.

    Raises
    ------
    FormatError
        If the field table or buffer length is invalid.
    """
    def __init__(self, cloud: PointCloud) -> None:
        fields: Dict[str, PointField] = {f.name: f for f in cloud.fields}
        missing = [k for k in REQUIRED_FIELDS if k not in fields]
        if missing:
            raise FormatError(f"PointCloud missing required fields: {missing}")

        if cloud.point_step <= 0:
            raise FormatError(f"Invalid point_step: {cloud.point_step}")

        if len(cloud.data) % cloud.point_step != 0:
            raise FormatError(
                f"Buffer length {len(cloud.data)} is not a multiple of point_step {cloud.point_step}"
            )

        required = [fields[k] for k in REQUIRED_FIELDS]
        dtype = fields_to_dtype(required, cloud.point_step, cloud.is_bigendian)
        if dtype["ring"].kind not in ("u", "i"):
            raise FormatError(f"Ring field must be an integer type, got datatype {fields['ring'].datatype}")

        self.layout = PointCloudLayout(
            point_step=cloud.point_step,
            is_bigendian=cloud.is_bigendian,
            ring_offset=fields["ring"].offset,
            azimuth_offset=fields["azimuth"].offset,
            distance_offset=fields["distance"].offset,
            intensity_offset=fields["intensity"].offset,
            x_offset=fields["x"].offset,
            y_offset=fields["y"].offset,
            z_offset=fields["z"].offset
        )

        num_points = len(cloud.data) // cloud.point_step
        if num_points:
            records = np.frombuffer(cloud.data, dtype=dtype, count=num_points)
        else:
            records = np.zeros(0, dtype=dtype)
        records.flags.writeable = False
        self._records = records

    @classmethod
    def from_cloud(cls, cloud: PointCloud) -> "FieldDecoder":
        return cls(cloud)

    @property
    def num_points(self) -> int:
        return self._records.shape[0]

    @property
    def ring(self) -> np.ndarray:
        return self._records["ring"]

    @property
    def azimuth(self) -> np.ndarray:
        return self._records["azimuth"]

    @property
    def distance(self) -> np.ndarray:
        return self._records["distance"]

    @property
    def intensity(self) -> np.ndarray:
        return self._records["intensity"]

    @property
    def x(self) -> np.ndarray:
        return self._records["x"]

    @property
    def y(self) -> np.ndarray:
        return self._records["y"]

    @property
    def z(self) -> np.ndarray:
        return self._records["z"]

    def xyz(self, indices: np.ndarray) -> np.ndarray:
        """Gather ``x, y, z`` of the given point indices into an ``(N, 3)`` float64 array."""
        out = np.empty((len(indices), 3), dtype=np.float64)
        out[:, 0] = self.x[indices]
        out[:, 1] = self.y[indices]
        out[:, 2] = self.z[indices]
        return out

    def byte_offset(self, index: int) -> int:
        if index < 0 or index >= self.num_points:
            raise IndexError(f"Point index {index} out of range for {self.num_points} points")
        return index * self.layout.point_step
