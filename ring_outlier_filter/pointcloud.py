from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

from ring_outlier_filter.errors import FormatError


class PointFieldType:
    """PointField datatype codes, as carried in sensor_msgs/PointField."""
    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    FLOAT32 = 7
    FLOAT64 = 8


NP_DTYPE_TO_CODE = {
    np.int8: PointFieldType.INT8,
    np.uint8: PointFieldType.UINT8,
    np.int16: PointFieldType.INT16,
    np.uint16: PointFieldType.UINT16,
    np.int32: PointFieldType.INT32,
    np.uint32: PointFieldType.UINT32,
    np.float32: PointFieldType.FLOAT32,
    np.float64: PointFieldType.FLOAT64
}

CODE_TO_NP_DTYPE = {v: k for k, v in NP_DTYPE_TO_CODE.items()}


@dataclass(frozen=True)
class PointField:
    name: str
    offset: int
    datatype: int
    count: int = 1


@dataclass
class PointCloud:
    """
    Row-major point record buffer described by a field-offset table.

    Mirrors the layout of a ``sensor_msgs/PointCloud2`` message without
    depending on a ROS installation.

    Attributes
    ----------
    fields : list of PointField
        Field table; offsets are relative to the start of each record.
    point_step : int
        Size of one record in bytes.
    data : bytes
        Raw record buffer, ``num_points * point_step`` bytes long.
    width, height : int
        Cloud dimensions. Unorganized clouds use ``height == 1``.
    is_bigendian : bool
        Byte order of every field in ``data``.
    is_dense : bool
        ``True`` if the cloud holds no invalid points.
    frame_id : str
        Coordinate frame of ``x, y, z``.
    stamp_ns : int
        Acquisition time in nanoseconds.
    """
    fields: List[PointField]
    point_step: int
    data: bytes
    width: int = 0
    height: int = 1
    is_bigendian: bool = False
    is_dense: bool = True
    frame_id: str = ""
    stamp_ns: int = 0

    @property
    def num_points(self) -> int:
        if self.point_step <= 0:
            return 0
        return len(self.data) // self.point_step

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


XYZI_FIELDS = [
    PointField(name="x", offset=0, datatype=PointFieldType.FLOAT32),
    PointField(name="y", offset=4, datatype=PointFieldType.FLOAT32),
    PointField(name="z", offset=8, datatype=PointFieldType.FLOAT32),
    PointField(name="intensity", offset=12, datatype=PointFieldType.FLOAT32),
]
XYZI_POINT_STEP = 16

# x, y, z, intensity, ring, azimuth, distance, return_type, time_stamp
XYZIRADRT_FIELDS = [
    PointField(name="x", offset=0, datatype=PointFieldType.FLOAT32),
    PointField(name="y", offset=4, datatype=PointFieldType.FLOAT32),
    PointField(name="z", offset=8, datatype=PointFieldType.FLOAT32),
    PointField(name="intensity", offset=12, datatype=PointFieldType.FLOAT32),
    PointField(name="ring", offset=16, datatype=PointFieldType.UINT16),
    PointField(name="azimuth", offset=20, datatype=PointFieldType.FLOAT32),
    PointField(name="distance", offset=24, datatype=PointFieldType.FLOAT32),
    PointField(name="return_type", offset=28, datatype=PointFieldType.UINT8),
    PointField(name="time_stamp", offset=32, datatype=PointFieldType.FLOAT64),
]
XYZIRADRT_POINT_STEP = 40


def fields_to_dtype(fields: Sequence[PointField], point_step: int, is_bigendian: bool = False) -> np.dtype:
    """
    Build a structured dtype that overlays ``fields`` on records of ``point_step`` bytes.

    Raises
    ------
    FormatError
        If a datatype code is unknown or a field does not fit in the record.
    """
    if point_step <= 0:
        raise FormatError(f"Invalid point_step: {point_step}")

    byteorder = ">" if is_bigendian else "<"
    names, formats, offsets = [], [], []

    for f in fields:
        np_type = CODE_TO_NP_DTYPE.get(f.datatype)
        if np_type is None:
            raise FormatError(f"Unsupported datatype {f.datatype} for field '{f.name}'")

        dt = np.dtype(np_type).newbyteorder(byteorder)
        if f.offset < 0 or f.offset + dt.itemsize > point_step:
            raise FormatError(f"Field '{f.name}' at offset {f.offset} does not fit in point_step {point_step}")

        names.append(f.name)
        formats.append(dt)
        offsets.append(f.offset)

    return np.dtype({"names": names, "formats": formats, "offsets": offsets, "itemsize": point_step})


def create_cloud(
    fields: Sequence[PointField],
    points: Union[np.ndarray, Sequence[Sequence[float]]],
    point_step: Optional[int] = None,
    frame_id: str = "",
    stamp_ns: int = 0,
    is_bigendian: bool = False,
    is_dense: bool = True
) -> PointCloud:
    """
    Pack ``points`` into a new :class:`PointCloud`.

    ``points`` is either a structured array whose field names match
    ``fields`` or a 2D array / sequence of tuples with one column per field,
    in the order of ``fields``.
    """
    if point_step is None:
        point_step = max(
            (f.offset + np.dtype(CODE_TO_NP_DTYPE[f.datatype]).itemsize for f in fields),
            default=0
        )

    dtype = fields_to_dtype(fields, point_step, is_bigendian)

    if isinstance(points, np.ndarray) and points.dtype.names is not None:
        num_points = points.shape[0]
        records = np.zeros(num_points, dtype=dtype)
        for name in dtype.names:
            records[name] = points[name]
    else:
        rows = np.asarray(points, dtype=np.float64).reshape(-1, len(fields))
        records = np.zeros(rows.shape[0], dtype=dtype)
        for col, f in enumerate(fields):
            records[f.name] = rows[:, col]

    return PointCloud(
        fields=list(fields),
        point_step=point_step,
        data=records.tobytes(),
        width=records.shape[0],
        height=1,
        is_bigendian=is_bigendian,
        is_dense=is_dense,
        frame_id=frame_id,
        stamp_ns=stamp_ns
    )


def create_xyzi_cloud(xyz: np.ndarray, intensity: np.ndarray, template: Optional[PointCloud] = None) -> PointCloud:
    """Pack float32 ``x, y, z, intensity`` columns, carrying header flags from ``template``."""
    is_bigendian = template.is_bigendian if template is not None else False
    dtype = fields_to_dtype(XYZI_FIELDS, XYZI_POINT_STEP, is_bigendian)

    records = np.empty(xyz.shape[0], dtype=dtype)
    records["x"] = xyz[:, 0]
    records["y"] = xyz[:, 1]
    records["z"] = xyz[:, 2]
    records["intensity"] = intensity

    return PointCloud(
        fields=list(XYZI_FIELDS),
        point_step=XYZI_POINT_STEP,
        data=records.tobytes(),
        width=records.shape[0],
        height=1,
        is_bigendian=is_bigendian,
        is_dense=template.is_dense if template is not None else True,
        frame_id=template.frame_id if template is not None else "",
        stamp_ns=template.stamp_ns if template is not None else 0
    )


def read_points_numpy(cloud: PointCloud, field_names: Optional[Sequence[str]] = None) -> np.ndarray:
    """Read the selected fields of every point into an ``(N, len(field_names))`` float64 array."""
    if field_names is None:
        field_names = cloud.field_names()

    dtype = fields_to_dtype(cloud.fields, cloud.point_step, cloud.is_bigendian)
    missing = [name for name in field_names if name not in dtype.names]
    if missing:
        raise FormatError(f"PointCloud missing fields: {missing}")

    if cloud.num_points:
        records = np.frombuffer(cloud.data, dtype=dtype, count=cloud.num_points)
    else:
        records = np.zeros(0, dtype=dtype)
    if len(field_names) == 0:
        return np.empty((records.shape[0], 0), dtype=np.float64)

    return np.column_stack([records[name].astype(np.float64) for name in field_names])


def create_xyziradrt_cloud(
    ring: Sequence[int],
    azimuth: Sequence[float],
    distance: Sequence[float],
    xyz: Optional[np.ndarray] = None,
    intensity: Optional[Sequence[float]] = None,
    frame_id: str = "",
    stamp_ns: int = 0,
    is_bigendian: bool = False
) -> PointCloud:
    """
    Pack per-point lidar channels into a ``XYZIRADRT_FIELDS`` cloud.

    When ``xyz`` is omitted the points are placed on the sensor plane from
    ``azimuth`` (centidegrees) and ``distance``.
    """
    ring = np.asarray(ring, dtype=np.uint16)
    azimuth = np.asarray(azimuth, dtype=np.float64)
    distance = np.asarray(distance, dtype=np.float64)

    if xyz is None:
        theta = np.deg2rad(azimuth / 100.0)
        xyz = np.column_stack([distance * np.cos(theta), distance * np.sin(theta), np.zeros_like(distance)])
    xyz = np.asarray(xyz, dtype=np.float64).reshape(-1, 3)

    if intensity is None:
        intensity = np.zeros(ring.shape[0])

    dtype = fields_to_dtype(XYZIRADRT_FIELDS, XYZIRADRT_POINT_STEP, is_bigendian)
    records = np.zeros(ring.shape[0], dtype=dtype)
    records["x"] = xyz[:, 0]
    records["y"] = xyz[:, 1]
    records["z"] = xyz[:, 2]
    records["intensity"] = intensity
    records["ring"] = ring
    records["azimuth"] = azimuth
    records["distance"] = distance

    return create_cloud(
        XYZIRADRT_FIELDS,
        records,
        point_step=XYZIRADRT_POINT_STEP,
        frame_id=frame_id,
        stamp_ns=stamp_ns,
        is_bigendian=is_bigendian
    )
