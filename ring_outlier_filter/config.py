import os
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Tuple, Union

import numpy as np
import yaml

from ring_outlier_filter.errors import ConfigurationError


FULL_ROTATION = 36000.0  # centidegrees

DEFAULT_NODE_NAME = "ring_outlier_filter"


@dataclass(frozen=True)
class NoRoi:
    """Every point counts toward the histogram."""
    mode: ClassVar[str] = "No_ROI"

    def azimuth_window(self) -> Tuple[float, float]:
        return 0.0, FULL_ROTATION

    def contains(self, x: np.ndarray, y: np.ndarray, z: np.ndarray,
                 azimuth: np.ndarray, distance: np.ndarray) -> np.ndarray:
        return np.ones(azimuth.shape, dtype=bool)


@dataclass(frozen=True)
class FixedXyzRoi:
    """Axis-aligned box in the sensor frame, open on every side."""
    mode: ClassVar[str] = "Fixed_xyz_ROI"

    x_min: float = -12.0
    x_max: float = 18.0
    y_min: float = -2.0
    y_max: float = 2.0
    z_min: float = 0.0
    z_max: float = 10.0

    def azimuth_window(self) -> Tuple[float, float]:
        return 0.0, FULL_ROTATION

    def contains(self, x: np.ndarray, y: np.ndarray, z: np.ndarray,
                 azimuth: np.ndarray, distance: np.ndarray) -> np.ndarray:
        return (
            (x > self.x_min) & (x < self.x_max) &
            (y > self.y_min) & (y < self.y_max) &
            (z > self.z_min) & (z < self.z_max)
        )


@dataclass(frozen=True)
class AzimuthDistanceRoi:
    """Angular sector in degrees, limited to returns closer than ``max_distance``."""
    mode: ClassVar[str] = "Fixed_azimuth_ROI"

    min_azimuth_deg: float = 135.0
    max_azimuth_deg: float = 225.0
    max_distance: float = 12.0

    def azimuth_window(self) -> Tuple[float, float]:
        return self.min_azimuth_deg * 100.0, self.max_azimuth_deg * 100.0

    def contains(self, x: np.ndarray, y: np.ndarray, z: np.ndarray,
                 azimuth: np.ndarray, distance: np.ndarray) -> np.ndarray:
        min_azimuth, max_azimuth = self.azimuth_window()
        return (azimuth > min_azimuth) & (azimuth < max_azimuth) & (distance < self.max_distance)


Roi = Union[NoRoi, FixedXyzRoi, AzimuthDistanceRoi]

ROI_MODES = {
    NoRoi.mode: NoRoi,
    FixedXyzRoi.mode: FixedXyzRoi,
    AzimuthDistanceRoi.mode: AzimuthDistanceRoi,
}


@dataclass(frozen=True)
class FilterConfig:
    """
    Immutable parameter snapshot read by one frame.

    Attributes
    ----------
    distance_ratio : float
        Two neighbouring returns are continuous while the farther one is
        closer than ``distance_ratio`` times the nearer one.
    object_length_threshold : float
        Minimum first-to-last extent (m) for a short walk to count as an object.
    num_points_threshold : int
        Minimum walk length for a walk to count as an object.
    max_rings_num : int
        Exclusive upper bound on ring ids.
    max_points_num_per_ring : int
        Expected points per ring, used as a capacity hint.
    publish_noise_points : bool
        Build the rejected-point cloud and the diagnostic image.
    roi : Roi
        Region of interest for the visibility histogram.
    vertical_bins, horizontal_bins : int
        Histogram rows (rings) and columns (azimuth sectors).
    max_azimuth_diff : float
        Accepted for parameter compatibility; continuity uses a fixed 1 degree.
    noise_threshold : int
        A histogram cell is filled when its count exceeds this value.
    """
    distance_ratio: float = 1.03
    object_length_threshold: float = 0.1
    num_points_threshold: int = 4
    max_rings_num: int = 128
    max_points_num_per_ring: int = 4000
    publish_noise_points: bool = False
    roi: Roi = field(default_factory=FixedXyzRoi)
    vertical_bins: int = 128
    horizontal_bins: int = 36
    max_azimuth_diff: float = 50.0
    noise_threshold: int = 2


DEFAULT_PARAMETERS: Dict[str, Any] = {
    "distance_ratio": 1.03,
    "object_length_threshold": 0.1,
    "num_points_threshold": 4,
    "max_rings_num": 128,
    "max_points_num_per_ring": 4000,
    "publish_noise_points": False,
    "x_min": -12.0,
    "x_max": 18.0,
    "y_min": -2.0,
    "y_max": 2.0,
    "z_min": 0.0,
    "z_max": 10.0,
    "min_azimuth_deg": 135.0,
    "max_azimuth_deg": 225.0,
    "max_distance": 12.0,
    "vertical_bins": 128,
    "horizontal_bins": 36,
    "max_azimuth_diff": 50.0,
    "noise_threshold": 2,
    "roi_mode": FixedXyzRoi.mode,
}

_PARAMETER_TYPES = {name: type(value) for name, value in DEFAULT_PARAMETERS.items()}


def _coerce(name: str, value: Any) -> Any:
    expected = _PARAMETER_TYPES.get(name)
    if expected is None:
        raise ConfigurationError(f"Unknown parameter: {name}")

    if expected is bool:
        if not isinstance(value, bool):
            raise ConfigurationError(f"Parameter '{name}' expects bool, got {value!r}")
        return value

    if expected is int:
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ConfigurationError(f"Parameter '{name}' expects int, got {value!r}")
        return int(value)

    if expected is float:
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise ConfigurationError(f"Parameter '{name}' expects float, got {value!r}")
        return float(value)

    if not isinstance(value, str):
        raise ConfigurationError(f"Parameter '{name}' expects str, got {value!r}")
    return value


def normalize_parameters(parameters: Mapping[str, Any]) -> Dict[str, Any]:
    """Check names and types of ``parameters``, returning a coerced copy."""
    return {name: _coerce(name, value) for name, value in parameters.items()}


def config_from_parameters(parameters: Mapping[str, Any]) -> FilterConfig:
    """
    Build a :class:`FilterConfig` from the flat parameter surface.

    Missing parameters take their defaults. The ``roi_mode`` string selects
    which bounds end up in the ROI variant.

    Raises
    ------
    ConfigurationError
        On unknown names, wrong types or an unknown ``roi_mode``. Also when
        the ring count is not positive or ``vertical_bins`` is below it.
    """
    p = dict(DEFAULT_PARAMETERS)
    p.update(normalize_parameters(parameters))

    roi_mode = p["roi_mode"]
    if roi_mode == FixedXyzRoi.mode:
        roi: Roi = FixedXyzRoi(
            x_min=p["x_min"], x_max=p["x_max"],
            y_min=p["y_min"], y_max=p["y_max"],
            z_min=p["z_min"], z_max=p["z_max"]
        )
    elif roi_mode == AzimuthDistanceRoi.mode:
        roi = AzimuthDistanceRoi(
            min_azimuth_deg=p["min_azimuth_deg"],
            max_azimuth_deg=p["max_azimuth_deg"],
            max_distance=p["max_distance"]
        )
    elif roi_mode == NoRoi.mode:
        roi = NoRoi()
    else:
        raise ConfigurationError(f"Unknown roi_mode '{roi_mode}', expected one of {sorted(ROI_MODES)}")

    if p["max_rings_num"] <= 0:
        raise ConfigurationError(f"max_rings_num must be positive, got {p['max_rings_num']}")
    if p["max_points_num_per_ring"] < 0:
        raise ConfigurationError(f"max_points_num_per_ring must not be negative, got {p['max_points_num_per_ring']}")
    if p["vertical_bins"] < p["max_rings_num"]:
        raise ConfigurationError(
            f"vertical_bins {p['vertical_bins']} cannot hold every ring below max_rings_num {p['max_rings_num']}"
        )

    return FilterConfig(
        distance_ratio=p["distance_ratio"],
        object_length_threshold=p["object_length_threshold"],
        num_points_threshold=p["num_points_threshold"],
        max_rings_num=p["max_rings_num"],
        max_points_num_per_ring=p["max_points_num_per_ring"],
        publish_noise_points=p["publish_noise_points"],
        roi=roi,
        vertical_bins=p["vertical_bins"],
        horizontal_bins=p["horizontal_bins"],
        max_azimuth_diff=p["max_azimuth_diff"],
        noise_threshold=p["noise_threshold"]
    )


def default_parameters_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "params", "ring_outlier_filter.yaml")


def load_parameters_file(path: str, node_name: str = DEFAULT_NODE_NAME) -> Dict[str, Any]:
    """
    Read the ``ros__parameters`` block of ``node_name`` from a ROS 2 parameter file.

    Raises
    ------
    ConfigurationError
        If the file has no parameter block for ``node_name``.
    """
    with open(path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    try:
        parameters = config_data[node_name]["ros__parameters"]
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"No ros__parameters for '{node_name}' in {path}") from e

    return normalize_parameters(parameters or {})


@dataclass
class SetParametersResult:
    successful: bool
    reason: str = ""
