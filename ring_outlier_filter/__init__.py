from ring_outlier_filter.config import (
    AzimuthDistanceRoi,
    FilterConfig,
    FixedXyzRoi,
    NoRoi,
    SetParametersResult,
    config_from_parameters,
    default_parameters_path,
    load_parameters_file
)
from ring_outlier_filter.errors import ConfigurationError, FormatError, RingOutlierFilterError, TransformError
from ring_outlier_filter.pointcloud import PointCloud, PointField, PointFieldType
from ring_outlier_filter.ring_outlier_filter import FilterResult, RingOutlierFilter
from ring_outlier_filter.transform import TransformInfo
from ring_outlier_filter.visibility import VisibilityEstimator, VisibilityResult


__all__ = [
    "AzimuthDistanceRoi",
    "ConfigurationError",
    "FilterConfig",
    "FilterResult",
    "FixedXyzRoi",
    "FormatError",
    "NoRoi",
    "PointCloud",
    "PointField",
    "PointFieldType",
    "RingOutlierFilter",
    "RingOutlierFilterError",
    "SetParametersResult",
    "TransformError",
    "TransformInfo",
    "VisibilityEstimator",
    "VisibilityResult",
    "config_from_parameters",
    "default_parameters_path",
    "load_parameters_file",
]
