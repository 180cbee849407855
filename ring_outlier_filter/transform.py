from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np

from ring_outlier_filter.errors import TransformError


@dataclass(frozen=True)
class TransformInfo:
    """
    Rigid transform applied to every output point.

    Attributes
    ----------
    matrix : np.ndarray
        4x4 homogeneous transform from the input frame to ``target_frame``.
    need_transform : bool
        When ``False`` the points are passed through untouched.
    target_frame : str, optional
        Frame id stamped on transformed output.
    """
    matrix: np.ndarray
    need_transform: bool = True
    target_frame: Optional[str] = None

    def __post_init__(self):
        matrix = np.asarray(self.matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise TransformError(f"Transform must be 4x4, got shape {matrix.shape}")
        if not np.all(np.isfinite(matrix)):
            raise TransformError("Transform contains non-finite values")
        object.__setattr__(self, "matrix", matrix)

    @classmethod
    def identity(cls) -> "TransformInfo":
        return cls(np.eye(4), need_transform=False)

    @classmethod
    def from_rotation_translation(cls, rotation: np.ndarray, translation: np.ndarray,
                                  target_frame: Optional[str] = None) -> "TransformInfo":
        rotation = np.asarray(rotation, dtype=np.float64)
        translation = np.asarray(translation, dtype=np.float64).reshape(-1)
        if rotation.shape != (3, 3) or translation.shape != (3,):
            raise TransformError(
                f"Expected 3x3 rotation and 3-vector translation, got {rotation.shape} and {translation.shape}"
            )

        matrix = np.eye(4)
        matrix[:3, :3] = rotation
        matrix[:3, 3] = translation
        return cls(matrix, need_transform=True, target_frame=target_frame)

    def apply(self, xyz: np.ndarray) -> np.ndarray:
        """Transform an ``(N, 3)`` array of points."""
        if not self.need_transform:
            return xyz
        return xyz @ self.matrix[:3, :3].T + self.matrix[:3, 3]


TransformProvider = Callable[[], TransformInfo]


def resolve_transform(transform: Union[TransformInfo, TransformProvider, None]) -> Optional[TransformInfo]:
    """
    Turn a transform or a transform lookup into a :class:`TransformInfo`.

    Any failure of the lookup is raised as :class:`TransformError`.
    """
    if transform is None or isinstance(transform, TransformInfo):
        return transform

    try:
        resolved = transform()
    except TransformError:
        raise
    except Exception as e:
        raise TransformError(f"Transform lookup failed: {e}") from e

    if not isinstance(resolved, TransformInfo):
        raise TransformError(f"Transform lookup returned {type(resolved).__name__}, expected TransformInfo")
    return resolved
