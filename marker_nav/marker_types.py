from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .transforms import euler_to_matrix


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array or encoded bytes


@dataclass(frozen=True)
class KnownMarker:
    """Physical marker placed in the world with a known pose.

    Position is the marker center in meters, rotation holds Euler angles
    (x, y, z) in radians, both in the OpenCV axis convention.
    """

    marker_id: int
    size: float
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def world(self) -> np.ndarray:
        """World corners (4,3) in TL, TR, BR, BL order."""
        return marker_world_corners(self.position, self.rotation, self.size)


def marker_world_corners(position, rotation, size: float) -> np.ndarray:
    h = float(size) / 2.0
    local = np.array(
        [
            [-h, h, 0.0],
            [h, h, 0.0],
            [h, -h, 0.0],
            [-h, -h, 0.0],
        ],
        dtype=np.float64,
    )
    R = euler_to_matrix(rotation)
    t = np.asarray(position, dtype=np.float64).reshape(3)
    return local @ R.T + t


@dataclass
class DetectedMarker:
    marker_id: int
    corners: Any  # (4,2) ndarray, TL, TR, BR, BL
    info: Optional[KnownMarker] = None

    def attach_info(self, info: KnownMarker) -> None:
        self.info = info


@dataclass
class CorrespondenceSet:
    projected: list = field(default_factory=list)  # (x, y) pixels
    world: list = field(default_factory=list)  # (x, y, z) meters
    found: list[DetectedMarker] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.world)

    def is_empty(self) -> bool:
        return len(self.world) == 0

    def image_points(self) -> np.ndarray:
        return np.asarray(self.projected, dtype=np.float64).reshape(-1, 2)

    def object_points(self) -> np.ndarray:
        return np.asarray(self.world, dtype=np.float64).reshape(-1, 3)


@dataclass
class Pose:
    rvec: Any
    tvec: Any


@dataclass
class PoseEstimate:
    visible: bool
    timestamp: float
    frame_idx: int = 0
    frame_label: str = "aruco"
    position: Optional[np.ndarray] = None
    rotation: Optional[np.ndarray] = None
    quaternion: Optional[np.ndarray] = None  # (x, y, z, w)
    marker_ids: list[int] = field(default_factory=list)
