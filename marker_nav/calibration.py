from __future__ import annotations

import logging
import threading
from typing import Tuple

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)

# Intrinsics of the reference 640x480 test camera, used until calibrated.
DEFAULT_CAMERA_MATRIX = (
    570.3422241210938, 0.0, 319.5,
    0.0, 570.3422241210938, 239.5,
    0.0, 0.0, 1.0,
)
DEFAULT_DISTORTION = (0.0, 0.0, 0.0, 0.0, 0.0)


def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int, int]]:
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    K = fs.getNode("camera_matrix").mat()
    dist = fs.getNode("dist_coeffs").mat()
    w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    fs.release()
    return K, dist, (w, h)


class CameraCalibration:
    """Camera intrinsics latched on first application.

    Until `apply` succeeds once the default intrinsics are reported and
    `calibrated` is False. Every later `apply` is ignored.
    """

    def __init__(self, camera_matrix=DEFAULT_CAMERA_MATRIX, distortion=DEFAULT_DISTORTION):
        self._lock = threading.Lock()
        self.camera_matrix = _as_camera_matrix(camera_matrix)
        self.distortion = _as_distortion(distortion)
        self.calibrated = False

    def apply(self, camera_matrix, distortion) -> bool:
        K = _as_camera_matrix(camera_matrix)
        dist = _as_distortion(distortion)
        with self._lock:
            if self.calibrated:
                LOGGER.debug("calibration already latched, update ignored")
                return False
            self.camera_matrix = K
            self.distortion = dist
            self.calibrated = True
        LOGGER.info("camera calibration applied")
        LOGGER.debug("camera: %s distortion: %s", K.tolist(), dist.ravel().tolist())
        return True

    def apply_file(self, path: str) -> bool:
        K, dist, _ = load_calib(path)
        return self.apply(K, dist)

    def matrices(self) -> tuple[np.ndarray, np.ndarray]:
        with self._lock:
            return self.camera_matrix, self.distortion


def _as_camera_matrix(values) -> np.ndarray:
    K = np.asarray(values, dtype=np.float64)
    if K.size != 9:
        raise ValueError(f"camera matrix needs 9 values, got {K.size}")
    return K.reshape(3, 3).copy()


def _as_distortion(values) -> np.ndarray:
    d = np.asarray(values, dtype=np.float64).reshape(-1)
    if d.size != 5:
        raise ValueError(f"distortion needs 5 coefficients, got {d.size}")
    return d.reshape(1, 5).copy()
