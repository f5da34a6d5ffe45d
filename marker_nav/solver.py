import logging
from typing import Optional

import cv2
import numpy as np

from .marker_types import CorrespondenceSet, Pose
from .transforms import camera_pose_from_extrinsics

LOGGER = logging.getLogger(__name__)


class PnPSolver:
    """
    Joint PnP over all correspondences of a frame.

    `solve` returns the camera pose in the world frame (position and
    axis-angle rotation, OpenCV axes) or None when no pose is available.
    """

    def __init__(self, calibration):
        self.calibration = calibration
        self.attempts = 0
        self._warned_uncalibrated = False

    def solve_extrinsics(self, corr: CorrespondenceSet) -> Optional[Pose]:
        if corr.is_empty():
            return None

        K, dist = self.calibration.matrices()
        if not self.calibration.calibrated and not self._warned_uncalibrated:
            LOGGER.warning("solving pose with default intrinsics, no calibration received")
            self._warned_uncalibrated = True

        self.attempts += 1
        try:
            ok, rvec, tvec = cv2.solvePnP(
                corr.object_points(),
                corr.image_points(),
                K,
                dist,
                useExtrinsicGuess=False,
                flags=cv2.SOLVEPNP_ITERATIVE,
            )
        except cv2.error as e:
            LOGGER.warning("solvePnP failed on %d points: %s", len(corr), e)
            return None

        if not ok:
            LOGGER.warning("solvePnP did not converge on %d points", len(corr))
            return None
        return Pose(rvec.reshape(3), tvec.reshape(3))

    def solve(self, corr: CorrespondenceSet) -> Optional[tuple[np.ndarray, np.ndarray]]:
        extr = self.solve_extrinsics(corr)
        if extr is None:
            return None
        return camera_pose_from_extrinsics(extr.rvec, extr.tvec)
