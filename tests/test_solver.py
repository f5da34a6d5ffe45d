from unittest.mock import patch

import cv2
import numpy as np

from marker_nav.calibration import CameraCalibration
from marker_nav.correspondence import CorrespondenceBuilder
from marker_nav.marker_types import CorrespondenceSet, KnownMarker
from marker_nav.registry import MarkerRegistry
from marker_nav.solver import PnPSolver
from marker_nav.transforms import rvec_to_matrix

from conftest import DIST_TEST, K_TEST, detection_for


def _calibrated():
    calib = CameraCalibration()
    calib.apply(K_TEST, DIST_TEST)
    return calib


def test_empty_set_is_not_solved():
    solver = PnPSolver(_calibrated())
    with patch("marker_nav.solver.cv2.solvePnP") as mock_pnp:
        assert solver.solve(CorrespondenceSet()) is None
    mock_pnp.assert_not_called()
    assert solver.attempts == 0


def test_recovers_camera_pose(origin_marker):
    rvec = np.array([0.2, -0.1, 0.05])
    tvec = np.array([0.05, -0.02, 0.8])
    corr = CorrespondenceBuilder(MarkerRegistry([origin_marker])).build(
        [detection_for(origin_marker, rvec, tvec)]
    )

    solver = PnPSolver(_calibrated())
    position, rotation = solver.solve(corr)

    R = rvec_to_matrix(rvec)
    assert solver.attempts == 1
    assert np.allclose(position, -R.T @ tvec, atol=1e-4)
    assert np.allclose(rvec_to_matrix(rotation), R.T, atol=1e-4)


def test_joint_solve_over_two_markers():
    a = KnownMarker(1, 0.1, (0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
    b = KnownMarker(2, 0.15, (0.4, 0.1, 0.05), (0.0, 0.3, 0.2))
    rvec = np.array([-0.1, 0.25, 0.0])
    tvec = np.array([-0.2, 0.0, 1.5])
    corr = CorrespondenceBuilder(MarkerRegistry([a, b])).build(
        [detection_for(a, rvec, tvec), detection_for(b, rvec, tvec)]
    )
    assert len(corr) == 8

    position, _ = PnPSolver(_calibrated()).solve(corr)
    R = rvec_to_matrix(rvec)
    assert np.allclose(position, -R.T @ tvec, atol=1e-4)


def test_solver_failure_is_no_pose(origin_marker):
    corr = CorrespondenceBuilder(MarkerRegistry([origin_marker])).build(
        [detection_for(origin_marker, np.zeros(3), [0.0, 0.0, 1.0])]
    )
    solver = PnPSolver(_calibrated())

    with patch("marker_nav.solver.cv2.solvePnP", return_value=(False, None, None)):
        assert solver.solve(corr) is None
    with patch("marker_nav.solver.cv2.solvePnP", side_effect=cv2.error("boom")):
        assert solver.solve(corr) is None
    assert solver.attempts == 2


def test_uncalibrated_still_solves(origin_marker):
    calib = CameraCalibration(K_TEST, DIST_TEST)
    assert calib.calibrated is False
    corr = CorrespondenceBuilder(MarkerRegistry([origin_marker])).build(
        [detection_for(origin_marker, np.zeros(3), [0.0, 0.0, 1.0])]
    )

    assert PnPSolver(calib).solve(corr) is not None
