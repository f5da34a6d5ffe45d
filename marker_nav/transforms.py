"""SE(3) and rotation utilities for marker pose handling."""

import numpy as np
import cv2
from typing import Tuple


def rvec_to_matrix(rvec: np.ndarray) -> np.ndarray:
    """
    Convert an axis-angle rotation vector to a 3x3 rotation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)

    Returns:
        3x3 rotation matrix
    """
    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    R, _ = cv2.Rodrigues(rvec)
    return R


def matrix_to_rvec(R: np.ndarray) -> np.ndarray:
    """
    Convert a 3x3 rotation matrix to an axis-angle rotation vector.

    The vector magnitude is the rotation angle in radians.

    Returns:
        Rotation vector (3,)
    """
    rvec, _ = cv2.Rodrigues(np.asarray(R, dtype=np.float64))
    return rvec.reshape(3)


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    tvec = np.asarray(tvec, dtype=np.float64).reshape(3)

    T = np.eye(4)
    T[:3, :3] = rvec_to_matrix(rvec)
    T[:3, 3] = tvec

    return T


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    For SE(3): T^-1 = [R^T, -R^T * t; 0, 1]

    Args:
        T: 4x4 transformation matrix

    Returns:
        4x4 inverted transformation matrix
    """
    T_inv = np.eye(4)
    R = T[:3, :3]
    t = T[:3, 3]

    R_T = R.T
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ t

    return T_inv


def camera_pose_from_extrinsics(
    rvec: np.ndarray, tvec: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Turn a world->camera extrinsic (as returned by solvePnP) into the camera
    pose expressed in the world frame.

    Given:
        X_cam = R * X_world + t

    Compute:
        R_cam = R^T
        p_cam = -R^T * t

    Returns:
        (position, rvec_cam): camera position (3,) and camera rotation as
        axis-angle (3,)
    """
    T_world_cam = invert_transform(rvec_tvec_to_matrix(rvec, tvec))
    position = T_world_cam[:3, 3].copy()
    rvec_cam = matrix_to_rvec(T_world_cam[:3, :3])
    return position, rvec_cam


def euler_to_matrix(euler) -> np.ndarray:
    """
    Rotation matrix from Euler angles (x, y, z) in radians.

    Composition is R = Rz @ Ry @ Rx (rotate about X first).
    """
    ax, ay, az = (float(a) for a in np.asarray(euler, dtype=np.float64).reshape(3))

    cx, sx = np.cos(ax), np.sin(ax)
    cy, sy = np.cos(ay), np.sin(ay)
    cz, sz = np.cos(az), np.sin(az)

    Rx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    Ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    Rz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])

    return Rz @ Ry @ Rx


def rvec_to_quaternion(rvec) -> np.ndarray:
    """
    Convert an axis-angle rotation vector to a unit quaternion (x, y, z, w).

    A zero vector maps to the identity quaternion (0, 0, 0, 1).
    """
    v = np.asarray(rvec, dtype=np.float64).reshape(3)
    angle = float(np.sqrt(v @ v))

    if angle == 0.0:
        return np.array([0.0, 0.0, 0.0, 1.0])

    axis = v / angle
    half = angle / 2.0
    q = np.empty(4)
    q[:3] = axis * np.sin(half)
    q[3] = np.cos(half)
    return q
