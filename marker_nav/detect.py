import math

import cv2
import numpy as np

from .marker_types import DetectedMarker


def get_dict(name: str):
    """
    ArUco dictionary resolver.
    Falls back to 4x4_50 if name not recognized.
    """
    key = (name or "").strip().lower()
    if key.startswith("dict_"):
        key = key[5:]
    table = {
        "4x4_50":  cv2.aruco.DICT_4X4_50,
        "4x4_100": cv2.aruco.DICT_4X4_100,
        "5x5_50":  cv2.aruco.DICT_5X5_50,
        "5x5_100": cv2.aruco.DICT_5X5_100,
        "6x6_50":  cv2.aruco.DICT_6X6_50,
        "6x6_100": cv2.aruco.DICT_6X6_100,
        "7x7_50":  cv2.aruco.DICT_7X7_50,
        "7x7_100": cv2.aruco.DICT_7X7_100,
        "original": cv2.aruco.DICT_ARUCO_ORIGINAL,
    }
    code = table.get(key, cv2.aruco.DICT_4X4_50)
    return cv2.aruco.getPredefinedDictionary(code)


def max_corner_cosine(corners) -> float:
    """Largest |cos| of the four interior angles of a quad."""
    pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
    worst = 0.0
    for i in range(4):
        a = pts[i - 1] - pts[i]
        b = pts[(i + 1) % 4] - pts[i]
        denom = np.linalg.norm(a) * np.linalg.norm(b)
        if denom == 0:
            return 1.0
        worst = max(worst, abs(float(a @ b) / denom))
    return worst


class ArucoDetector:
    """
    Default detector collaborator built on cv2.aruco.

    The adaptive threshold window is pinned to the block size chosen by the
    ThresholdController. `min_area` (px^2) becomes a minimum perimeter rate
    for the frame at hand, and quads whose corner angles stray further from
    90 degrees than `cosine_limit` allows are dropped.
    """

    def __init__(
        self,
        dict_name: str = "4x4_50",
        cosine_limit: float = 0.7,
        max_error_quad: float = 0.035,
        min_area: int = 100,
    ):
        self.dictionary = get_dict(dict_name)
        self.cosine_limit = cosine_limit
        self.max_error_quad = max_error_quad
        self.min_area = min_area

    def _params(self, block_size: int, image_shape) -> "cv2.aruco.DetectorParameters":
        params = cv2.aruco.DetectorParameters()
        params.adaptiveThreshWinSizeMin = block_size
        params.adaptiveThreshWinSizeMax = block_size
        params.adaptiveThreshWinSizeStep = 2
        params.polygonalApproxAccuracyRate = self.max_error_quad
        longest = max(image_shape[:2])
        if longest > 0 and self.min_area > 0:
            params.minMarkerPerimeterRate = 4.0 * math.sqrt(self.min_area) / longest
        return params

    def detect(self, image, block_size: int) -> list[DetectedMarker]:
        detector = cv2.aruco.ArucoDetector(self.dictionary, self._params(block_size, image.shape))
        corners, ids, _rej = detector.detectMarkers(image)

        dets: list[DetectedMarker] = []
        if ids is not None and len(ids) > 0:
            for i, mid in enumerate(ids.flatten()):
                quad = np.asarray(corners[i], dtype=np.float64).reshape(4, 2)
                if max_corner_cosine(quad) > self.cosine_limit:
                    continue
                dets.append(DetectedMarker(int(mid), quad))
        return dets
