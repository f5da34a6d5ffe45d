import cv2
import numpy as np
import pytest

from marker_nav.marker_types import DetectedMarker, KnownMarker


K_TEST = np.array(
    [
        [800.0, 0.0, 320.0],
        [0.0, 800.0, 240.0],
        [0.0, 0.0, 1.0],
    ]
)
DIST_TEST = np.zeros((1, 5))


class FakeDetector:
    """Returns queued detection batches and records the block sizes it saw."""

    def __init__(self, batches):
        self.batches = list(batches)
        self.block_sizes = []

    def detect(self, image, block_size):
        self.block_sizes.append(block_size)
        if self.batches:
            return self.batches.pop(0)
        return []


def project_marker(marker: KnownMarker, rvec, tvec, K=K_TEST, dist=DIST_TEST) -> np.ndarray:
    """Exact pixel corners of a known marker seen with extrinsics (rvec, tvec)."""
    pts, _ = cv2.projectPoints(
        marker.world,
        np.asarray(rvec, dtype=np.float64).reshape(3, 1),
        np.asarray(tvec, dtype=np.float64).reshape(3, 1),
        K,
        dist,
    )
    return pts.reshape(4, 2)


def detection_for(marker: KnownMarker, rvec, tvec) -> DetectedMarker:
    return DetectedMarker(marker.marker_id, project_marker(marker, rvec, tvec))


@pytest.fixture
def origin_marker():
    return KnownMarker(1, 0.1, (0.0, 0.0, 0.0), (0.0, 0.0, 0.0))


@pytest.fixture
def blank_image():
    return np.full((480, 640, 3), 255, dtype=np.uint8)
