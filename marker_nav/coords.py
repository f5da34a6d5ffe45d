"""Axis convention handling between OpenCV and the consumer (robot) frame.

OpenCV uses Z+ for depth, Y- for height and X+ for lateral. The consumer
frame uses X+ for depth, Z+ for height and Y- for lateral movement.

          Consumer        |          OpenCV
   Z+                     |    Y-
   |    X+                |    |    Z+
   |   /                  |    |   /
   |  /                   |    |  /
   | /                    |    | /
   O-----------> Y-       |    O-----------> X+
"""

from __future__ import annotations

import numpy as np


def opencv_to_consumer(vec) -> np.ndarray:
    x, y, z = np.asarray(vec, dtype=np.float64).reshape(3)
    return np.array([z, -x, -y])


def consumer_to_opencv(vec) -> np.ndarray:
    x, y, z = np.asarray(vec, dtype=np.float64).reshape(3)
    return np.array([-y, -z, x])


class FrameConverter:
    """Applies the selected convention to position and rotation vectors.

    Both vectors receive the same mapping, independently of each other.
    """

    def __init__(self, use_native_coords: bool = False):
        self.use_native_coords = use_native_coords

    def to_output(self, vec) -> np.ndarray:
        if self.use_native_coords:
            return np.asarray(vec, dtype=np.float64).reshape(3).copy()
        return opencv_to_consumer(vec)

    def to_native(self, vec) -> np.ndarray:
        if self.use_native_coords:
            return np.asarray(vec, dtype=np.float64).reshape(3).copy()
        return consumer_to_opencv(vec)

    def convert_pose(self, position, rotation) -> tuple[np.ndarray, np.ndarray]:
        return self.to_output(position), self.to_output(rotation)
