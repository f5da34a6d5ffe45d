"""Frame sources feeding the worker loop.

A source hands out Frame records whose `image` is either a decoded array
(live camera) or an encoded image buffer (rendered scene); the pipeline's
decode step accepts both.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Iterable

import cv2
import numpy as np

from .detect import get_dict
from .marker_types import Frame

LOGGER = logging.getLogger(__name__)

_V4L2_NODE = re.compile(r"^(?:/dev/video)?(\d+)$")


def _timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S")


def resolve_device(device: int | str) -> tuple[int | str, int]:
    """Map a configured device to VideoCapture arguments.

    Integers, numeric strings and /dev/videoN open through V4L2; anything else
    (file path, stream URL) is handed to OpenCV as-is.
    """
    if isinstance(device, int):
        return device, cv2.CAP_V4L2
    match = _V4L2_NODE.match(str(device).strip())
    if match:
        return int(match.group(1)), cv2.CAP_V4L2
    return str(device), cv2.CAP_ANY


class FrameSource(ABC):
    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...


class CameraSource(FrameSource):
    """Live frames from a local camera or stream; None once reads fail."""

    def __init__(self, device: int | str, fps: int, width: int, height: int):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        target, api = resolve_device(self.device)
        self.cap = cv2.VideoCapture(target, api)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

        for prop, value in (
            (cv2.CAP_PROP_FRAME_WIDTH, self.width),
            (cv2.CAP_PROP_FRAME_HEIGHT, self.height),
            (cv2.CAP_PROP_FPS, self.fps),
        ):
            if value and not self.cap.set(prop, value):
                LOGGER.debug("camera %s ignored property %d=%s", self.device, prop, value)

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            LOGGER.warning("camera %s returned no frame after %d frames", self.device, self.idx)
            return None
        self.idx += 1
        return Frame(self.idx, _timestamp(), img)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class MarkerSceneSource(FrameSource):
    """
    Renders the given marker ids side by side on a white canvas and emits the
    scene as an encoded image, paced to `fps` (0 means as fast as possible).

    Used for dry runs: frames go through the same decode and detection path a
    remote camera's payloads would.
    """

    def __init__(
        self,
        fps: int,
        width: int,
        height: int,
        dict_name: str = "4x4_50",
        marker_ids: Iterable[int] = (),
        encoding: str = ".png",
    ):
        self.fps = fps
        self.width = width
        self.height = height
        self.dictionary = get_dict(dict_name)
        self.marker_ids = list(marker_ids)
        self.encoding = encoding
        self.idx = 0
        self._last = 0.0
        self._layout = self._plan()
        self._payload = self._render()

    def _plan(self) -> dict[int, np.ndarray]:
        if not self.marker_ids:
            return {}
        cell = self.width // len(self.marker_ids)
        side = int(min(cell, self.height) * 0.6)
        # marker bits plus the one-bit black border on each side
        min_side = self.dictionary.markerSize + 2
        if side < min_side:
            raise ValueError(
                f"{self.width}x{self.height} is too small for {len(self.marker_ids)} markers"
            )

        top = (self.height - side) // 2
        layout = {}
        for n, marker_id in enumerate(self.marker_ids):
            left = n * cell + (cell - side) // 2
            layout[marker_id] = np.array(
                [[left, top], [left + side, top], [left + side, top + side], [left, top + side]],
                dtype=np.float64,
            )
        return layout

    def _render(self) -> bytes:
        canvas = np.full((self.height, self.width), 255, dtype=np.uint8)
        for marker_id, corners in self._layout.items():
            (left, top), (right, _) = corners[0].astype(int), corners[1].astype(int)
            side = right - left
            canvas[top:top + side, left:left + side] = cv2.aruco.generateImageMarker(
                self.dictionary, marker_id, side
            )
        ok, buf = cv2.imencode(self.encoding, cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR))
        if not ok:
            raise RuntimeError(f"could not encode scene as {self.encoding}")
        return buf.tobytes()

    def corners(self, marker_id: int) -> np.ndarray:
        """Pixel corners (TL, TR, BR, BL) where a marker was drawn."""
        return self._layout[marker_id].copy()

    def start(self) -> None:
        self._last = time.time()

    def next_frame(self) -> Frame | None:
        if self.fps > 0:
            wait = (1.0 / self.fps) - (time.time() - self._last)
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.idx += 1
        return Frame(self.idx, _timestamp(), self._payload)

    def stop(self) -> None:
        return None
