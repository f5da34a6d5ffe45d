from __future__ import annotations

import logging
import threading
from typing import Optional

from .marker_types import KnownMarker

LOGGER = logging.getLogger(__name__)


class MarkerRegistry:
    """Known markers keyed by id, shared between frame processing and control.

    Writers and readers go through one lock; frame processing works on a
    snapshot so a concurrent register/remove never shows a half-updated map.
    """

    def __init__(self, markers: Optional[list[KnownMarker]] = None):
        self._lock = threading.Lock()
        self._markers: dict[int, KnownMarker] = {}
        for m in markers or []:
            self.register(m)

    def register(self, marker: KnownMarker) -> None:
        with self._lock:
            replaced = marker.marker_id in self._markers
            self._markers[marker.marker_id] = marker
        if replaced:
            LOGGER.info("Marker %d already exists, was replaced.", marker.marker_id)
        else:
            LOGGER.info("Marker %d added.", marker.marker_id)

    def remove(self, marker_id: int) -> bool:
        with self._lock:
            removed = self._markers.pop(int(marker_id), None) is not None
        if removed:
            LOGGER.info("Marker %d removed.", marker_id)
        return removed

    def lookup(self, marker_id: int) -> Optional[KnownMarker]:
        with self._lock:
            return self._markers.get(int(marker_id))

    def snapshot(self) -> dict[int, KnownMarker]:
        with self._lock:
            return dict(self._markers)

    def ids(self) -> list[int]:
        with self._lock:
            return sorted(self._markers)

    def clear(self) -> None:
        with self._lock:
            self._markers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._markers)

    def __contains__(self, marker_id: object) -> bool:
        with self._lock:
            return marker_id in self._markers

    def log_contents(self, logger: logging.Logger) -> None:
        for marker in self.snapshot().values():
            logger.debug(
                "marker id=%d size=%.4f position=%s rotation=%s",
                marker.marker_id,
                marker.size,
                marker.position,
                marker.rotation,
            )
