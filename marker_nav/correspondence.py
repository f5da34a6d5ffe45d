from __future__ import annotations

from typing import Iterable

import numpy as np

from .marker_types import CorrespondenceSet, DetectedMarker
from .registry import MarkerRegistry


class CorrespondenceBuilder:
    """
    Pairs detected image corners with the world corners of known markers.

    Every visible known marker is pooled into a single set so one PnP solve
    uses all available points. Detections with unknown ids are ignored.
    """

    def __init__(self, registry: MarkerRegistry):
        self.registry = registry

    def build(self, detections: Iterable[DetectedMarker]) -> CorrespondenceSet:
        known = self.registry.snapshot()
        out = CorrespondenceSet()

        for det in detections:
            info = known.get(det.marker_id)
            if info is None:
                continue

            det.attach_info(info)
            corners = np.asarray(det.corners, dtype=np.float64).reshape(4, 2)
            world = info.world
            for k in range(4):
                out.projected.append((corners[k, 0], corners[k, 1]))
                out.world.append((world[k, 0], world[k, 1], world[k, 2]))

            out.found.append(det)

        return out
