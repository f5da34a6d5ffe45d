"""Per-frame orchestration: detections in, camera pose out.

State that outlives a frame (registry, calibration, threshold block size and
the selected axis convention) is owned by a PipelineContext that is passed in,
so several independent pipelines can live in one process.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import cv2
import numpy as np

from .calibration import CameraCalibration
from .config import ConfigError, NodeConfig
from .coords import FrameConverter
from .correspondence import CorrespondenceBuilder
from .marker_types import DetectedMarker, PoseEstimate
from .registry import MarkerRegistry
from .solver import PnPSolver
from .threshold import ThresholdController
from .transforms import rvec_to_quaternion

LOGGER = logging.getLogger(__name__)


class Detector(Protocol):
    def detect(self, image, block_size: int) -> list[DetectedMarker]: ...


class FrameStatus(enum.Enum):
    OK = "ok"
    DECODE_FAILED = "decode_failed"


@dataclass
class DecodeResult:
    image: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FrameOutcome:
    status: FrameStatus
    estimate: Optional[PoseEstimate] = None
    detections: list[DetectedMarker] = field(default_factory=list)
    block_size: int = 0
    error: Optional[str] = None


def decode_frame(payload) -> DecodeResult:
    """Turn an incoming frame payload into a BGR/gray image.

    Arrays pass through, encoded bytes go through cv2.imdecode.
    """
    if isinstance(payload, np.ndarray):
        if payload.ndim not in (2, 3) or payload.size == 0:
            return DecodeResult(error=f"unsupported image shape {payload.shape}")
        return DecodeResult(image=payload)

    if isinstance(payload, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(payload, dtype=np.uint8)
        if buf.size == 0:
            return DecodeResult(error="empty image payload")
        img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        if img is None:
            return DecodeResult(error="could not decode image payload")
        return DecodeResult(image=img)

    return DecodeResult(error=f"unsupported payload type {type(payload).__name__}")


class PipelineContext:
    def __init__(
        self,
        registry: Optional[MarkerRegistry] = None,
        calibration: Optional[CameraCalibration] = None,
        threshold: Optional[ThresholdController] = None,
        converter: Optional[FrameConverter] = None,
        frame_label: str = "aruco",
    ):
        # an empty registry is falsy, so compare against None explicitly
        self.registry = registry if registry is not None else MarkerRegistry()
        self.calibration = calibration if calibration is not None else CameraCalibration()
        self.threshold = threshold if threshold is not None else ThresholdController()
        self.converter = converter if converter is not None else FrameConverter()
        self.frame_label = frame_label

    @classmethod
    def from_config(cls, config: NodeConfig) -> "PipelineContext":
        try:
            threshold = ThresholdController(
                config.threshold_block_size_min, config.threshold_block_size_max
            )
        except ValueError as e:
            raise ConfigError(f"threshold_block_size_min/threshold_block_size_max: {e}") from None
        ctx = cls(
            registry=MarkerRegistry(config.known_markers()),
            threshold=threshold,
            converter=FrameConverter(config.use_native_coords),
            frame_label=config.frame_label,
        )

        K, dist = config.calibration_values()
        if K is not None or dist is not None:
            default_K, default_dist = ctx.calibration.matrices()
            ctx.calibration.apply(
                K if K is not None else default_K,
                dist if dist is not None else default_dist,
            )
        elif config.calibration_path:
            ctx.calibration.apply_file(config.calibration_path)
        return ctx


class FramePipeline:
    def __init__(self, context: PipelineContext, detector: Detector, clock=time.time):
        self.context = context
        self.detector = detector
        self.builder = CorrespondenceBuilder(context.registry)
        self.solver = PnPSolver(context.calibration)
        self.clock = clock
        self._lock = threading.Lock()

    def process(self, payload, frame_idx: int = 0) -> FrameOutcome:
        # One frame at a time, run to completion.
        with self._lock:
            return self._process(payload, frame_idx)

    def _process(self, payload, frame_idx: int) -> FrameOutcome:
        ctx = self.context
        block_size = ctx.threshold.block_size

        decoded = decode_frame(payload)
        if not decoded.ok:
            LOGGER.warning("frame=%d skipped: %s", frame_idx, decoded.error)
            return FrameOutcome(FrameStatus.DECODE_FAILED, block_size=block_size, error=decoded.error)

        detections = self.detector.detect(decoded.image, block_size)
        corr = self.builder.build(detections)

        if len(detections) == 0:
            new_size = ctx.threshold.update(0)
            LOGGER.debug("frame=%d no markers, block size %d -> %d", frame_idx, block_size, new_size)

        estimate = PoseEstimate(
            visible=False,
            timestamp=self.clock(),
            frame_idx=frame_idx,
            frame_label=ctx.frame_label,
            marker_ids=[d.marker_id for d in corr.found],
        )

        if not corr.is_empty():
            solved = self.solver.solve(corr)
            if solved is not None:
                position, rotation = ctx.converter.convert_pose(*solved)
                estimate.visible = True
                estimate.position = position
                estimate.rotation = rotation
                estimate.quaternion = rvec_to_quaternion(rotation)

        return FrameOutcome(FrameStatus.OK, estimate, detections, block_size)
