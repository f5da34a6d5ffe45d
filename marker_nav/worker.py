from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .capture import CameraSource, FrameSource, MarkerSceneSource
from .config import NodeConfig
from .detect import ArucoDetector
from .logging_utils import add_file_handler, setup_logger
from .output import CsvOutput, OutputSink
from .pipeline import Detector, FramePipeline, FrameStatus, PipelineContext
from .storage import SessionStorage


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    frames_visible: int
    csv_path: str
    log_path: str
    avg_fps: float
    errors: int


class PoseWorker:
    def __init__(
        self,
        config: NodeConfig,
        logger=None,
        context: Optional[PipelineContext] = None,
        detector: Optional[Detector] = None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[FrameSource] = None,
    ):
        self.config = config
        level = logging.DEBUG if config.debug else logging.INFO
        self.logger = logger or setup_logger(config.node_name, level)
        self.context = context or PipelineContext.from_config(config)
        self.detector = detector or ArucoDetector(
            config.aruco_dict,
            cosine_limit=config.cosine_limit,
            max_error_quad=config.max_error_quad,
            min_area=config.min_area,
        )
        self.outputs = outputs if outputs is not None else [CsvOutput()]
        self.capture = capture
        self.pipeline = FramePipeline(self.context, self.detector)
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> FrameSource:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return MarkerSceneSource(
                self.config.fps,
                self.config.width,
                self.config.height,
                dict_name=self.config.aruco_dict,
                marker_ids=self.context.registry.ids(),
            )
        return CameraSource(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
        )

    def _emit(self, est) -> None:
        for out in self.outputs:
            try:
                out.write_estimate(est)
            except Exception as e:
                self.logger.warning("output %s failed: %s", type(out).__name__, e)

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.node_name}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        log_file = str(Path(storage.logs_dir) / "session.log")
        lib_logger = logging.getLogger("marker_nav")
        file_handler = add_file_handler(lib_logger, self.config.node_name, log_file)

        for out in self.outputs:
            out.open(Path(storage.session_dir))

        cap = self._build_capture()

        self.logger.info("session started: %s", session_path)
        self.logger.info("calibrated=%s markers=%s block_size=%d",
                         self.context.calibration.calibrated,
                         self.context.registry.ids(),
                         self.context.threshold.block_size)
        if self.config.debug:
            self.context.registry.log_contents(self.logger)

        cap.start()
        t0 = time.time()
        frames = 0
        visible = 0
        errors = 0

        try:
            while True:
                if self._stop_event.is_set():
                    break
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    errors += 1
                    continue

                outcome = self.pipeline.process(f.image, f.idx)
                frames += 1
                if outcome.status is not FrameStatus.OK:
                    errors += 1
                    continue

                est = outcome.estimate
                if est.visible:
                    visible += 1
                self._emit(est)

                self.logger.debug(
                    "frame=%d dets=%d visible=%s markers=%s block=%d",
                    f.idx,
                    len(outcome.detections),
                    est.visible,
                    est.marker_ids,
                    outcome.block_size,
                )

        finally:
            try:
                cap.stop()
            except Exception as e:
                self.logger.warning("capture stop failed: %s", e)

            for out in self.outputs:
                try:
                    out.close()
                except Exception as e:
                    self.logger.warning("output close failed: %s", e)

            avg = frames / max(1e-6, (time.time() - t0))
            self.logger.info(
                "summary frames=%d visible=%d avg_fps=%.2f errors=%d", frames, visible, avg, errors
            )
            lib_logger.removeHandler(file_handler)
            file_handler.close()

        csv_path = str(Path(storage.session_dir) / "poses.csv")
        return SessionSummary(
            str(session_path),
            frames,
            visible,
            csv_path,
            log_file,
            avg,
            errors,
        )
