from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .csv_writer import CsvWriter
from .marker_types import PoseEstimate

LOGGER = logging.getLogger(__name__)


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_estimate(self, est: PoseEstimate) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    def __init__(self, filename: str = "poses.csv"):
        self.filename = filename
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        path = session_dir / self.filename
        self._writer = CsvWriter(str(path))
        self._writer.open()

    def write_estimate(self, est: PoseEstimate) -> None:
        if self._writer is None:
            return
        self._writer.append(est)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


def _vec_line(vec) -> str:
    return ",".join(f"{float(v):.6f}" for v in vec)


class PublisherOutput(OutputSink):
    """
    Publishes each estimate on the visible/position/rotation/pose topics.

    `publisher` is anything with publish(topic, payload), e.g. MqttPublisher.
    Position, rotation and pose are only published when the pose is visible;
    visibility is published every frame.
    """

    def __init__(self, publisher, topics: dict[str, str]):
        self.publisher = publisher
        self.topics = topics

    def open(self, session_dir: Path) -> None:
        return None

    def write_estimate(self, est: PoseEstimate) -> None:
        if est.visible:
            self.publisher.publish(self.topics["position"], _vec_line(est.position))
            self.publisher.publish(self.topics["rotation"], _vec_line(est.rotation))
            self.publisher.publish(self.topics["pose"], CsvWriter.to_csv_line(est))
        self.publisher.publish(self.topics["visible"], "1" if est.visible else "0")

    def close(self) -> None:
        close = getattr(self.publisher, "close", None)
        if close is not None:
            close()


class NullOutput(OutputSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write_estimate(self, est: PoseEstimate) -> None:
        return None

    def close(self) -> None:
        return None
