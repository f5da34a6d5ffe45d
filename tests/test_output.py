import csv
import math
from unittest.mock import MagicMock

import numpy as np

from marker_nav.config import MqttConfig
from marker_nav.csv_writer import CsvWriter
from marker_nav.marker_types import PoseEstimate
from marker_nav.output import CsvOutput, NullOutput, PublisherOutput
from marker_nav.publisher import MqttPublisher


class DummyPublisher:
    def __init__(self):
        """Collect published (topic, payload) pairs."""
        self.messages = []
        self.closed = False

    def publish(self, topic, payload):
        self.messages.append((topic, payload))

    def close(self):
        self.closed = True


def _visible():
    return PoseEstimate(
        visible=True,
        timestamp=1.5,
        frame_idx=3,
        position=np.array([1.0, 2.0, 3.0]),
        rotation=np.array([0.0, 0.0, 0.1]),
        quaternion=np.array([0.0, 0.0, 0.05, 0.99875]),
        marker_ids=[1, 4],
    )


TOPICS = {name: f"nav/{name}" for name in ("visible", "position", "rotation", "pose")}


def test_csv_output_writes_rows(tmp_path):
    out = CsvOutput()
    out.open(tmp_path)
    out.write_estimate(_visible())
    out.write_estimate(PoseEstimate(visible=False, timestamp=2.0, frame_idx=4))
    out.close()

    with open(tmp_path / "poses.csv", newline="") as fh:
        rows = list(csv.DictReader(fh))

    assert rows[0]["visible"] == "1"
    assert float(rows[0]["pos_z"]) == 3.0
    assert rows[0]["marker_ids"] == "1 4"
    assert rows[0]["frame_label"] == "aruco"
    assert rows[1]["visible"] == "0"
    assert math.isnan(float(rows[1]["quat_w"]))


def test_to_csv_line():
    line = CsvWriter.to_csv_line(_visible())
    assert line.startswith("1.500000,3,aruco,1,1.0,2.0,3.0")


def test_publisher_output_visible_frame():
    pub = DummyPublisher()
    PublisherOutput(pub, TOPICS).write_estimate(_visible())

    topics = [t for t, _ in pub.messages]
    assert topics == ["nav/position", "nav/rotation", "nav/pose", "nav/visible"]
    assert pub.messages[0][1] == "1.000000,2.000000,3.000000"
    assert pub.messages[-1][1] == "1"


def test_publisher_output_not_visible_only_publishes_visibility():
    pub = DummyPublisher()
    out = PublisherOutput(pub, TOPICS)
    out.write_estimate(PoseEstimate(visible=False, timestamp=0.0))
    out.close()

    assert pub.messages == [("nav/visible", "0")]
    assert pub.closed is True


def test_null_output_accepts_everything(tmp_path):
    out = NullOutput()
    out.open(tmp_path)
    out.write_estimate(_visible())
    out.close()


def test_mqtt_publisher_wraps_client():
    client = MagicMock()
    pub = MqttPublisher(MqttConfig(host="broker", port=1999), client=client)

    pub.connect()
    pub.publish("nav/visible", "1")
    pub.close()
    pub.close()

    client.connect.assert_called_once_with("broker", 1999, 60)
    client.loop_start.assert_called_once()
    client.publish.assert_called_once_with("nav/visible", "1")
    client.disconnect.assert_called_once()
