"""Control path: marker registration/removal and calibration events.

Events arrive asynchronously to frame processing (for MQTT, on the paho
network thread). The registry and the calibration latch carry their own
locks, so handlers can run at any time.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import paho.mqtt.client as mqtt

from .config import ConfigError, MqttConfig, make_marker
from .pipeline import PipelineContext

LOGGER = logging.getLogger(__name__)


def _require_mapping(payload, event: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ConfigError(f"{event} event must be an object, got {type(payload).__name__}")
    return payload


def _field(payload: Mapping[str, Any], key: str, kind=float):
    if key not in payload:
        raise ConfigError(f"event is missing field {key!r}")
    try:
        return kind(payload[key])
    except (TypeError, ValueError):
        raise ConfigError(f"event field {key!r} is not a valid {kind.__name__}: {payload[key]!r}") from None


class ControlHandler:
    """
    Applies control events to a PipelineContext.

    Registration events carry native (OpenCV) coordinates unless
    `events_in_consumer_coords` is set, in which case they are converted the
    same way configured markers are.
    """

    def __init__(self, context: PipelineContext, events_in_consumer_coords: bool = False):
        self.context = context
        self.events_in_consumer_coords = events_in_consumer_coords

    def on_register(self, payload: Mapping[str, Any]) -> None:
        payload = _require_mapping(payload, "register")
        marker_id = _field(payload, "id", int)
        size = _field(payload, "size")
        position = tuple(_field(payload, k) for k in ("posx", "posy", "posz"))
        rotation = tuple(_field(payload, k) for k in ("rotx", "roty", "rotz"))
        marker = make_marker(
            marker_id, size, position, rotation,
            use_native_coords=not self.events_in_consumer_coords,
        )
        self.context.registry.register(marker)

    def on_remove(self, payload: Mapping[str, Any] | int) -> None:
        if isinstance(payload, Mapping):
            marker_id = _field(payload, "id", int)
        else:
            try:
                marker_id = int(payload)
            except (TypeError, ValueError):
                raise ConfigError(f"remove event needs a marker id, got {payload!r}") from None
        self.context.registry.remove(marker_id)

    def on_camera_info(self, payload: Mapping[str, Any]) -> bool:
        if self.context.calibration.calibrated:
            return False
        payload = _require_mapping(payload, "camera info")
        K = payload.get("k")
        D = payload.get("d")
        if K is None or D is None:
            raise ConfigError("camera info event needs 'k' (9 values) and 'd' (5 values)")
        try:
            return self.context.calibration.apply(K, D)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"camera info event rejected: {e}") from None


class MqttControlListener:
    """Subscribes to the control topics and feeds a ControlHandler."""

    def __init__(self, handler: ControlHandler, config: MqttConfig, client=None):
        self.handler = handler
        self.config = config
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self.routes = {
            config.topic("marker_register"): handler.on_register,
            config.topic("marker_remove"): handler.on_remove,
            config.topic("camera_info"): handler.on_camera_info,
        }
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

    def start(self) -> None:
        self.client.connect(self.config.host, self.config.port, self.config.keepalive)
        self.client.loop_start()

    def stop(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):
        LOGGER.info("control listener connected (%s)", reason_code)
        for topic in self.routes:
            client.subscribe(topic)

    def _on_message(self, _client, _userdata, msg) -> None:
        route = self.routes.get(msg.topic)
        if route is None:
            return
        try:
            payload = json.loads(msg.payload.decode("utf-8"))
            route(payload)
        except (ConfigError, ValueError, TypeError, AttributeError, UnicodeDecodeError) as e:
            LOGGER.warning("dropped control message on %s: %s", msg.topic, e)
