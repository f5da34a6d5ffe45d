import logging

import paho.mqtt.client as mqtt

from .config import MqttConfig

LOGGER = logging.getLogger(__name__)


class MqttPublisher:
    """Thin paho-mqtt wrapper exposing publish(topic, payload)."""

    def __init__(self, config: MqttConfig, client=None):
        self.config = config
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self._connected = False

    def connect(self) -> None:
        self.client.connect(self.config.host, self.config.port, self.config.keepalive)
        self.client.loop_start()
        self._connected = True
        LOGGER.info("mqtt publisher connected to %s:%d", self.config.host, self.config.port)

    def publish(self, topic: str, payload: str) -> None:
        self.client.publish(topic, payload)

    def close(self) -> None:
        if self._connected:
            self.client.loop_stop()
            self.client.disconnect()
            self._connected = False
