import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from marker_nav.config import ConfigError, MqttConfig
from marker_nav.control import ControlHandler, MqttControlListener
from marker_nav.pipeline import PipelineContext


def _register_payload(marker_id=5, **overrides):
    payload = {
        "id": marker_id, "size": 0.1,
        "posx": 1.0, "posy": 2.0, "posz": 3.0,
        "rotx": 0.0, "roty": 0.0, "rotz": 0.5,
    }
    payload.update(overrides)
    return payload


def test_register_and_replace():
    ctx = PipelineContext()
    handler = ControlHandler(ctx)

    handler.on_register(_register_payload())
    handler.on_register(_register_payload(size=0.3, posx=-1.0))

    assert len(ctx.registry) == 1
    m = ctx.registry.lookup(5)
    assert m.size == 0.3
    assert m.position == (-1.0, 2.0, 3.0)


def test_register_in_consumer_coords_is_converted():
    ctx = PipelineContext()
    ControlHandler(ctx, events_in_consumer_coords=True).on_register(
        _register_payload(posx=3.0, posy=-1.0, posz=-2.0)
    )
    assert ctx.registry.lookup(5).position == (1.0, 2.0, 3.0)


def test_register_rejects_incomplete_event():
    handler = ControlHandler(PipelineContext())
    payload = _register_payload()
    del payload["posz"]
    with pytest.raises(ConfigError):
        handler.on_register(payload)
    with pytest.raises(ConfigError):
        handler.on_register(_register_payload(size="big"))


def test_remove_accepts_dict_or_int():
    ctx = PipelineContext()
    handler = ControlHandler(ctx)
    handler.on_register(_register_payload(5))
    handler.on_register(_register_payload(6))

    handler.on_remove({"id": 5})
    handler.on_remove(6)
    handler.on_remove(7)

    assert len(ctx.registry) == 0


def test_camera_info_applied_once():
    ctx = PipelineContext()
    handler = ControlHandler(ctx)
    k1 = [600, 0, 320, 0, 600, 240, 0, 0, 1]
    k2 = [1, 0, 0, 0, 1, 0, 0, 0, 1]

    assert handler.on_camera_info({"k": k1, "d": [0] * 5}) is True
    assert handler.on_camera_info({"k": k2, "d": [0] * 5}) is False
    assert ctx.calibration.matrices()[0][0, 0] == 600.0


def test_camera_info_rejects_bad_sizes():
    handler = ControlHandler(PipelineContext())
    with pytest.raises(ConfigError):
        handler.on_camera_info({"k": [1, 2, 3], "d": [0] * 5})
    with pytest.raises(ConfigError):
        handler.on_camera_info({"k": [1] * 9})


def _message(topic, payload):
    return SimpleNamespace(topic=topic, payload=payload)


def test_listener_routes_messages():
    ctx = PipelineContext()
    client = MagicMock()
    cfg = MqttConfig(topic_prefix="nav")
    listener = MqttControlListener(ControlHandler(ctx), cfg, client=client)

    listener._on_connect(client, None, None, 0)
    subscribed = {c.args[0] for c in client.subscribe.call_args_list}
    assert subscribed == {"nav/marker_register", "nav/marker_remove", "nav/camera_info"}

    listener._on_message(client, None, _message("nav/marker_register", json.dumps(_register_payload(2)).encode()))
    assert ctx.registry.lookup(2) is not None

    listener._on_message(client, None, _message("nav/marker_remove", b"2"))
    assert ctx.registry.lookup(2) is None


def test_listener_drops_malformed_messages(caplog):
    ctx = PipelineContext()
    listener = MqttControlListener(ControlHandler(ctx), MqttConfig(), client=MagicMock())

    listener._on_message(None, None, _message("marker_nav/marker_register", b"{not json"))
    listener._on_message(None, None, _message("marker_nav/marker_register", b'{"id": 1}'))
    listener._on_message(None, None, _message("other/topic", b"{}"))
    listener._on_message(None, None, _message("marker_nav/marker_remove", b"null"))
    listener._on_message(None, None, _message("marker_nav/marker_register", b"5"))
    listener._on_message(None, None, _message("marker_nav/camera_info", b"[1,2]"))

    assert len(ctx.registry) == 0
    assert ctx.calibration.calibrated is False
    assert caplog.text.count("dropped control message") == 5


@pytest.mark.parametrize("payload", [5, None, [1, 2], "id"])
def test_register_rejects_non_object_events(payload):
    with pytest.raises(ConfigError, match="must be an object"):
        ControlHandler(PipelineContext()).on_register(payload)


@pytest.mark.parametrize("payload", [None, [5], "five"])
def test_remove_rejects_events_without_an_id(payload):
    with pytest.raises(ConfigError):
        ControlHandler(PipelineContext()).on_remove(payload)


@pytest.mark.parametrize("payload", [[1, 2], 7, None])
def test_camera_info_rejects_non_object_events(payload):
    ctx = PipelineContext()
    with pytest.raises(ConfigError, match="must be an object"):
        ControlHandler(ctx).on_camera_info(payload)
    assert ctx.calibration.calibrated is False


def test_listener_keeps_working_after_malformed_message():
    ctx = PipelineContext()
    listener = MqttControlListener(ControlHandler(ctx), MqttConfig(), client=MagicMock())

    listener._on_message(None, None, _message("marker_nav/marker_remove", b"null"))
    listener._on_message(None, None, _message("marker_nav/marker_register", json.dumps(_register_payload(9)).encode()))

    assert ctx.registry.lookup(9) is not None
