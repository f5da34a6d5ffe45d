from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

from .coords import consumer_to_opencv
from .marker_types import KnownMarker


class ConfigError(ValueError):
    """Raised for malformed configuration values or control events."""


@dataclass
class MqttConfig:
    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    keepalive: int = 60
    topic_prefix: str = "marker_nav"
    topic_visible: str = "visible"
    topic_position: str = "position"
    topic_rotation: str = "rotation"
    topic_pose: str = "pose"
    topic_marker_register: str = "marker_register"
    topic_marker_remove: str = "marker_remove"
    topic_camera_info: str = "camera_info"

    def topic(self, name: str) -> str:
        suffix = getattr(self, f"topic_{name}")
        if not self.topic_prefix:
            return suffix
        return f"{self.topic_prefix.rstrip('/')}/{suffix}"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NodeConfig:
    node_name: str = "marker_nav"
    frame_label: str = "aruco"
    debug: bool = False
    use_native_coords: bool = False
    # Detector tuning
    aruco_dict: str = "4x4_50"
    cosine_limit: float = 0.7
    threshold_block_size_min: int = 3
    threshold_block_size_max: int = 21
    max_error_quad: float = 0.035
    min_area: int = 100
    # Calibration, "fx_0_cx_0_fy_cy_0_0_1" and "k1_k2_p1_p2_k3"
    calibration: Optional[str] = None
    distortion: Optional[str] = None
    calibration_path: Optional[str] = None
    # marker id -> "size_posx_posy_posz_rotx_roty_rotz"
    markers: dict[int, str] = field(default_factory=dict)
    # Capture / session
    device: int | str = 0
    fps: int = 30
    width: int = 640
    height: int = 480
    session_root: str = "data/sessions"
    duration_sec: Optional[float] = None
    max_frames: Optional[int] = None
    dry_run: bool = False
    mqtt: MqttConfig = field(default_factory=MqttConfig)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "NodeConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def calibration_values(self) -> tuple[Optional[list[float]], Optional[list[float]]]:
        K = None
        dist = None
        if self.calibration:
            K = parse_numeric_list(self.calibration, 9, name="calibration")
        if self.distortion:
            dist = parse_numeric_list(self.distortion, 5, name="distortion")
        return K, dist

    def known_markers(self) -> list[KnownMarker]:
        return [
            parse_marker_definition(mid, text, self.use_native_coords)
            for mid, text in sorted(self.markers.items())
        ]


def parse_numeric_list(text: str, count: int, name: str = "value", delimiter: str = "_") -> list[float]:
    """Parse "0_1_2_3" into [0.0, 1.0, 2.0, 3.0], requiring exactly `count` numbers."""
    if not isinstance(text, str):
        raise ConfigError(f"{name}: expected a '{delimiter}' delimited string, got {type(text).__name__}")

    tokens = text.strip().split(delimiter)
    if len(tokens) != count:
        raise ConfigError(f"{name}: expected {count} values, got {len(tokens)} in {text!r}")

    values = []
    for tok in tokens:
        try:
            values.append(float(tok))
        except ValueError:
            raise ConfigError(f"{name}: {tok!r} is not a number in {text!r}") from None
    return values


def parse_marker_definition(marker_id: int, text: str, use_native_coords: bool = False) -> KnownMarker:
    size, px, py, pz, rx, ry, rz = parse_numeric_list(text, 7, name=f"marker{marker_id}")
    return make_marker(marker_id, size, (px, py, pz), (rx, ry, rz), use_native_coords)


def make_marker(marker_id, size, position, rotation, use_native_coords: bool = False) -> KnownMarker:
    """Build a KnownMarker from values in the configured convention."""
    if size <= 0:
        raise ConfigError(f"marker{marker_id}: size must be positive, got {size}")
    if not use_native_coords:
        position = consumer_to_opencv(position)
        rotation = consumer_to_opencv(rotation)
    return KnownMarker(
        int(marker_id),
        float(size),
        tuple(float(v) for v in position),
        tuple(float(v) for v in rotation),
    )


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")


def _as(kind, value: Any, name: str):
    if kind is bool:
        return _as_bool(value, name)
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name}: expected {kind.__name__}, got {value!r}") from None


def _normalize_markers(value: Any) -> dict[int, str]:
    if value is None:
        return {}
    if isinstance(value, (list, tuple)):
        value = {i: v for i, v in enumerate(value) if v}
    if not isinstance(value, dict):
        raise ConfigError("markers must be a mapping of marker_id -> definition string")

    out = {}
    for k, v in value.items():
        # YAML reads unquoted 0.1_0_0 as a number
        if not isinstance(v, str):
            raise ConfigError(f"marker{k}: definition must be a quoted string, got {v!r}")
        out[_as(int, k, "markers key")] = v
    return out


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ConfigError("YAML config root must be a mapping")
    return data


def load_config(path: str | Path) -> NodeConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a JSON/YAML object")
    return config_from_dict(raw)


def config_from_dict(raw: dict[str, Any]) -> NodeConfig:
    cfg = NodeConfig()
    cfg.node_name = str(raw.get("node_name", cfg.node_name))
    cfg.frame_label = str(raw.get("frame_label", cfg.frame_label))
    cfg.debug = _as(bool, raw.get("debug", cfg.debug), "debug")
    cfg.use_native_coords = _as(bool, raw.get("use_native_coords", cfg.use_native_coords), "use_native_coords")
    cfg.aruco_dict = str(raw.get("aruco_dict", cfg.aruco_dict))
    for name, kind in (
        ("cosine_limit", float),
        ("threshold_block_size_min", int),
        ("threshold_block_size_max", int),
        ("max_error_quad", float),
        ("min_area", int),
        ("fps", int),
        ("width", int),
        ("height", int),
    ):
        if name in raw:
            setattr(cfg, name, _as(kind, raw[name], name))
    cfg.calibration = raw.get("calibration") or None
    cfg.distortion = raw.get("distortion") or None
    cfg.calibration_path = raw.get("calibration_path") or None
    cfg.markers = _normalize_markers(raw.get("markers"))
    cfg.device = raw.get("device", cfg.device)
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    if raw.get("duration_sec") is not None:
        cfg.duration_sec = _as(float, raw["duration_sec"], "duration_sec")
    if raw.get("max_frames") is not None:
        cfg.max_frames = _as(int, raw["max_frames"], "max_frames")
    cfg.dry_run = _as(bool, raw.get("dry_run", cfg.dry_run), "dry_run")

    mq_raw = raw.get("mqtt")
    if mq_raw is not None and isinstance(mq_raw, dict):
        mq = MqttConfig()
        for key, value in mq_raw.items():
            if not hasattr(mq, key):
                raise ConfigError(f"unknown mqtt option: {key}")
            setattr(mq, key, _as(type(getattr(mq, key)), value, f"mqtt.{key}"))
        cfg.mqtt = mq

    # Surface malformed strings at load time rather than first use.
    cfg.calibration_values()
    cfg.known_markers()
    return cfg
