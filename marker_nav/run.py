import argparse
import signal
import sys

from .config import NodeConfig, load_config
from .control import ControlHandler, MqttControlListener
from .output import CsvOutput, PublisherOutput
from .publisher import MqttPublisher
from .worker import PoseWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Estimate camera pose from known fiducial markers")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--node-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib", help="OpenCV FileStorage calibration YAML")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--dict")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--debug", action="store_true")
    ap.add_argument("--native-coords", action="store_true",
                    help="Publish in OpenCV axes instead of the robot convention")
    ap.add_argument("--mqtt-host")
    ap.add_argument("--mqtt-port", type=int)
    ap.add_argument("--mqtt", action="store_true", help="Enable MQTT publishing and control topics")

    return ap


def _apply_args(cfg: NodeConfig, args: argparse.Namespace) -> NodeConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        node_name=args.node_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        aruco_dict=args.dict,
        max_frames=args.max_frames,
        dry_run=args.dry_run if args.dry_run else None,
        debug=args.debug if args.debug else None,
        use_native_coords=args.native_coords if args.native_coords else None,
    )
    if args.mqtt:
        cfg.mqtt.enabled = True
    if args.mqtt_host:
        cfg.mqtt.host = args.mqtt_host
    if args.mqtt_port:
        cfg.mqtt.port = args.mqtt_port
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else NodeConfig()
    cfg = _apply_args(cfg, args)

    outputs = [CsvOutput()]
    publisher = None
    if cfg.mqtt.enabled:
        publisher = MqttPublisher(cfg.mqtt)
        publisher.connect()
        topics = {name: cfg.mqtt.topic(name) for name in ("visible", "position", "rotation", "pose")}
        outputs.append(PublisherOutput(publisher, topics))

    worker = PoseWorker(cfg, outputs=outputs)

    listener = None
    if cfg.mqtt.enabled:
        listener = MqttControlListener(ControlHandler(worker.context), cfg.mqtt)
        listener.start()

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = worker.run()
    finally:
        if listener is not None:
            listener.stop()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
