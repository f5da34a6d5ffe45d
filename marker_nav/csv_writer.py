import csv
import io

import numpy as np

from .marker_types import PoseEstimate


class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "frame_label", "visible",
        "pos_x", "pos_y", "pos_z",
        "rvec_x", "rvec_y", "rvec_z",
        "quat_x", "quat_y", "quat_z", "quat_w",
        "marker_ids",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _vec(vec, n):
        if vec is None:
            return [float("nan")] * n
        a = np.asarray(vec, dtype=np.float64).reshape(-1).tolist()
        if len(a) < n:
            a += [float("nan")] * (n - len(a))
        return a[:n]

    @classmethod
    def row(cls, est: PoseEstimate) -> list:
        return [
            f"{est.timestamp:.6f}",
            est.frame_idx, est.frame_label, int(est.visible),
            *cls._vec(est.position, 3),
            *cls._vec(est.rotation, 3),
            *cls._vec(est.quaternion, 4),
            " ".join(str(m) for m in est.marker_ids),
        ]

    def append(self, est: PoseEstimate):
        self._w.writerow(self.row(est))
        self._fh.flush()

    @classmethod
    def to_csv_line(cls, est: PoseEstimate) -> str:
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(cls.row(est))
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
