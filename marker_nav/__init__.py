"""Camera pose estimation from known fiducial markers."""

from .config import NodeConfig
from .pipeline import FramePipeline, PipelineContext
from .registry import MarkerRegistry
from .worker import PoseWorker

__all__ = ["NodeConfig", "FramePipeline", "PipelineContext", "MarkerRegistry", "PoseWorker"]
