"""Embryo image classification workflow with mock backends."""

from .config import PipelineConfig
from .controller import PipelineController
from .models import AnalysisBundle, ClassificationResult, Stage, UploadedFile
from .state import PipelineState, PipelineView

__all__ = [
    "PipelineController",
    "PipelineConfig",
    "PipelineState",
    "PipelineView",
    "AnalysisBundle",
    "ClassificationResult",
    "Stage",
    "UploadedFile",
]
