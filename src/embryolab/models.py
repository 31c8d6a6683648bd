"""Data models used across the embryo pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from .labels import describe


class SlotKind(str, Enum):
    IMAGE = "image"
    MODEL = "model"


class Stage(str, Enum):
    IDLE = "idle"
    CLASSIFYING = "classifying"
    CLASSIFIED = "classified"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"

    @property
    def busy(self) -> bool:
        return self in (Stage.CLASSIFYING, Stage.ANALYZING)


class Severity(str, Enum):
    INFO = "info"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True, slots=True, eq=False)
class UploadedFile:
    """Opaque handle to an accepted upload.

    Compared by identity: two uploads with the same name are still different
    files as far as the pipeline is concerned.
    """

    name: str
    size_bytes: int
    mime_type: str = ""

    def __post_init__(self) -> None:
        if self.size_bytes < 0:
            raise ValueError("size_bytes must be >= 0")

    @property
    def size_kb(self) -> float:
        return round(self.size_bytes / 1024, 1)

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / (1024 * 1024), 2)

    def dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "size_kb": self.size_kb,
            "size_mb": self.size_mb,
        }


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """A single label/confidence pair."""

    label: str
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence {self.confidence!r} is outside [0, 1]")

    @property
    def percent(self) -> float:
        return round(self.confidence * 100, 1)

    def dict(self) -> Dict[str, object]:
        return {"label": self.label, "confidence": self.confidence}


def rank_results(results: Iterable[ClassificationResult]) -> Tuple[ClassificationResult, ...]:
    """Order results by descending confidence; ties keep their input order."""

    return tuple(sorted(results, key=lambda result: result.confidence, reverse=True))


@dataclass(frozen=True, slots=True)
class PreprocessedImages:
    """References to the three preprocessed renditions of the input image."""

    grayscale: str
    edge_detected: str
    histogram_equalized: str

    def dict(self) -> Dict[str, str]:
        return {
            "grayscale": self.grayscale,
            "edge_detected": self.edge_detected,
            "histogram_equalized": self.histogram_equalized,
        }


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    accuracy: float
    confusion_matrix: Tuple[Tuple[int, ...], ...]
    class_labels: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not 0.0 <= self.accuracy <= 1.0:
            raise ValueError(f"accuracy {self.accuracy!r} is outside [0, 1]")
        size = len(self.class_labels)
        if len(self.confusion_matrix) != size:
            raise ValueError(
                f"confusion matrix has {len(self.confusion_matrix)} rows for {size} labels"
            )
        for row in self.confusion_matrix:
            if len(row) != size:
                raise ValueError("confusion matrix must be square")
            if any(count < 0 for count in row):
                raise ValueError("confusion matrix counts must be non-negative")

    @classmethod
    def build(
        cls,
        accuracy: float,
        confusion_matrix: Iterable[Iterable[int]],
        class_labels: Iterable[str],
    ) -> "PerformanceMetrics":
        return cls(
            accuracy=accuracy,
            confusion_matrix=tuple(tuple(int(count) for count in row) for row in confusion_matrix),
            class_labels=tuple(class_labels),
        )

    def dict(self) -> Dict[str, object]:
        return {
            "accuracy": self.accuracy,
            "confusion_matrix": [list(row) for row in self.confusion_matrix],
            "class_labels": list(self.class_labels),
        }


@dataclass(frozen=True, slots=True)
class AnalysisBundle:
    """Preprocessed images plus model performance metrics."""

    images: PreprocessedImages
    metrics: PerformanceMetrics

    def dict(self) -> Dict[str, object]:
        return {
            "preprocessed_images": self.images.dict(),
            "performance_metrics": self.metrics.dict(),
        }


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    description: str
    severity: Severity = Severity.INFO

    @property
    def destructive(self) -> bool:
        return self.severity is Severity.DESTRUCTIVE

    def dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
        }


def results_payload(results: Iterable[ClassificationResult]) -> List[Dict[str, object]]:
    """Results as rendered: confidence, percentage and the grade description."""

    return [
        dict(result.dict(), percent=result.percent, description=describe(result.label))
        for result in results
    ]
