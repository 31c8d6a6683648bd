"""Exceptions raised by the pipeline state machine and file intake."""

from __future__ import annotations

from .models import SlotKind

_INVALID_TYPE_HINTS = {
    SlotKind.IMAGE: "Please upload a valid image file (PNG, JPG, JPEG)",
    SlotKind.MODEL: "Please upload a .h5, .keras, or .zip model file",
}


class PipelineError(RuntimeError):
    """Base class for recoverable pipeline failures.

    ``title`` and ``description`` are what the user gets to see; the
    controller turns every caught instance into exactly one notification.
    """

    title = "Pipeline error"

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class InvalidFileType(PipelineError):
    title = "Invalid file type"

    def __init__(self, kind: SlotKind) -> None:
        super().__init__(_INVALID_TYPE_HINTS[kind])
        self.kind = kind


class NoFileSupplied(PipelineError):
    title = "No file selected"

    def __init__(self, kind: SlotKind) -> None:
        super().__init__("Please choose a file to upload")
        self.kind = kind


class MissingInput(PipelineError):
    """Raised when classification is requested without an image or a model."""

    def __init__(self, missing: SlotKind) -> None:
        if missing is SlotKind.IMAGE:
            self.title = "No image uploaded"
            description = "Please upload an embryo image first"
        else:
            self.title = "No model uploaded"
            description = "Please upload your trained model first"
        super().__init__(description)
        self.missing = missing


class NoResultsYet(PipelineError):
    title = "No classification results"

    def __init__(self) -> None:
        super().__init__("Please classify an image first")


class OperationBusy(PipelineError):
    title = "Operation in progress"

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation.capitalize()} is already running")
        self.operation = operation


class OperationFailed(PipelineError):
    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(reason)
        self.operation = operation
        self.reason = reason


class ClassificationFailed(OperationFailed):
    title = "Classification failed"

    def __init__(self, reason: str = "Invalid input. Please upload a valid embryo image.") -> None:
        super().__init__("classification", reason)


class AnalysisFailed(OperationFailed):
    title = "Analysis failed"

    def __init__(self, reason: str) -> None:
        super().__init__("analysis", reason)
