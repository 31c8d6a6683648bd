"""The upload -> classify -> analyze state machine.

Every mutation of the pipeline goes through a method on :class:`PipelineState`.
Guards raise :mod:`embryolab.errors` exceptions and leave the state untouched;
the controller is responsible for turning them into notifications.

Long-running steps are split in two. ``begin_*`` checks the guard, moves to
the busy stage and returns an :class:`OperationStamp` recording the slot
contents the operation was started against. ``complete_*`` / ``fail_*``
settle the operation; a completion whose stamp no longer matches the slots
(the image was cleared or replaced in the meantime) is discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from .errors import ClassificationFailed, MissingInput, NoResultsYet, OperationBusy
from .models import (
    AnalysisBundle,
    ClassificationResult,
    SlotKind,
    Stage,
    UploadedFile,
    rank_results,
    results_payload,
)
from .slots import UploadSlot

LOGGER = logging.getLogger(__name__)

CLASSIFICATION = "classification"
ANALYSIS = "analysis"

_BUSY_STAGE = {CLASSIFICATION: Stage.CLASSIFYING, ANALYSIS: Stage.ANALYZING}


@dataclass(frozen=True, slots=True)
class OperationStamp:
    operation: str
    image: UploadedFile
    model: Optional[UploadedFile]
    previous_stage: Stage
    results: Tuple[ClassificationResult, ...] = ()


@dataclass(frozen=True, slots=True)
class PipelineView:
    """Read-only snapshot handed to whatever renders the pipeline."""

    stage: Stage
    image: Optional[UploadedFile]
    model: Optional[UploadedFile]
    can_classify: bool
    can_analyze: bool
    results: Tuple[ClassificationResult, ...]
    bundle: Optional[AnalysisBundle]

    @property
    def image_present(self) -> bool:
        return self.image is not None

    @property
    def model_present(self) -> bool:
        return self.model is not None

    @property
    def top_result(self) -> Optional[ClassificationResult]:
        return self.results[0] if self.results else None

    def to_dict(self) -> Dict[str, object]:
        return {
            "stage": self.stage.value,
            "image": self.image.dict() if self.image else None,
            "model": self.model.dict() if self.model else None,
            "can_classify": self.can_classify,
            "can_analyze": self.can_analyze,
            "results": results_payload(self.results),
            "analysis": self.bundle.dict() if self.bundle else None,
        }


class PipelineState:
    """Two upload slots plus the classification and analysis outputs."""

    def __init__(self) -> None:
        self.image_slot = UploadSlot(SlotKind.IMAGE)
        self.model_slot = UploadSlot(SlotKind.MODEL)
        self.stage = Stage.IDLE
        self.results: Tuple[ClassificationResult, ...] = ()
        self.bundle: Optional[AnalysisBundle] = None
        self._pending: Dict[str, OperationStamp] = {}

    # -- uploads -----------------------------------------------------------

    def set_image(self, file: UploadedFile) -> None:
        """Store or replace the image; any results are invalidated."""

        replacing = self.image_slot.is_present
        self.image_slot.set(file)
        self._drop_outputs()
        LOGGER.info("%s image %s", "Replaced" if replacing else "Stored", file.name)

    def clear_image(self) -> None:
        self.image_slot.clear()
        self._drop_outputs()
        LOGGER.info("Cleared image")

    def set_model(self, file: UploadedFile) -> None:
        """Store or replace the model.

        Existing results survive a model change; only the image invalidates
        them.
        """

        if self.stage.busy:
            raise OperationBusy(self._running_operation())
        self.model_slot.set(file)
        LOGGER.info("Stored model %s", file.name)

    # -- classification ----------------------------------------------------

    def begin_classification(self) -> OperationStamp:
        self._guard_idle_for(CLASSIFICATION)
        image = self.image_slot.get()
        if image is None:
            raise MissingInput(SlotKind.IMAGE)
        if not self.model_slot.is_present:
            raise MissingInput(SlotKind.MODEL)
        return self._begin(CLASSIFICATION, image)

    def complete_classification(
        self, stamp: OperationStamp, results: Iterable[ClassificationResult]
    ) -> bool:
        """Store the ranked results. Returns False if the stamp went stale."""

        if not self._settle(stamp):
            return False
        ranked = rank_results(results)
        if not ranked:
            self._transition(stamp.previous_stage)
            raise ClassificationFailed("The classifier returned no results.")
        self.results = ranked
        self.bundle = None
        self._transition(Stage.CLASSIFIED)
        return True

    def fail_classification(self, stamp: OperationStamp) -> bool:
        """Roll back to the stage before the attempt; False if the stamp went stale."""

        if not self._settle(stamp):
            return False
        self._transition(stamp.previous_stage)
        return True

    # -- analysis ----------------------------------------------------------

    def begin_analysis(self) -> OperationStamp:
        self._guard_idle_for(ANALYSIS)
        image = self.image_slot.get()
        if not self.results or image is None:
            raise NoResultsYet()
        return self._begin(ANALYSIS, image)

    def complete_analysis(self, stamp: OperationStamp, bundle: AnalysisBundle) -> bool:
        if not self._settle(stamp):
            return False
        self.bundle = bundle
        self._transition(Stage.ANALYZED)
        return True

    def fail_analysis(self, stamp: OperationStamp) -> bool:
        if not self._settle(stamp):
            return False
        self._transition(stamp.previous_stage)
        return True

    # -- queries -----------------------------------------------------------

    def is_pending(self, operation: str) -> bool:
        return operation in self._pending

    def can_classify(self) -> bool:
        return (
            self.image_slot.is_present
            and self.model_slot.is_present
            and not self.stage.busy
            and not self.is_pending(CLASSIFICATION)
        )

    def can_analyze(self) -> bool:
        return bool(self.results) and not self.stage.busy and not self.is_pending(ANALYSIS)

    def view(self) -> PipelineView:
        return PipelineView(
            stage=self.stage,
            image=self.image_slot.get(),
            model=self.model_slot.get(),
            can_classify=self.can_classify(),
            can_analyze=self.can_analyze(),
            results=self.results,
            bundle=self.bundle,
        )

    # -- internals ---------------------------------------------------------

    def _guard_idle_for(self, operation: str) -> None:
        if operation in self._pending:
            raise OperationBusy(operation)
        if self.stage.busy:
            raise OperationBusy(self._running_operation())

    def _running_operation(self) -> str:
        return CLASSIFICATION if self.stage is Stage.CLASSIFYING else ANALYSIS

    def _begin(self, operation: str, image: UploadedFile) -> OperationStamp:
        stamp = OperationStamp(
            operation=operation,
            image=image,
            model=self.model_slot.get(),
            previous_stage=self.stage,
            results=self.results,
        )
        self._pending[operation] = stamp
        self._transition(_BUSY_STAGE[operation])
        return stamp

    def _settle(self, stamp: OperationStamp) -> bool:
        """Release the pending slot for ``stamp`` and report whether it still applies."""

        if self._pending.get(stamp.operation) is stamp:
            del self._pending[stamp.operation]
        current = (
            self.stage is _BUSY_STAGE[stamp.operation]
            and self.image_slot.holds(stamp.image)
            and self.model_slot.holds(stamp.model)
            and self.results is stamp.results
        )
        if not current:
            LOGGER.warning(
                "Discarding stale %s result for %s", stamp.operation, stamp.image.name
            )
        return current

    def _drop_outputs(self) -> None:
        self.results = ()
        self.bundle = None
        self._transition(Stage.IDLE)

    def _transition(self, stage: Stage) -> None:
        if stage is not self.stage:
            LOGGER.info("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage
