import asyncio
import json

import pytest

from embryolab.clients import MockClassifier
from embryolab.clock import VirtualClock
from embryolab.config import PipelineConfig
from embryolab.controller import PipelineController
from embryolab.intake import FileCandidate
from embryolab.models import Severity, Stage
from embryolab.notifications import RecordingNotificationSink

EMBRYO = FileCandidate("embryo1.png", 20480, "image/png")
OTHER_EMBRYO = FileCandidate("embryo2.jpg", 18000, "image/jpeg")
MODEL = FileCandidate("model.h5", 1048576, "application/x-hdf5")


class CountingClassifier(MockClassifier):
    def __init__(self, clock=None):
        super().__init__(clock, latency=0.0)
        self.calls = 0

    async def classify(self, image, model):
        self.calls += 1
        return await super().classify(image, model)


class BrokenBackend:
    async def classify(self, image, model):
        raise RuntimeError("backend down")

    async def analyze(self, image, results):
        raise RuntimeError("backend down")


def _session(config=None, **kwargs):
    clock = VirtualClock()
    sink = RecordingNotificationSink()
    controller = PipelineController(config, clock=clock, sink=sink, **kwargs)
    return controller, clock, sink


def _instant_config(**kwargs):
    return PipelineConfig(classification_latency=0, analysis_latency=0, **kwargs)


def test_full_session_reaches_analyzed():
    async def scenario():
        controller, clock, sink = _session()
        assert controller.upload_image(EMBRYO)
        assert controller.upload_model(MODEL)

        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        assert controller.view.stage is Stage.CLASSIFYING

        clock.advance(1.5)
        await asyncio.sleep(0)
        assert not task.done()

        clock.advance(0.5)
        assert await task is True
        view = controller.view
        assert view.stage is Stage.CLASSIFIED
        assert view.top_result == max(view.results, key=lambda r: r.confidence)
        assert view.can_analyze

        task = asyncio.create_task(controller.analyze())
        await asyncio.sleep(0)
        assert controller.view.stage is Stage.ANALYZING
        clock.advance(1.5)
        assert await task is True

        view = controller.view
        assert view.stage is Stage.ANALYZED
        metrics = view.bundle.metrics
        assert len(metrics.class_labels) == 7
        assert len(metrics.confusion_matrix) == 7
        assert all(len(row) == 7 for row in metrics.confusion_matrix)
        return sink

    sink = asyncio.run(scenario())
    assert sink.titles() == [
        "Model uploaded successfully",
        "Classification complete",
        "Analysis complete",
    ]
    assert sink.notifications[1].description == (
        "Embryo classified as 3-2-2 with 87.0% confidence"
    )
    assert not sink.failures()


def test_classify_without_image_does_nothing():
    classifier = CountingClassifier()
    controller, _, sink = _session(classifier=classifier)
    controller.upload_model(MODEL)
    before = controller.view

    assert asyncio.run(controller.classify()) is False

    assert controller.view == before
    assert classifier.calls == 0
    assert sink.last.title == "No image uploaded"
    assert sink.last.severity is Severity.DESTRUCTIVE


def test_classify_without_model_reports_model():
    controller, _, sink = _session(_instant_config())
    controller.upload_image(EMBRYO)

    assert asyncio.run(controller.classify()) is False
    assert sink.titles() == ["No model uploaded"]


def test_classify_is_not_reentrant():
    async def scenario():
        controller, clock, sink = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)

        first = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        assert await controller.classify() is False
        assert clock.pending == 1
        assert sink.last.title == "Operation in progress"

        clock.advance(2.0)
        assert await first is True
        return controller

    controller = asyncio.run(scenario())
    assert controller.view.stage is Stage.CLASSIFIED


def test_analyze_before_classify():
    controller, _, sink = _session(_instant_config())
    controller.upload_image(EMBRYO)
    controller.upload_model(MODEL)

    assert asyncio.run(controller.analyze()) is False
    assert controller.view.stage is Stage.IDLE
    assert sink.last.title == "No classification results"


def test_clearing_image_mid_classification_discards_result():
    async def scenario():
        controller, clock, sink = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)

        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        controller.remove_image()
        assert controller.view.stage is Stage.IDLE

        clock.advance(2.0)
        assert await task is False
        return controller, sink

    controller, sink = asyncio.run(scenario())
    view = controller.view
    assert view.stage is Stage.IDLE
    assert view.results == ()
    assert not view.image_present
    assert "Classification complete" not in sink.titles()


def test_replacing_image_mid_analysis_discards_bundle():
    async def scenario():
        controller, clock, _ = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)
        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        clock.advance(2.0)
        await task

        task = asyncio.create_task(controller.analyze())
        await asyncio.sleep(0)
        controller.upload_image(OTHER_EMBRYO)
        clock.advance(1.5)
        assert await task is False
        return controller

    view = asyncio.run(scenario()).view
    assert view.stage is Stage.IDLE
    assert view.image.name == "embryo2.jpg"
    assert view.bundle is None
    assert view.can_classify


def test_backend_failure_restores_state():
    controller, _, sink = _session(classifier=BrokenBackend())
    controller.upload_image(EMBRYO)
    controller.upload_model(MODEL)

    assert asyncio.run(controller.classify()) is False

    assert controller.view.stage is Stage.IDLE
    assert controller.view.results == ()
    assert sink.last.title == "Classification failed"
    assert sink.last.description == "Invalid input. Please upload a valid embryo image."
    assert len(sink.failures()) == 1


def test_analysis_failure_keeps_classification():
    controller, _, sink = _session(_instant_config(), analyzer=BrokenBackend())
    controller.upload_image(EMBRYO)
    controller.upload_model(MODEL)

    ok, view = asyncio.run(controller.run())

    assert ok is False
    assert view.stage is Stage.CLASSIFIED
    assert view.results
    assert view.bundle is None
    assert sink.last.title == "Analysis failed"
    assert sink.last.description == "backend down"


def test_model_replacement_keeps_results():
    controller, _, sink = _session(_instant_config())
    controller.upload_image(EMBRYO)
    controller.upload_model(MODEL)
    asyncio.run(controller.classify())

    assert controller.upload_model(FileCandidate("retrained.keras", 2048))

    view = controller.view
    assert view.stage is Stage.CLASSIFIED
    assert view.model.name == "retrained.keras"
    assert view.results
    assert sink.last.description == "retrained.keras is ready for use"


def test_model_upload_refused_while_classifying():
    async def scenario():
        controller, clock, sink = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)
        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)

        assert controller.upload_model(FileCandidate("other.zip", 10)) is False
        assert sink.last.title == "Operation in progress"
        clock.advance(2.0)
        await task
        return controller

    assert asyncio.run(scenario()).view.model.name == "model.h5"


def test_invalid_uploads_notify_once():
    controller, _, sink = _session()

    assert controller.drop_image([FileCandidate("notes.txt", 3, "text/plain")]) is False
    assert controller.drop_model([EMBRYO]) is False
    assert controller.upload_image(None) is False

    assert [(n.title, n.description) for n in sink.notifications] == [
        ("Invalid file type", "Please upload a valid image file (PNG, JPG, JPEG)"),
        ("Invalid file type", "Please upload a .h5, .keras, or .zip model file"),
        ("No file selected", "Please choose a file to upload"),
    ]
    assert not controller.view.image_present
    assert not controller.view.model_present


def test_drop_accepts_first_matching_file():
    controller, _, sink = _session()

    assert controller.drop_image([FileCandidate("notes.txt", 3, "text/plain"), EMBRYO])
    assert controller.drop_model([EMBRYO, MODEL])

    assert controller.view.image.name == "embryo1.png"
    assert controller.view.model.name == "model.h5"
    assert sink.titles() == ["Model uploaded successfully"]


def test_event_log_records_steps(tmp_path):
    log_path = tmp_path / "logs" / "events.jsonl"
    controller, _, _ = _session(_instant_config(event_log_path=log_path))
    controller.upload_image(EMBRYO)
    controller.upload_model(MODEL)
    controller.upload_model(FileCandidate("bad.txt", 1, "text/plain"))
    asyncio.run(controller.run())

    records = [json.loads(line) for line in log_path.read_text().splitlines()]

    assert [r["step"] for r in records] == [
        "image_intake",
        "model_intake",
        "model_intake",
        "classify",
        "analyze",
    ]
    assert records[2]["status"] == "error"
    assert records[2]["error"] == "InvalidFileType"
    assert records[3]["label"] == "3-2-2"


def test_analyze_is_not_reentrant():
    async def scenario():
        controller, clock, sink = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)
        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        clock.advance(2.0)
        assert await task is True

        first = asyncio.create_task(controller.analyze())
        await asyncio.sleep(0)
        assert await controller.analyze() is False
        assert clock.pending == 1
        assert sink.last.title == "Operation in progress"
        assert sink.last.description == "Analysis is already running"

        clock.advance(1.5)
        assert await first is True
        return controller

    assert asyncio.run(scenario()).view.stage is Stage.ANALYZED


def test_cancelled_classification_can_be_retried():
    async def scenario():
        controller, clock, sink = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)

        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert controller.view.stage is Stage.IDLE
        assert controller.view.can_classify

        controller.remove_image()
        controller.upload_image(EMBRYO)
        retry = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        clock.advance(2.0)
        assert await retry is True
        return controller, sink

    controller, sink = asyncio.run(scenario())
    assert controller.view.stage is Stage.CLASSIFIED
    assert not sink.failures()


def test_cancelled_analysis_returns_to_classified():
    async def scenario():
        controller, clock, _ = _session()
        controller.upload_image(EMBRYO)
        controller.upload_model(MODEL)
        task = asyncio.create_task(controller.classify())
        await asyncio.sleep(0)
        clock.advance(2.0)
        await task

        task = asyncio.create_task(controller.analyze())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return controller

    view = asyncio.run(scenario()).view
    assert view.stage is Stage.CLASSIFIED
    assert view.results
    assert view.can_analyze
