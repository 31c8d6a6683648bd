"""Command-line entrypoint for the embryo classification pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import PipelineConfig, load_config
from .controller import PipelineController
from .intake import candidate_from_path
from .labels import description_table
from .notifications import LoggingNotificationSink, RecordingNotificationSink

app = typer.Typer(help="Upload an embryo image and a model, then classify and analyze it.")


def _read_config(config_path: Optional[Path], no_delay: bool) -> PipelineConfig:
    config = load_config(config_path) if config_path else PipelineConfig()
    if no_delay:
        config = config.model_copy(update={"classification_latency": 0.0, "analysis_latency": 0.0})
    return config


@app.command("run")
def run_session(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Embryo image file."),
    model: Path = typer.Argument(..., exists=True, dir_okay=False, help="Trained model (.h5, .keras, .zip)."),
    analyze: bool = typer.Option(True, help="Run the analysis step after classification."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON/YAML pipeline settings."),
    no_delay: bool = typer.Option(False, "--no-delay", help="Skip the simulated backend latency."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run one upload -> classify -> analyze session and print the outcome."""

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    config = _read_config(config_path, no_delay)
    sink = RecordingNotificationSink(forward=LoggingNotificationSink())
    controller = PipelineController(config, sink=sink)

    model_ready = controller.upload_model(candidate_from_path(model))
    image_ready = controller.upload_image(candidate_from_path(image))
    if model_ready and image_ready:
        asyncio.run(controller.run(analyze=analyze))

    payload = {
        "pipeline": controller.view.to_dict(),
        "notifications": [notification.dict() for notification in sink.notifications],
    }
    typer.echo(json.dumps(payload, indent=2))
    if sink.failures():
        raise typer.Exit(code=1)


@app.command("labels")
def list_labels() -> None:
    """Print the known embryo grades and their descriptions."""

    typer.echo(json.dumps(description_table(), indent=2))


if __name__ == "__main__":
    app()
