"""Configuration for the embryo classification pipeline."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PipelineConfig(BaseModel):
    """Runtime configuration for the pipeline."""

    classification_latency: float = Field(
        default=2.0,
        ge=0,
        description="Seconds the mock classifier waits before returning results.",
    )
    analysis_latency: float = Field(
        default=1.5,
        ge=0,
        description="Seconds the mock analyzer waits before returning its bundle.",
    )
    image_mime_prefix: str = Field(
        default="image/",
        min_length=1,
        description="MIME type prefix an uploaded embryo image must carry.",
    )
    model_extensions: Tuple[str, ...] = Field(
        default=(".h5", ".keras", ".zip"),
        min_length=1,
        description="File name suffixes accepted for trained model uploads.",
    )
    event_log_path: Optional[Path] = Field(
        default=None,
        description="Optional JSONL file that receives one line per pipeline step.",
    )

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    @field_validator("model_extensions")
    @classmethod
    def _require_dot(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        for extension in value:
            if not extension.startswith("."):
                raise ValueError(f"model extension {extension!r} must start with '.'")
        return value

    @field_validator("event_log_path", mode="before")
    @classmethod
    def _expand_path(cls, value: Path | str | None) -> Path | None:
        if value is None or value == "":
            return None
        return Path(value).expanduser().resolve()


def load_config(path: Path) -> PipelineConfig:
    """Load pipeline settings from JSON or YAML."""

    if not path.exists():
        raise FileNotFoundError(path)
    text = path.read_text()
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Pipeline configuration file must define a mapping")
    return PipelineConfig(**data)
