"""Append-only JSONL trail of pipeline steps."""

from __future__ import annotations

import json
import time
from pathlib import Path


def record_event(path: Path, step: str, status: str = "ok", **fields: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    rec = {"ts": time.time(), "step": step, "status": status}
    rec.update(fields)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(rec, default=str) + "\n")
