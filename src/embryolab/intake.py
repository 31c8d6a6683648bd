"""Validation of picked or dropped files before they reach an upload slot."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Union

from .models import UploadedFile

LOGGER = logging.getLogger(__name__)

NO_FILE = "no-file"
INVALID_TYPE = "invalid-type"


@dataclass(frozen=True, slots=True)
class FileCandidate:
    """What the browser file APIs hand over: a name, a size and a MIME type."""

    name: str
    size_bytes: int
    mime_type: str = ""


@dataclass(frozen=True, slots=True)
class Accepted:
    file: UploadedFile


@dataclass(frozen=True, slots=True)
class Rejected:
    reason: str


IntakeResult = Union[Accepted, Rejected]
Predicate = Callable[[FileCandidate], bool]


def image_predicate(prefix: str = "image/") -> Predicate:
    def _is_image(candidate: FileCandidate) -> bool:
        return candidate.mime_type.startswith(prefix)

    return _is_image


def model_predicate(extensions: Iterable[str] = (".h5", ".keras", ".zip")) -> Predicate:
    suffixes = tuple(extensions)

    def _is_model(candidate: FileCandidate) -> bool:
        return candidate.name.endswith(suffixes)

    return _is_model


def accept(candidate: Optional[FileCandidate], predicate: Predicate) -> IntakeResult:
    """Validate a single picked file."""

    if candidate is None:
        return Rejected(NO_FILE)
    if not predicate(candidate):
        LOGGER.debug("Rejected %s (%s)", candidate.name, candidate.mime_type or "no type")
        return Rejected(INVALID_TYPE)
    return Accepted(
        UploadedFile(
            name=candidate.name,
            size_bytes=candidate.size_bytes,
            mime_type=candidate.mime_type,
        )
    )


def accept_drop(candidates: Sequence[FileCandidate], predicate: Predicate) -> IntakeResult:
    """Validate a drop: the first matching file wins.

    An empty drop counts as no file at all; a drop where nothing matches is
    rejected exactly like a picked file of the wrong type.
    """

    if not candidates:
        return Rejected(NO_FILE)
    for candidate in candidates:
        if predicate(candidate):
            return accept(candidate, predicate)
    return Rejected(INVALID_TYPE)


def candidate_from_path(path: Path) -> FileCandidate:
    if not path.exists():
        raise FileNotFoundError(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    return FileCandidate(
        name=path.name,
        size_bytes=path.stat().st_size,
        mime_type=mime_type or "",
    )
