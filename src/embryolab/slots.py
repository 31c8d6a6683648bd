"""Single-valued containers for the uploaded image and model."""

from __future__ import annotations

from typing import Optional

from .models import SlotKind, UploadedFile


class UploadSlot:
    """Holds at most one uploaded file of a fixed kind."""

    def __init__(self, kind: SlotKind) -> None:
        self.kind = kind
        self._content: Optional[UploadedFile] = None

    def set(self, file: UploadedFile) -> None:
        self._content = file

    def clear(self) -> None:
        self._content = None

    def get(self) -> Optional[UploadedFile]:
        return self._content

    @property
    def is_present(self) -> bool:
        return self._content is not None

    def holds(self, file: Optional[UploadedFile]) -> bool:
        """True when the slot still contains exactly ``file``."""

        return self._content is file

    def __repr__(self) -> str:
        name = self._content.name if self._content else None
        return f"UploadSlot(kind={self.kind.value!r}, content={name!r})"
