"""Embryo grade labels and their human-readable descriptions."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

GENERIC_DESCRIPTION = "Embryo classification result"


class EmbryoLabel(str, Enum):
    TWO_CELL = "1-1-2"
    FOUR_CELL = "2-2-2"
    EIGHT_CELL = "3-2-2"
    FRAGMENTED = "2-1-3"
    ARRESTED = "Arrested"
    MORULA = "Morula"
    EARLY = "Early"


DESCRIPTIONS: Dict[EmbryoLabel, str] = {
    EmbryoLabel.TWO_CELL: "Day 2: 2-cell stage embryo with even blastomeres",
    EmbryoLabel.FOUR_CELL: "Day 2: 4-cell stage embryo with good morphology",
    EmbryoLabel.EIGHT_CELL: "Day 3: 8-cell stage embryo with excellent quality",
    EmbryoLabel.FRAGMENTED: "Day 2-3: Embryo with fragmentation",
    EmbryoLabel.ARRESTED: "Development arrested - poor prognosis",
    EmbryoLabel.MORULA: "Day 4: Morula stage with compaction",
    EmbryoLabel.EARLY: "Early cleavage stage embryo",
}


def parse_label(label: str) -> Optional[EmbryoLabel]:
    try:
        return EmbryoLabel(label.strip())
    except ValueError:
        return None


def describe(label: str) -> str:
    parsed = parse_label(label)
    if parsed is None:
        return GENERIC_DESCRIPTION
    return DESCRIPTIONS[parsed]


def short_description(label: str) -> str:
    """Text before the first " - " of the description, or the label if unknown."""

    parsed = parse_label(label)
    if parsed is None:
        return label
    return DESCRIPTIONS[parsed].split(" - ")[0]


def description_table() -> Dict[str, str]:
    return {label.value: DESCRIPTIONS[label] for label in EmbryoLabel}
