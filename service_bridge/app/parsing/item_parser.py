"""
Heuristic parser for copied item text.

The rules are pattern-matching heuristics, not a grammar:

- the first non-blank line is the item name, taken verbatim (a leading
  ``Rarity:`` line becomes the name);
- the type is the first line that is not a rarity tag, not a separator,
  has no colon and is longer than three characters;
- any line containing ``%``, ``to ``, ``increased`` or ``Adds`` is a modifier.

Parsing never fails; unrecognised text yields the degraded defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

UNKNOWN_NAME = "Unknown Item"
UNKNOWN_TYPE = "Unknown"

_RARITY_MARKER = "Rarity:"
_SEPARATOR_MARKER = "---"
_MODIFIER_MARKERS = ("%", "to ", "increased", "Adds")


@dataclass(frozen=True)
class ParsedItem:
    """Structured view of one item's text."""

    name: str
    item_type: str
    modifiers: Tuple[str, ...] = field(default_factory=tuple)
    raw_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the client's field names."""
        return {
            "name": self.name,
            "type": self.item_type,
            "mods": list(self.modifiers),
            "rawText": self.raw_text,
        }


def parse_item_text(raw_text: str) -> ParsedItem:
    """Parse raw item text into a :class:`ParsedItem`."""
    lines = [line for line in (raw_text or "").split("\n") if line.strip()]

    return ParsedItem(
        name=lines[0].strip() if lines else UNKNOWN_NAME,
        item_type=_extract_item_type(lines),
        modifiers=tuple(_extract_modifiers(lines)),
        raw_text=raw_text or "",
    )


def _extract_item_type(lines: List[str]) -> str:
    for line in lines:
        if _RARITY_MARKER in line or _SEPARATOR_MARKER in line:
            continue
        if ":" not in line and len(line) > 3:
            return line.strip()
    return UNKNOWN_TYPE


def _extract_modifiers(lines: List[str]) -> List[str]:
    return [
        line.strip()
        for line in lines
        if any(marker in line for marker in _MODIFIER_MARKERS)
    ]
