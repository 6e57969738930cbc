"""markpatch core: marker grammar, sentinel predicate and selection validator."""

from __future__ import annotations

from typing import Iterable, List

from .models import MarkerSet, ValidationResult

DEFAULT_MARKERS = MarkerSet()

HORIZONTAL_WS = " \t"


def trim_horizontal(line: str) -> str:
    return line.strip(HORIZONTAL_WS)


def is_sentinel_line(line: str, markers: MarkerSet = DEFAULT_MARKERS) -> bool:
    return trim_horizontal(line) == markers.mark_out


def is_readme_name(name: str) -> bool:
    return name.lower().startswith("readme")


def remove_literal(line: str, token: str) -> str:
    """Remove the first literal occurrence of token."""
    pos = line.find(token)
    if pos < 0:
        return line
    return line[:pos] + line[pos + len(token):]


def contains_any(text: str, tokens: Iterable[str]) -> bool:
    return any(t in text for t in tokens)


def split_lines(text: str) -> List[str]:
    """Split on LF the way a line-oriented reader does: a final newline ends the
    last line instead of opening a new empty one."""
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


def join_lines(lines: List[str]) -> str:
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


class MarkerValidator:
    """
    Validates selection placement before a file is rewritten:
      - no nested selection start
      - no selection end without an open selection
      - no plain IN marker inside an open selection
      - as many starts as ends
    """

    def __init__(self, markers: MarkerSet = DEFAULT_MARKERS):
        self.markers = markers

    def needs_validation(self, text: str) -> bool:
        return contains_any(text, self.markers.selection_tokens())

    def validate(self, lines: Iterable[str]) -> ValidationResult:
        m = self.markers
        in_sel = False
        starts = 0
        ends = 0
        for lineno, line in enumerate(lines, start=1):
            if m.sel_start in line:
                starts += 1
                if in_sel:
                    return ValidationResult.invalid("nested selection start", lineno)
                in_sel = True
            if m.sel_end in line:
                ends += 1
                if not in_sel:
                    return ValidationResult.invalid("selection end before start", lineno)
                in_sel = False
            if in_sel and m.mark_in in line:
                return ValidationResult.invalid(
                    f"basic marker {m.mark_in} found inside selection", lineno
                )
        if starts != ends:
            return ValidationResult.invalid(
                f"unmatched selection markers (start={starts} end={ends})"
            )
        return ValidationResult.ok()
