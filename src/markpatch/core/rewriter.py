"""markpatch core: rewrite marked files into kept lines plus sentinels."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from .errors import MarkerValidationError
from .filestore import FileStore
from .markers import DEFAULT_MARKERS, MarkerValidator, join_lines, remove_literal, split_lines
from .models import MarkerSet


class MarkerRewriter:
    """
    Per-line rule, top to bottom, carrying one bit of selection state:
      - selection start/end lines lose the token and are kept
      - lines inside a selection are kept verbatim
      - lines with the IN marker lose the marker and are kept
      - everything else becomes the OUT sentinel
    """

    def __init__(self, markers: MarkerSet = DEFAULT_MARKERS, store: Optional[FileStore] = None):
        self.markers = markers
        self.store = store or FileStore()
        self.validator = MarkerValidator(markers)

    def rewrite_lines(self, lines: List[str]) -> List[str]:
        m = self.markers
        out: List[str] = []
        in_sel = False
        for line in lines:
            has_start = m.sel_start in line
            has_end = m.sel_end in line
            if has_start or has_end:
                if has_start:
                    line = remove_literal(line, m.sel_start)
                    in_sel = True
                if has_end:
                    line = remove_literal(line, m.sel_end)
                    in_sel = False
                out.append(line)
            elif in_sel:
                out.append(line)
            elif m.mark_in in line:
                out.append(remove_literal(line, m.mark_in))
            else:
                out.append(m.mark_out)
        return out

    def rewrite_text(self, text: str) -> str:
        return join_lines(self.rewrite_lines(split_lines(text)))

    def check_file(self, path: Path, text: str) -> None:
        """Raise MarkerValidationError when the selection structure is malformed."""
        if not self.validator.needs_validation(text):
            return
        result = self.validator.validate(split_lines(text))
        if not result.valid:
            raise MarkerValidationError(path, result.reason, result.line_number)

    def rewrite_file(self, path: Path, text: Optional[str] = None) -> List[str]:
        """Validate, rewrite and atomically replace one file. Returns the new lines."""
        path = Path(path)
        if text is None:
            text = self.store.read_text(path)
        self.check_file(path, text)
        new_lines = self.rewrite_lines(split_lines(text))
        self.store.atomic_write_text(path, join_lines(new_lines))
        return new_lines
