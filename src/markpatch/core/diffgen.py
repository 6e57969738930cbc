"""markpatch core: render unified diffs between two texts."""

from __future__ import annotations

import difflib
import re
from typing import List

from .models import Hunk

NO_NEWLINE = "\\ No newline at end of file\n"


def keep_ends(text: str) -> List[str]:
    # LF only; str.splitlines would also break on \r, \f and friends.
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


class DiffGenerator:
    """
    Unified diffs in the layout `diff -u --label a/<rel> --label b/<rel>` produces:
    no timestamps, `\\ No newline at end of file` after an unterminated last line.
    """

    RE_HUNK = re.compile(r"^@@\s+\-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@(.*)$")

    def __init__(self, context_lines: int = 3):
        self.context_lines = context_lines

    def unified_diff(self, old_text: str, new_text: str, old_label: str, new_label: str) -> str:
        old_lines = keep_ends(old_text)
        new_lines = keep_ends(new_text)
        if old_lines == new_lines:
            return ""

        buf: List[str] = []
        for line in difflib.unified_diff(
            old_lines,
            new_lines,
            fromfile=old_label,
            tofile=new_label,
            n=self.context_lines,
            lineterm="\n",
        ):
            if line.endswith("\n"):
                buf.append(line)
            else:
                buf.append(line + "\n" + NO_NEWLINE)
        return "".join(buf)

    def labelled_diff(self, old_text: str, new_text: str, rel_path: str) -> str:
        return self.unified_diff(old_text, new_text, f"a/{rel_path}", f"b/{rel_path}")

    def hunks_from_diff(self, diff_text: str) -> List[Hunk]:
        """Split rendered diff text back into hunks for display."""
        hunks: List[Hunk] = []
        cur = None
        for raw in diff_text.split("\n"):
            m = self.RE_HUNK.match(raw)
            if m:
                cur = Hunk(
                    old_start=int(m.group(1)),
                    old_count=int(m.group(2)) if m.group(2) is not None else 1,
                    new_start=int(m.group(3)),
                    new_count=int(m.group(4)) if m.group(4) is not None else 1,
                    header=raw,
                )
                hunks.append(cur)
                continue
            if cur is None or not raw:
                continue
            tag = raw[0]
            if tag in (" ", "-", "+"):
                cur.lines.append((tag, raw[1:].rstrip("\r")))
        return hunks
