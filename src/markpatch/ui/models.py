"""markpatch UI: Qt models for aligned patch rendering and run logs."""

from __future__ import annotations

import json
import time
from typing import List, Dict, Any, Optional, Sequence

from PyQt6.QtCore import Qt, QAbstractTableModel, QModelIndex
from PyQt6.QtGui import QBrush, QColor

from ..core.models import Hunk, PatchRecord

DISPLAY = Qt.ItemDataRole.DisplayRole

# Log entry fields that name what an entry is about, most specific first.
LOG_TARGET_FIELDS = ("file", "dir", "source", "backup", "item", "project", "url")


class _RowTableModel(QAbstractTableModel):
    """Flat list of dict rows under a fixed header."""

    HEADER: Sequence[str] = ()

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        super().__init__()
        self._rows: List[Dict[str, Any]] = rows or []

    def rowCount(self, parent=QModelIndex()) -> int:
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent=QModelIndex()) -> int:
        return 0 if parent.isValid() else len(self.HEADER)

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = DISPLAY):
        if role != DISPLAY:
            return None
        if orientation == Qt.Orientation.Horizontal:
            return self.HEADER[section] if 0 <= section < len(self.HEADER) else ""
        return str(section + 1)

    def row_at(self, index: QModelIndex) -> Dict[str, Any]:
        return self._rows[index.row()]

    def set_rows(self, rows: List[Dict[str, Any]]) -> None:
        self.beginResetModel()
        self._rows = rows
        self.endResetModel()


class DiffAlignmentModel(_RowTableModel):
    """
    One patch as aligned rows:
      0 baseline line number   1 baseline text
      2 effective line number  3 effective text
    Replaced/inserted/removed lines are paired up inside each change block.
    """

    HEADER = ("Base", "Baseline", "Eff", "Effective")
    TEXT_KEYS = ("old_no", "old_text", "new_no", "new_text")

    KIND_CONTEXT = "context"
    KIND_ADD = "add"
    KIND_DEL = "del"
    KIND_MOD = "mod"
    KIND_HUNK = "hunk"

    def __init__(self):
        super().__init__()
        white = QBrush(QColor(255, 255, 255))
        self._gutter = QBrush(QColor(242, 242, 242))
        self._fg = QBrush(QColor(20, 20, 20))
        # (baseline column, effective column) per row kind
        self._fills = {
            self.KIND_CONTEXT: (white, white),
            self.KIND_HUNK: (QBrush(QColor(248, 248, 248)),) * 2,
            self.KIND_ADD: (white, QBrush(QColor(228, 246, 228))),
            self.KIND_DEL: (QBrush(QColor(246, 228, 228)), white),
            self.KIND_MOD: (QBrush(QColor(252, 246, 220)),) * 2,
        }

    def data(self, index: QModelIndex, role: int = DISPLAY):
        if not index.isValid():
            return None
        col = index.column()
        row = self.row_at(index)
        kind = row.get("kind", self.KIND_CONTEXT)

        if role == DISPLAY:
            return row.get(self.TEXT_KEYS[col], "")
        if role == Qt.ItemDataRole.TextAlignmentRole:
            horiz = Qt.AlignmentFlag.AlignRight if col in (0, 2) else Qt.AlignmentFlag.AlignLeft
            return int(horiz | Qt.AlignmentFlag.AlignVCenter)
        if role == Qt.ItemDataRole.BackgroundRole:
            if col in (0, 2):
                return self._gutter
            base_fill, eff_fill = self._fills.get(kind, self._fills[self.KIND_CONTEXT])
            return base_fill if col == 1 else eff_fill
        if role == Qt.ItemDataRole.ForegroundRole:
            return self._fg
        if role == Qt.ItemDataRole.ToolTipRole and kind == self.KIND_HUNK:
            return row.get("old_text", "")
        if role == Qt.ItemDataRole.UserRole:
            return row
        return None

    def build_from_record(self, rec: PatchRecord) -> None:
        rows: List[Dict[str, Any]] = []
        for h in rec.hunks:
            rows.extend(self._hunk_rows(h))
        self.set_rows(rows)

    def _hunk_rows(self, h: Hunk) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = [
            {"old_text": h.header, "new_text": h.header, "kind": self.KIND_HUNK}
        ]
        old_ln, new_ln = h.old_start, h.new_start
        removed: List[str] = []
        added: List[str] = []

        def pair_block() -> None:
            nonlocal old_ln, new_ln
            for i in range(max(len(removed), len(added))):
                row: Dict[str, Any] = {}
                if i < len(removed):
                    row.update(old_no=str(old_ln), old_text=removed[i])
                    old_ln += 1
                if i < len(added):
                    row.update(new_no=str(new_ln), new_text=added[i])
                    new_ln += 1
                if "old_text" in row and "new_text" in row:
                    row["kind"] = self.KIND_MOD
                else:
                    row["kind"] = self.KIND_DEL if "old_text" in row else self.KIND_ADD
                rows.append(row)
            removed.clear()
            added.clear()

        for tag, text in h.lines:
            if tag == "-":
                removed.append(text)
            elif tag == "+":
                added.append(text)
            else:
                pair_block()
                rows.append({
                    "old_no": str(old_ln), "old_text": text,
                    "new_no": str(new_ln), "new_text": text,
                    "kind": self.KIND_CONTEXT,
                })
                old_ln += 1
                new_ln += 1
        pair_block()
        return rows


class LogTableModel(_RowTableModel):
    """Structured run-log entries (see RunResult.add_log); extra fields go to the tooltip."""

    HEADER = ("Time", "Level", "Target", "Message")

    def data(self, index: QModelIndex, role: int = DISPLAY):
        if not index.isValid():
            return None
        entry = self.row_at(index)
        col = index.column()

        if role == DISPLAY:
            if col == 0:
                return time.strftime("%H:%M:%S", time.localtime(entry.get("ts", 0.0)))
            if col == 1:
                return entry.get("level", "")
            if col == 2:
                return next((str(entry[k]) for k in LOG_TARGET_FIELDS if entry.get(k)), "")
            return entry.get("message", "")
        if role == Qt.ItemDataRole.ForegroundRole:
            level = entry.get("level")
            if level == "ERROR":
                return QBrush(QColor(170, 20, 20))
            if level == "WARN":
                return QBrush(QColor(150, 100, 0))
            return None
        if role == Qt.ItemDataRole.ToolTipRole:
            extra = {k: v for k, v in entry.items() if k not in ("ts", "level", "message")}
            return json.dumps(extra, indent=2, default=str) if extra else None
        return None

    def extend(self, entries: List[Dict[str, Any]]) -> None:
        if not entries:
            return
        first = len(self._rows)
        self.beginInsertRows(QModelIndex(), first, first + len(entries) - 1)
        self._rows.extend(entries)
        self.endInsertRows()

    def append(self, entry: Dict[str, Any]) -> None:
        self.extend([entry])


class KeyValueTableModel(_RowTableModel):
    HEADER = ("Field", "Value")

    def data(self, index: QModelIndex, role: int = DISPLAY):
        if not index.isValid() or role != DISPLAY:
            return None
        row = self.row_at(index)
        return row["k"] if index.column() == 0 else row["v"]
