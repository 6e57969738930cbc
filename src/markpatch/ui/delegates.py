"""markpatch UI: item delegates (marker emphasis)."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import Qt, QModelIndex
from PyQt6.QtGui import QBrush, QColor, QFont, QPainter, QPen
from PyQt6.QtWidgets import QStyledItemDelegate, QStyle

from ..core.models import MarkerSet


class MarkerEmphasisDelegate(QStyledItemDelegate):
    """
    Draws text columns with marker tokens emphasized. Backgrounds still come
    from the model. Spans are cached per text.
    """

    def __init__(self, markers: MarkerSet, parent=None):
        super().__init__(parent)
        self._cache: Dict[str, List[Tuple[int, int, str]]] = {}
        self._tokens = [
            (markers.sel_start, "sel"),
            (markers.sel_end, "sel"),
            (markers.mark_in, "in"),
            (markers.mark_out, "out"),
        ]
        self._styles = {
            "out": (QColor(150, 30, 30), True),
            "in": (QColor(30, 45, 120), True),
            "sel": (QColor(60, 0, 100), True),
        }

    def _tokenize(self, text: str) -> List[Tuple[int, int, str]]:
        if text in self._cache:
            return self._cache[text]
        spans: List[Tuple[int, int, str]] = []
        taken = [False] * len(text)
        for token, kind in self._tokens:
            if not token:
                continue
            start = text.find(token)
            while start >= 0:
                end = start + len(token)
                if not any(taken[start:end]):
                    spans.append((start, end, kind))
                    for i in range(start, end):
                        taken[i] = True
                start = text.find(token, end)
        spans.sort()
        self._cache[text] = spans
        return spans

    def _style_at(self, spans: List[Tuple[int, int, str]], pos: int) -> Optional[str]:
        for s, e, k in spans:
            if s <= pos < e:
                return k
        return None

    def paint(self, painter: QPainter, option, index: QModelIndex) -> None:
        painter.save()

        bg = index.data(Qt.ItemDataRole.BackgroundRole)
        selected = bool(option.state & QStyle.StateFlag.State_Selected)
        if selected:
            painter.fillRect(option.rect, option.palette.highlight())
        elif isinstance(bg, QBrush):
            painter.fillRect(option.rect, bg)

        text = index.data(Qt.ItemDataRole.DisplayRole)
        text = "" if text is None else str(text)

        if selected:
            base_pen = QPen(option.palette.highlightedText().color())
        else:
            base_pen = QPen(option.palette.text().color())
        painter.setPen(base_pen)
        painter.setFont(option.font)
        painter.setClipRect(option.rect)

        fm = painter.fontMetrics()
        x = option.rect.x() + 6
        baseline = option.rect.y() + (option.rect.height() + fm.ascent() - fm.descent()) // 2

        spans = self._tokenize(text) if index.column() in (1, 3) else []
        if not spans or selected:
            elided = fm.elidedText(text, Qt.TextElideMode.ElideRight, option.rect.width() - 10)
            painter.drawText(x, baseline, elided)
            painter.restore()
            return

        bounds = sorted({0, len(text)} | {s for s, _e, _k in spans} | {e for _s, e, _k in spans})
        cur_x = x
        for s, e in zip(bounds, bounds[1:]):
            seg = text[s:e]
            k = self._style_at(spans, s)
            if k:
                col, bold = self._styles[k]
                f = QFont(option.font)
                f.setBold(bold)
                painter.setPen(QPen(col))
                painter.setFont(f)
            else:
                painter.setPen(base_pen)
                painter.setFont(option.font)
            painter.drawText(cur_x, baseline, seg)
            cur_x += painter.fontMetrics().horizontalAdvance(seg)

        painter.restore()
