"""markpatch UI: dialogs."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QTableView,
    QAbstractItemView, QWidget, QToolButton
)

from .models import KeyValueTableModel


def _kv_rows(data: Dict[str, Any]) -> List[Dict[str, str]]:
    return [
        {"k": str(k), "v": json.dumps(v, indent=2, default=str) if isinstance(v, (dict, list)) else str(v)}
        for k, v in data.items()
    ]


def _kv_table(data: Dict[str, Any]) -> QTableView:
    table = QTableView()
    table.setModel(KeyValueTableModel(_kv_rows(data)))
    table.horizontalHeader().setStretchLastSection(True)
    table.setWordWrap(False)
    table.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
    return table


def _close_row(dialog: QDialog) -> QHBoxLayout:
    btns = QHBoxLayout()
    btns.addStretch(1)
    close_btn = QPushButton("Close")
    close_btn.clicked.connect(dialog.accept)
    btns.addWidget(close_btn)
    return btns


class RunSummaryDialog(QDialog):
    def __init__(self, parent, title: str, message: str, summary: Dict[str, Any]):
        super().__init__(parent)
        self.setWindowTitle(title)
        self.resize(560, 360)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(f"<b>{message}</b>"))
        layout.addWidget(_kv_table(summary))
        layout.addLayout(_close_row(self))


class DiagnosticsDialog(QDialog):
    def __init__(self, parent, title: str, summary_lines: List[str], causes: List[str], fixes: List[str], engineering: Dict[str, Any]):
        super().__init__(parent)
        self.setWindowTitle("Diagnostics")
        self.resize(880, 460)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(f"<b>{title}</b>"))
        layout.addWidget(QLabel("<b>What happened:</b><br>" + "<br>".join(summary_lines)))
        if causes:
            layout.addWidget(QLabel("<b>Likely causes:</b><br>• " + "<br>• ".join(causes[:3])))
        if fixes:
            layout.addWidget(QLabel("<b>Recommended fixes:</b><br>• " + "<br>• ".join(fixes[:3])))

        toggle = QToolButton()
        toggle.setText("Engineering Details")
        toggle.setCheckable(True)
        toggle.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextOnly)

        details_widget = QWidget()
        details_layout = QVBoxLayout(details_widget)
        details_layout.setContentsMargins(0, 0, 0, 0)
        details_layout.addWidget(_kv_table(engineering))
        details_widget.setVisible(False)
        toggle.toggled.connect(details_widget.setVisible)

        layout.addWidget(toggle)
        layout.addWidget(details_widget)
        layout.addLayout(_close_row(self))
