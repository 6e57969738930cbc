"""markpatch UI: main window."""

from __future__ import annotations

import time
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QStandardItemModel, QStandardItem, QFont
from PyQt6.QtWidgets import (
    QMainWindow, QToolBar, QStatusBar, QSplitter,
    QListView, QTableView, QDockWidget,
    QWidget, QVBoxLayout, QFormLayout, QCheckBox,
    QFileDialog, QMessageBox, QHeaderView, QAbstractItemView, QStyle
)

from ..core.backup import BackupManager
from ..core.config import WorkspaceConfig
from ..core.errors import MarkerValidationError, MarkPatchError
from ..core.filestore import FileStore
from ..core.models import PatchRecord, RunResult
from ..core.reconciler import PatchExporter
from ..core.retention import EditTreePruner
from ..core.selftests import MarkPatchSelfTests
from ..core.sources import seed_from_local

from .models import DiffAlignmentModel, LogTableModel
from .delegates import MarkerEmphasisDelegate
from .dialogs import DiagnosticsDialog, RunSummaryDialog


class MainWindow(QMainWindow):
    def __init__(self, config: WorkspaceConfig):
        super().__init__()
        self.setWindowTitle("markpatch")
        self.resize(1200, 720)

        self.config = config
        self.patches: List[PatchRecord] = []

        self.setFont(QFont("Consolas", 10))

        self._build_toolbar()
        self._build_central()
        self._build_docks()
        self._build_status()

        self._refresh_actions()
        self._log("INFO", "Ready.", workspace=str(self.config.workspace))

    # ---------------- UI Construction ----------------

    def _build_toolbar(self):
        tb = QToolBar("Main")
        tb.setMovable(False)
        self.addToolBar(tb)

        self.act_open = QAction("Open Workspace", self)
        self.act_open.triggered.connect(self._open_workspace)

        self.act_seed = QAction("Seed", self)
        self.act_seed.triggered.connect(self._run_seed)

        self.act_prune = QAction("Prune", self)
        self.act_prune.triggered.connect(self._run_prune)

        self.act_export = QAction("Export", self)
        self.act_export.triggered.connect(self._run_export)

        self.act_backup = QAction("Backup", self)
        self.act_backup.triggered.connect(self._run_backup)

        self.act_restore = QAction("Restore", self)
        self.act_restore.triggered.connect(self._run_restore)

        self.act_options = QAction("Options", self)
        self.act_options.triggered.connect(lambda: self.opt_dock.setVisible(not self.opt_dock.isVisible()))

        for a in [
            self.act_open, self.act_seed, self.act_prune, self.act_export,
            self.act_backup, self.act_restore, self.act_options,
        ]:
            tb.addAction(a)

    def _build_central(self):
        splitter = QSplitter()
        splitter.setOrientation(Qt.Orientation.Horizontal)

        self.file_list = QListView()
        self.file_list.setMinimumWidth(260)
        self.file_list.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.file_model = QStandardItemModel()
        self.file_list.setModel(self.file_model)
        self.file_list.selectionModel().selectionChanged.connect(self._on_file_selected)

        self.diff_table = QTableView()
        self.diff_model = DiffAlignmentModel()
        self.diff_table.setModel(self.diff_model)
        self.diff_table.setWordWrap(False)
        self.diff_table.setHorizontalScrollMode(QAbstractItemView.ScrollMode.ScrollPerPixel)
        self.diff_table.setVerticalScrollMode(QAbstractItemView.ScrollMode.ScrollPerPixel)
        self.diff_table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.diff_table.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.diff_table.setShowGrid(False)

        hdr = self.diff_table.horizontalHeader()
        hdr.setSectionResizeMode(QHeaderView.ResizeMode.Interactive)
        self.diff_table.setColumnWidth(0, 60)
        self.diff_table.setColumnWidth(2, 60)
        hdr.setSectionResizeMode(1, QHeaderView.ResizeMode.Stretch)
        hdr.setSectionResizeMode(3, QHeaderView.ResizeMode.Stretch)

        self.marker_delegate = MarkerEmphasisDelegate(self.config.markers, self.diff_table)
        self.diff_table.setItemDelegateForColumn(1, self.marker_delegate)
        self.diff_table.setItemDelegateForColumn(3, self.marker_delegate)

        splitter.addWidget(self.file_list)
        splitter.addWidget(self.diff_table)
        splitter.setSizes([300, 900])
        self.setCentralWidget(splitter)

    def _build_docks(self):
        self.log_dock = QDockWidget("Log", self)
        self.log_dock.setAllowedAreas(Qt.DockWidgetArea.BottomDockWidgetArea)

        log_widget = QWidget()
        log_layout = QVBoxLayout(log_widget)
        log_layout.setContentsMargins(4, 4, 4, 4)
        self.log_table = QTableView()
        self.log_model = LogTableModel()
        self.log_table.setModel(self.log_model)
        self.log_table.horizontalHeader().setStretchLastSection(True)
        self.log_table.setWordWrap(False)
        self.log_table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        log_layout.addWidget(self.log_table)
        self.log_dock.setWidget(log_widget)
        self.addDockWidget(Qt.DockWidgetArea.BottomDockWidgetArea, self.log_dock)

        self.opt_dock = QDockWidget("Options", self)
        self.opt_dock.setAllowedAreas(Qt.DockWidgetArea.RightDockWidgetArea)
        self.opt_dock.setVisible(False)
        opt_widget = QWidget()
        form = QFormLayout(opt_widget)
        form.setContentsMargins(8, 8, 8, 8)
        self.chk_git = QCheckBox("Use git/ baseline root")
        self.chk_git.setChecked(self.config.git_dir is not None)
        self.chk_local = QCheckBox("Use local/ baseline root")
        self.chk_local.setChecked(self.config.local_dir is not None)
        self.chk_force_backup = QCheckBox("Force backup (replace existing snapshots)")
        self.chk_mime = QCheckBox("Probe MIME type with `file`")
        self.chk_mime.setChecked(self.config.use_mime_probe)
        for chk in (self.chk_git, self.chk_local, self.chk_force_backup, self.chk_mime):
            form.addRow(chk)
        self.opt_dock.setWidget(opt_widget)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, self.opt_dock)

        menu = self.menuBar().addMenu("Help")
        act_selftests = QAction("Run Self Tests", self)
        act_selftests.triggered.connect(self._run_selftests_ui)
        menu.addAction(act_selftests)

    def _build_status(self):
        self.setStatusBar(QStatusBar())
        self._set_status(f"Workspace: {self.config.workspace}", state="Idle")

    # ---------------- Utilities ----------------

    def _effective_config(self) -> WorkspaceConfig:
        cfg = replace(self.config, use_mime_probe=self.chk_mime.isChecked())
        if not self.chk_git.isChecked():
            cfg = cfg.without_git()
        if not self.chk_local.isChecked():
            cfg = cfg.without_local()
        return cfg

    def _store(self, cfg: WorkspaceConfig) -> FileStore:
        return FileStore(use_mime_probe=cfg.use_mime_probe)

    def _set_status(self, summary: str, state: str, warn: str = "") -> None:
        self.statusBar().showMessage(f"{summary}    |    State: {state}    |    {warn}".strip(" |"))

    def _log(self, level: str, message: str, **fields: Any) -> None:
        entry = {"ts": time.time(), "level": level, "message": message}
        entry.update(fields)
        self.log_model.append(entry)

    def _absorb(self, res: RunResult) -> None:
        self.log_model.extend(res.logs)
        if any(e.get("level") in ("WARN", "ERROR") for e in res.logs):
            self.log_dock.setVisible(True)
        self.log_table.scrollToBottom()

    def _confirm(self, title: str):
        def ask(prompt: str) -> bool:
            return QMessageBox.question(
                self, title, prompt,
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            ) == QMessageBox.StandardButton.Yes
        return ask

    def _refresh_actions(self):
        has_edit = self.config.edit_root.is_dir()
        self.act_prune.setEnabled(has_edit)
        self.act_export.setEnabled(has_edit)
        self.act_backup.setEnabled(has_edit)
        self.act_restore.setEnabled(has_edit)
        self.act_seed.setEnabled(bool(self.config.local_root and self.config.local_root.is_dir()))

    def _rebuild_file_list(self):
        self.file_model.clear()
        self.diff_model.set_rows([])
        icons = {
            "add": self.style().standardIcon(QStyle.StandardPixmap.SP_FileDialogNewFolder),
            "change": self.style().standardIcon(QStyle.StandardPixmap.SP_FileIcon),
            "delete": self.style().standardIcon(QStyle.StandardPixmap.SP_TrashIcon),
        }
        for idx, rec in enumerate(self.patches):
            it = QStandardItem(f"({rec.operation}) {rec.display_path}")
            it.setEditable(False)
            it.setIcon(icons.get(rec.operation, icons["change"]))
            it.setData(idx, Qt.ItemDataRole.UserRole)
            self.file_model.appendRow(it)
        if self.file_model.rowCount() > 0:
            self.file_list.setCurrentIndex(self.file_model.index(0, 0))

    # ---------------- Actions ----------------

    def _open_workspace(self):
        fn = QFileDialog.getExistingDirectory(self, "Select Workspace Folder", str(self.config.workspace))
        if not fn:
            return
        self.config = replace(self.config, workspace=Path(fn).resolve())
        self.patches = []
        self._rebuild_file_list()
        self._log("INFO", "Selected workspace.", workspace=str(self.config.workspace))
        self._set_status(f"Workspace: {self.config.workspace}", state="Ready")
        self._refresh_actions()

    def _run_guarded(self, title: str, action) -> Optional[RunResult]:
        try:
            res = action()
        except MarkerValidationError as e:
            self._log("ERROR", "Marker validation failed.", file=str(e.path), line=e.line_number, reason=e.reason)
            self._show_validation_failure(e)
            return None
        except MarkPatchError as e:
            self._log("ERROR", str(e))
            QMessageBox.critical(self, title, str(e))
            return None
        except OSError as e:
            self._log("ERROR", f"{title} failed.", error=str(e))
            QMessageBox.critical(self, title, f"{title} failed:\n{e}")
            return None
        self._absorb(res)
        self._set_status(res.overall_message, state=title)
        self._refresh_actions()
        return res

    def _run_seed(self):
        cfg = self._effective_config()
        self._run_guarded("Seed", lambda: seed_from_local(cfg, self._store(cfg)))

    def _run_prune(self):
        cfg = self._effective_config()
        prompt = (
            f"Prune rewrites every marked file under\n{cfg.edit_root}\n"
            "and deletes everything that carries no edits.\n\nContinue?"
        )
        if not self._confirm("Confirm Prune")(prompt):
            return
        res = self._run_guarded("Prune", lambda: EditTreePruner(cfg.edit_root, cfg.markers, self._store(cfg)).run())
        if res is not None:
            RunSummaryDialog(self, "Prune", res.overall_message, res.summary).exec()

    def _run_export(self):
        cfg = self._effective_config()
        exporter = PatchExporter(
            cfg.edit_root, cfg.baseline_roots(), cfg.output_root,
            cfg.markers, self._store(cfg), backup_suffix=cfg.backup_suffix,
        )
        res = self._run_guarded("Export", exporter.export)
        if res is None:
            return
        self.patches = list(res.patches)
        self._rebuild_file_list()
        self._set_status(res.overall_message, state="Exported", warn=f"{len(self.patches)} patch(es)")

    def _run_backup(self):
        cfg = self._effective_config()
        manager = BackupManager(cfg, self._store(cfg))
        force = self.chk_force_backup.isChecked()
        self._run_guarded("Backup", lambda: manager.backup(force=force, confirm=self._confirm("Confirm Backup")))

    def _run_restore(self):
        cfg = self._effective_config()
        manager = BackupManager(cfg, self._store(cfg))
        self._run_guarded("Restore", lambda: manager.restore(confirm=self._confirm("Confirm Restore")))

    def _run_selftests_ui(self):
        ok, report = MarkPatchSelfTests.run()
        if ok:
            QMessageBox.information(self, "Self Tests", "All self tests passed.\n\n" + report)
        else:
            QMessageBox.critical(self, "Self Tests", "Some self tests failed.\n\n" + report)

    def _on_file_selected(self):
        idxs = self.file_list.selectionModel().selectedIndexes()
        if not idxs:
            return
        rec = self.patches[idxs[0].data(Qt.ItemDataRole.UserRole)]
        self.diff_model.build_from_record(rec)
        self._set_status(f"Viewing: {rec.display_path} ({rec.operation})", state="View", warn=str(rec.patch_path))

    # ---------------- Diagnostics ----------------

    def _show_validation_failure(self, err: MarkerValidationError) -> None:
        m = self.config.markers
        where = f"line {err.line_number}" if err.line_number is not None else "end of file"
        DiagnosticsDialog(
            self,
            "Marker validation failed; nothing was rewritten",
            [f"File: {err.path}", f"Problem: {err.reason} ({where})"],
            [
                f"A {m.sel_start} was opened twice without {m.sel_end}",
                f"A {m.sel_end} appears with no open selection",
                f"A plain {m.mark_in} marker sits inside a selection",
            ],
            [
                "Open the file at the reported line and balance the selection markers",
                f"Remove {m.mark_in} markers from inside selections",
                "Run Prune again once the file is fixed",
            ],
            {"file": str(err.path), "line": err.line_number, "reason": err.reason},
        ).exec()
