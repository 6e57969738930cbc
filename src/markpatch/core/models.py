"""markpatch core: shared data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple, Dict, Any, Optional, FrozenSet


@dataclass(frozen=True)
class MarkerSet:
    """The four literal marker tokens. Matched as plain substrings, never as regexes."""
    mark_in: str = "##edit-in##"
    mark_out: str = "##edit-out##"
    sel_start: str = "##+edit-in+##"
    sel_end: str = "##-edit-in-##"

    def edit_tokens(self) -> Tuple[str, str, str]:
        return (self.mark_in, self.sel_start, self.sel_end)

    def selection_tokens(self) -> Tuple[str, str]:
        return (self.sel_start, self.sel_end)


@dataclass
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: List[Tuple[str, str]] = field(default_factory=list)  # (tag, text)


@dataclass
class ValidationResult:
    valid: bool
    reason: str = ""
    line_number: Optional[int] = None  # 1-based; None when detected at end of file

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def invalid(cls, reason: str, line_number: Optional[int] = None) -> "ValidationResult":
        return cls(valid=False, reason=reason, line_number=line_number)


@dataclass
class FileScan:
    """Pre-rewrite marker facts for one file under the edit root."""
    path: Path
    has_edit_marker: bool
    has_out_marker: bool
    has_selection: bool
    is_readme: bool = False

    @property
    def had_both(self) -> bool:
        return self.has_out_marker and self.has_edit_marker


@dataclass
class RetentionResult:
    kept_files: FrozenSet[Path] = frozenset()
    kept_dirs: FrozenSet[Path] = frozenset()
    reasons: Dict[Path, str] = field(default_factory=dict)

    def is_file_kept(self, path: Path) -> bool:
        return path in self.kept_files

    def is_dir_kept(self, path: Path) -> bool:
        return path in self.kept_dirs


@dataclass
class PatchRecord:
    project: str
    rel_path: str
    operation: str  # add/change/delete
    patch_path: Path
    text: str
    hunks: List[Hunk] = field(default_factory=list)

    @property
    def display_path(self) -> str:
        return f"{self.project}/{self.rel_path}"


@dataclass
class RunResult:
    success: bool
    overall_message: str
    per_file: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)
    logs: List[Dict[str, Any]] = field(default_factory=list)

    def add_log(self, level: str, message: str, **fields: Any) -> None:
        entry = {"ts": time.time(), "level": level, "message": message}
        entry.update(fields)
        self.logs.append(entry)

    def info(self, message: str, **fields: Any) -> None:
        self.add_log("INFO", message, **fields)

    def warn(self, message: str, **fields: Any) -> None:
        self.add_log("WARN", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.add_log("ERROR", message, **fields)


@dataclass
class PruneResult(RunResult):
    retention: Optional[RetentionResult] = None
    rewritten: List[Path] = field(default_factory=list)
    deleted_files: List[Path] = field(default_factory=list)
    removed_dirs: List[Path] = field(default_factory=list)


@dataclass
class ExportResult(RunResult):
    patches: List[PatchRecord] = field(default_factory=list)

    def patches_for(self, project: str) -> List[PatchRecord]:
        return [p for p in self.patches if p.project == project]
