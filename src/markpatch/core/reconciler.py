"""markpatch core: rebuild effective files from edit + baseline trees and export patches."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Set

from .config import BACKUP_SUFFIX
from .diffgen import DiffGenerator
from .errors import EXIT_MISSING_BASELINE_ROOT, EXIT_MISSING_EDIT_ROOT, PreconditionError
from .filestore import FileStore
from .markers import DEFAULT_MARKERS, is_readme_name, is_sentinel_line, join_lines, split_lines
from .models import ExportResult, MarkerSet, PatchRecord


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def reconcile_lines(
    baseline: Sequence[str],
    edit: Sequence[str],
    markers: MarkerSet = DEFAULT_MARKERS,
) -> List[str]:
    """
    Index-aligned merge. Both sequences are padded with "" to the longer length;
    a sentinel edit line takes the baseline line, any other edit line wins.
    """
    n = max(len(baseline), len(edit))
    out: List[str] = []
    for i in range(n):
        e = _strip_cr(edit[i]) if i < len(edit) else ""
        g = _strip_cr(baseline[i]) if i < len(baseline) else ""
        out.append(g if is_sentinel_line(e, markers) else e)
    return out


def effective_text(baseline_text: str, edit_text: str, markers: MarkerSet = DEFAULT_MARKERS) -> str:
    return join_lines(reconcile_lines(split_lines(baseline_text), split_lines(edit_text), markers))


def patch_file_name(rel_path: str) -> str:
    return rel_path.replace("/", "_").replace(" ", "_") + ".patch"


class PatchExporter:
    """
    Export workflow. Reads the edit tree and the baseline trees, writes patches
    under the output root, and never touches the edit tree.
    """

    def __init__(
        self,
        edit_root: Path,
        baseline_roots: Sequence[Path],
        output_root: Path,
        markers: MarkerSet = DEFAULT_MARKERS,
        store: Optional[FileStore] = None,
        differ: Optional[DiffGenerator] = None,
        backup_suffix: str = BACKUP_SUFFIX,
    ):
        self.edit_root = Path(edit_root)
        self.baseline_roots = [Path(r) for r in baseline_roots]
        self.output_root = Path(output_root)
        self.markers = markers
        self.store = store or FileStore()
        self.differ = differ or DiffGenerator()
        self.backup_suffix = backup_suffix

    # ---------------- Preconditions ----------------

    def check_preconditions(self) -> None:
        if not self.edit_root.is_dir():
            raise PreconditionError(
                f"Directory {self.edit_root} does not exist", EXIT_MISSING_EDIT_ROOT
            )
        if not self.baseline_roots:
            raise PreconditionError("No baseline root configured", EXIT_MISSING_BASELINE_ROOT)
        for root in self.baseline_roots:
            if not root.is_dir():
                raise PreconditionError(
                    f"Directory {root} does not exist", EXIT_MISSING_BASELINE_ROOT
                )

    # ---------------- Projects ----------------

    def project_names(self) -> List[str]:
        return sorted(p.name for p in self.edit_root.iterdir() if p.is_dir())

    def skip_reason(self, name: str) -> Optional[str]:
        if name.endswith(self.backup_suffix):
            return "backup"
        if (self.edit_root / (name + self.backup_suffix)).is_dir():
            return "sibling backup exists"
        if not any((root / name).is_dir() for root in self.baseline_roots):
            return "no original repo"
        return None

    # ---------------- Export ----------------

    def export(self) -> ExportResult:
        self.check_preconditions()
        res = ExportResult(success=False, overall_message="Export failed.")
        out_mark = self.markers.mark_out

        if not self.store.tree_contains(self.edit_root, out_mark):
            res.success = True
            res.overall_message = f"No occurrences of '{out_mark}' found under {self.edit_root}; nothing to do."
            res.info(res.overall_message)
            return res

        self.output_root.mkdir(parents=True, exist_ok=True)
        res.info(
            "Starting patch export (edit -> baselines).",
            edit=str(self.edit_root),
            baselines=[str(r) for r in self.baseline_roots],
            output=str(self.output_root),
        )

        projects = 0
        for name in self.project_names():
            reason = self.skip_reason(name)
            if reason:
                res.info(f"Skipping project ({reason})", project=name)
                continue
            projects += 1
            self.export_project(name, res)

        counts = {"add": 0, "change": 0, "delete": 0}
        for rec in res.patches:
            counts[rec.operation] += 1
        res.summary.update({
            "projects": projects,
            "patches": len(res.patches),
            "added": counts["add"],
            "changed": counts["change"],
            "deleted": counts["delete"],
        })
        res.success = True
        res.overall_message = f"All differences exported as .patch files in {self.output_root}"
        return res

    def export_project(self, name: str, res: ExportResult) -> None:
        edit_dir = self.edit_root / name
        base_dirs = [root / name for root in self.baseline_roots if (root / name).is_dir()]
        output_dir = self.output_root / name
        output_dir.mkdir(parents=True, exist_ok=True)
        res.info("Processing project", project=name)

        for edit_file in self.store.iter_files(edit_dir, skip_vcs=True):
            if is_readme_name(edit_file.name):
                continue
            rel = edit_file.relative_to(edit_dir).as_posix()
            base_file = self._find_baseline(base_dirs, rel)
            try:
                self._export_file(name, rel, edit_file, base_file, output_dir, res)
            except OSError as e:
                res.per_file[f"{name}/{rel}"] = {"status": "Failed", "error": str(e)}
                res.error("Could not export file.", project=name, file=rel, error=str(e))

        seen: Set[str] = set()
        for base_dir in base_dirs:
            for base_file in self.store.iter_files(base_dir, skip_vcs=True):
                if is_readme_name(base_file.name):
                    continue
                rel = base_file.relative_to(base_dir).as_posix()
                if rel in seen:
                    continue
                seen.add(rel)
                if (edit_dir / rel).is_file():
                    continue
                try:
                    self._export_delete(name, rel, base_file, output_dir, res)
                except OSError as e:
                    res.per_file[f"{name}/{rel}"] = {"status": "Failed", "error": str(e)}
                    res.error("Could not export delete patch.", project=name, file=rel, error=str(e))

        res.info("Finished project", project=name)

    def _find_baseline(self, base_dirs: Sequence[Path], rel: str) -> Optional[Path]:
        for d in base_dirs:
            candidate = d / rel
            if candidate.is_file():
                return candidate
        return None

    def _export_file(
        self,
        project: str,
        rel: str,
        edit_file: Path,
        base_file: Optional[Path],
        output_dir: Path,
        res: ExportResult,
    ) -> None:
        key = f"{project}/{rel}"
        if base_file is None:
            if not self.store.is_text_file(edit_file):
                res.per_file[key] = {"status": "Skipped (binary)"}
                res.warn("SKIP binary-only-in-edit", project=project, file=rel)
                return
            diff = self.differ.labelled_diff("", self.store.read_text(edit_file), rel)
            self._write_patch(project, rel, "add", diff, output_dir, res)
            return

        if not self.store.is_text_file(base_file) or not self.store.is_text_file(edit_file):
            res.per_file[key] = {"status": "Skipped (binary)"}
            res.warn("SKIP (binary)", project=project, file=rel)
            return

        base_text = self.store.read_text(base_file)
        edit_text = self.store.read_text(edit_file)
        effective = effective_text(base_text, edit_text, self.markers)

        if not effective and (base_text or edit_text):
            res.per_file[key] = {"status": "Failed", "error": "processed file empty"}
            res.error("Processed file empty", project=project, file=rel)
            return

        if effective == base_text:
            res.per_file[key] = {"status": "No change"}
            res.info("No change", project=project, file=rel)
            return

        diff = self.differ.labelled_diff(base_text, effective, rel)
        self._write_patch(project, rel, "change", diff, output_dir, res)

    def _export_delete(self, project: str, rel: str, base_file: Path, output_dir: Path, res: ExportResult) -> None:
        key = f"{project}/{rel}"
        if not self.store.contains(base_file, self.markers.mark_out):
            res.info(
                f"Skipping delete patch (no {self.markers.mark_out} in repo file)",
                project=project, file=rel,
            )
            return
        if not self.store.is_text_file(base_file):
            res.per_file[key] = {"status": "Skipped (binary)"}
            res.warn("SKIP binary-only-in-repo", project=project, file=rel)
            return
        diff = self.differ.labelled_diff(self.store.read_text(base_file), "", rel)
        self._write_patch(project, rel, "delete", diff, output_dir, res)

    def _write_patch(self, project: str, rel: str, op: str, diff: str, output_dir: Path, res: ExportResult) -> None:
        key = f"{project}/{rel}"
        if not diff:
            res.per_file[key] = {"status": "No change"}
            res.info("Empty diff; no patch written", project=project, file=rel, operation=op)
            return
        patch_path = output_dir / patch_file_name(rel)
        self.store.write_text(patch_path, diff)
        rec = PatchRecord(
            project=project,
            rel_path=rel,
            operation=op,
            patch_path=patch_path,
            text=diff,
            hunks=self.differ.hunks_from_diff(diff),
        )
        res.patches.append(rec)
        res.per_file[key] = {"status": "Patched", "operation": op, "patch": str(patch_path)}
        res.info(f"Patch ({op}) created", project=project, file=rel, patch=str(patch_path))
