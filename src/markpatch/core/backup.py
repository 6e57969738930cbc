"""markpatch core: snapshot and restore top-level edit-tree entries."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .config import WorkspaceConfig
from .errors import EXIT_MISSING_EDIT_ROOT, PreconditionError
from .filestore import FileStore
from .markers import is_readme_name
from .models import RunResult

Confirm = Callable[[str], bool]


def _always(prompt: str) -> bool:
    return True


class BackupManager:
    """
    Backups sit next to their source under the edit root as `<name><suffix>`.
    A plain backup moves an entry away only when it carries the OUT sentinel;
    a forced backup replaces any existing snapshot with a fresh copy.
    """

    def __init__(self, config: WorkspaceConfig, store: Optional[FileStore] = None):
        self.config = config
        self.store = store or FileStore(use_mime_probe=config.use_mime_probe)

    @property
    def suffix(self) -> str:
        return self.config.backup_suffix

    def _root(self) -> Path:
        root = self.config.edit_root
        if not root.is_dir():
            raise PreconditionError(f"Directory {root} not found", EXIT_MISSING_EDIT_ROOT)
        return root

    def plan_backup(self) -> List[Tuple[Path, Path]]:
        root = self._root()
        plan = []
        for src in sorted(root.iterdir()):
            if src.name.endswith(self.suffix) or is_readme_name(src.name):
                continue
            plan.append((src, src.with_name(src.name + self.suffix)))
        return plan

    def plan_restore(self) -> List[Tuple[Path, Path]]:
        root = self._root()
        plan = []
        for src in sorted(root.iterdir()):
            if not src.name.endswith(self.suffix) or src.name == self.suffix:
                continue
            plan.append((src, src.with_name(src.name[: -len(self.suffix)])))
        return plan

    def backup(self, force: bool = False, confirm: Confirm = _always) -> RunResult:
        res = RunResult(success=False, overall_message="Backup failed.")
        plan = self.plan_backup()
        if not plan:
            res.success = True
            res.overall_message = "No eligible files or directories found."
            res.info(res.overall_message)
            return res

        for src, dest in plan:
            res.info("Planned", source=src.name, backup=dest.name)
        if not confirm(f"Proceed with {len(plan)} item(s)?"):
            res.success = True
            res.overall_message = "Operation cancelled."
            res.info(res.overall_message)
            return res

        mark_out = self.config.markers.mark_out
        for src, dest in plan:
            try:
                if force:
                    if dest.exists() or dest.is_symlink():
                        self.store.remove(dest)
                    self.store.copy(src, dest)
                    res.per_file[src.name] = {"status": "Copied", "backup": dest.name}
                    res.info("Forced copy", source=src.name, backup=dest.name)
                    continue

                if dest.exists():
                    res.per_file[src.name] = {"status": "Skipped"}
                    res.info("Skipping; backup already exists", source=src.name, backup=dest.name)
                    continue

                if self.store.tree_contains(src, mark_out):
                    self.store.move(src, dest)
                    res.per_file[src.name] = {"status": "Moved", "backup": dest.name}
                    res.info("Moved", source=src.name, backup=dest.name)
                else:
                    res.per_file[src.name] = {"status": "Refused"}
                    res.warn(f"Refused; no {mark_out} found", source=src.name)
            except OSError as e:
                res.per_file[src.name] = {"status": "Failed", "error": str(e)}
                res.error("Backup failed for entry", source=src.name, error=str(e))

        res.success = True
        res.overall_message = "Done"
        return res

    def restore(self, confirm: Confirm = _always) -> RunResult:
        res = RunResult(success=False, overall_message="Restore failed.")
        plan = self.plan_restore()
        if not plan:
            res.success = True
            res.overall_message = f"No files or directories ending with {self.suffix} found."
            res.info(res.overall_message)
            return res

        for src, dest in plan:
            res.info("Planned restore", backup=src.name, target=dest.name)
        if not confirm(f"Are you sure you want to restore {len(plan)} item(s)?"):
            res.success = True
            res.overall_message = "Operation cancelled."
            res.info(res.overall_message)
            return res

        for src, dest in plan:
            if dest.exists() or dest.is_symlink():
                res.per_file[src.name] = {"status": "Skipped"}
                res.info("Skipping; destination already exists", backup=src.name, target=dest.name)
                continue
            try:
                self.store.move(src, dest)
            except OSError as e:
                res.per_file[src.name] = {"status": "Failed", "error": str(e)}
                res.error("Failed to restore", backup=src.name, error=str(e))
                continue
            res.per_file[src.name] = {"status": "Restored", "target": dest.name}
            res.info("Restored", backup=src.name, target=dest.name)

        res.success = True
        res.overall_message = "Done."
        return res
