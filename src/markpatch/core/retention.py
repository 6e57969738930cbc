"""markpatch core: prune the edit tree down to files that still carry edits."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .errors import EXIT_MISSING_EDIT_ROOT, PreconditionError
from .filestore import FileStore
from .markers import DEFAULT_MARKERS, contains_any, is_readme_name, trim_horizontal
from .models import FileScan, MarkerSet, PruneResult, RetentionResult
from .rewriter import MarkerRewriter


@dataclass
class DirNode:
    """In-memory snapshot of one directory; symlinks are recorded as files."""
    path: Path
    dirs: List["DirNode"] = field(default_factory=list)
    files: List[Path] = field(default_factory=list)

    @classmethod
    def build(cls, path: Path) -> "DirNode":
        node = cls(path=Path(path))
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                node.dirs.append(cls.build(Path(entry.path)))
            else:
                node.files.append(Path(entry.path))
        return node

    def post_order(self) -> Iterator["DirNode"]:
        for child in self.dirs:
            yield from child.post_order()
        yield self

    def all_files(self) -> Iterator[Path]:
        for node in self.post_order():
            yield from node.files


def has_useful_content(lines: Iterable[str], markers: MarkerSet = DEFAULT_MARKERS) -> bool:
    """True when some line is neither blank nor the sentinel after trimming."""
    for line in lines:
        t = trim_horizontal(line)
        if t and t != markers.mark_out:
            return True
    return False


class RetentionClassifier:
    """
    Pure keep/delete decision over scan results. Returns the kept file and
    directory sets instead of updating shared state.
    """

    def __init__(self, markers: MarkerSet = DEFAULT_MARKERS):
        self.markers = markers

    def classify(
        self,
        root: Path,
        scans: Iterable[FileScan],
        rewritten: Dict[Path, List[str]],
        write_failed: Optional[Set[Path]] = None,
    ) -> RetentionResult:
        root = Path(root)
        write_failed = write_failed or set()
        kept: Dict[Path, str] = {}
        # Nested READMEs survive the file sweep but do not hold their directories.
        anchors: Set[Path] = set()

        for s in scans:
            if s.is_readme:
                if s.path.parent == root:
                    kept[s.path] = "top-level readme"
                    anchors.add(s.path)
                else:
                    kept[s.path] = "readme"
                continue
            anchors.add(s.path)
            if s.path in write_failed:
                kept[s.path] = "rewrite failed, left untouched"
            elif s.path in rewritten:
                if s.had_both:
                    kept[s.path] = "had both markers"
                elif has_useful_content(rewritten[s.path], self.markers):
                    kept[s.path] = "has useful content"
            elif s.has_out_marker:
                kept[s.path] = f"originally had {self.markers.mark_out}"

        kept_dirs: Set[Path] = set()
        for f in kept:
            if f in anchors:
                kept_dirs.update(self._ancestors(f, root))

        return RetentionResult(
            kept_files=frozenset(kept),
            kept_dirs=frozenset(kept_dirs),
            reasons=kept,
        )

    def _ancestors(self, path: Path, root: Path) -> List[Path]:
        out = []
        d = path.parent
        while True:
            out.append(d)
            if d == root or d == d.parent:
                break
            d = d.parent
        return out


class EditTreePruner:
    """
    The prune workflow:
      1. scan every file under the edit root for markers
      2. validate selection structure of every file to be rewritten (fatal on error)
      3. rewrite files carrying edit markers
      4. classify retention, then sweep unkept files and directories bottom-up
    """

    def __init__(
        self,
        edit_root: Path,
        markers: MarkerSet = DEFAULT_MARKERS,
        store: Optional[FileStore] = None,
    ):
        self.edit_root = Path(edit_root)
        self.markers = markers
        self.store = store or FileStore()
        self.rewriter = MarkerRewriter(markers, self.store)
        self.classifier = RetentionClassifier(markers)

    def scan(self, path: Path, text: str) -> FileScan:
        m = self.markers
        return FileScan(
            path=path,
            has_edit_marker=contains_any(text, m.edit_tokens()),
            has_out_marker=m.mark_out in text,
            has_selection=contains_any(text, m.selection_tokens()),
            is_readme=is_readme_name(path.name),
        )

    def run(self) -> PruneResult:
        if not self.edit_root.is_dir():
            raise PreconditionError(f"Error: {self.edit_root} does not exist.", EXIT_MISSING_EDIT_ROOT)
        root = self.edit_root.resolve()
        res = PruneResult(success=False, overall_message="Prune failed.")

        texts: Dict[Path, str] = {}
        scans: List[FileScan] = []
        for f in self.store.iter_files(root):
            try:
                text = self.store.read_text(f)
            except OSError as e:
                res.warn("Could not read file; treating it as unmarked.", file=str(f), error=str(e))
                text = ""
            texts[f] = text
            scans.append(self.scan(f, text))

        if not any(s.has_edit_marker or s.has_out_marker for s in scans):
            res.info("No files contain markers; removing all contents.", root=str(root))
            self.store.clear_dir(root)
            res.success = True
            res.overall_message = "Edit tree wiped (no markers found)."
            res.retention = RetentionResult()
            return res

        to_rewrite = [s for s in scans if s.has_edit_marker and not s.is_readme]

        # Validate everything first so a bad file aborts before any write.
        for s in to_rewrite:
            if s.has_selection:
                self.rewriter.check_file(s.path, texts[s.path])

        rewritten: Dict[Path, List[str]] = {}
        write_failed: Set[Path] = set()
        for s in to_rewrite:
            try:
                rewritten[s.path] = self.rewriter.rewrite_file(s.path, texts[s.path])
            except OSError as e:
                write_failed.add(s.path)
                res.error("WRITE FAIL", file=str(s.path), error=str(e))
                continue
            res.info("REWRITTEN", file=str(s.path))
            res.rewritten.append(s.path)

        retention = self.classifier.classify(root, scans, rewritten, write_failed)
        res.retention = retention
        for path, reason in sorted(retention.reasons.items()):
            res.info(f"KEPT ({reason})", file=str(path))
            res.per_file[str(path)] = {"status": "Kept", "reason": reason}

        self.sweep(root, DirNode.build(root), retention, res)

        res.summary.update({
            "files_scanned": len(scans),
            "files_rewritten": len(res.rewritten),
            "files_kept": len(retention.kept_files),
            "files_deleted": len(res.deleted_files),
            "dirs_removed": len(res.removed_dirs),
            "write_failures": len(write_failed),
        })
        res.success = True
        res.overall_message = f"Done! Files that contained {self.markers.mark_out} are preserved."
        return res

    def sweep(self, root: Path, snapshot: DirNode, retention: RetentionResult, res: PruneResult) -> None:
        for f in snapshot.all_files():
            if retention.is_file_kept(f):
                continue
            try:
                self.store.remove(f)
            except OSError as e:
                res.error("FAILED DELETE FILE", file=str(f), error=str(e))
                continue
            res.deleted_files.append(f)
            res.per_file[str(f)] = {"status": "Deleted"}
            res.info("DELETED FILE", file=str(f))

        for node in snapshot.post_order():
            if node.path == root or retention.is_dir_kept(node.path):
                continue
            try:
                self.store.remove(node.path)
            except OSError as e:
                res.error("FAILED REMOVE DIR", dir=str(node.path), error=str(e))
                continue
            res.removed_dirs.append(node.path)
            res.info("REMOVED DIR", dir=str(node.path))
