"""markpatch core: in-process self tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Tuple

from .config import WorkspaceConfig
from .errors import MarkerValidationError
from .filestore import FileStore
from .markers import MarkerValidator
from .models import MarkerSet
from .reconciler import PatchExporter, effective_text
from .retention import EditTreePruner
from .rewriter import MarkerRewriter


class MarkPatchSelfTests:
    """
    In-process self tests using temporary workspaces and embedded file contents.
    """

    @staticmethod
    def run() -> Tuple[bool, str]:
        m = MarkerSet()
        store = FileStore(use_mime_probe=False)
        validator = MarkerValidator(m)
        rewriter = MarkerRewriter(m, store)

        report_lines = []
        ok = True

        def fail(msg: str) -> None:
            nonlocal ok
            ok = False
            report_lines.append("FAIL: " + msg)

        def pass_(msg: str) -> None:
            report_lines.append("OK: " + msg)

        # 1) Selection contract
        out = rewriter.rewrite_lines(["a", m.sel_start + "b", "c" + m.sel_end, "d"])
        if out != [m.mark_out, "b", "c", m.mark_out]:
            fail(f"Selection rewrite produced {out!r}.")
        else:
            pass_("Selection rewrite.")

        # 2) Validator rejects nesting
        res = validator.validate([m.sel_start + "x", m.sel_start + "y", m.sel_end])
        if res.valid or res.line_number != 2:
            fail("Nested selection start was not rejected on line 2.")
        else:
            pass_("Nested selection rejected.")

        # 3) Effective sequence
        eff = effective_text("foo\nbar\nbaz\n", f"foo\n{m.mark_out}\nQUX\n", m)
        if eff != "foo\nbar\nQUX\n":
            fail(f"Effective sequence incorrect: {eff!r}")
        else:
            pass_("Effective sequence.")

        with tempfile.TemporaryDirectory() as td:
            cfg = WorkspaceConfig(workspace=Path(td).resolve(), local_dir=None, use_mime_probe=False)
            original = "one\ntwo\nthree\n"
            (cfg.edit_root / "proj").mkdir(parents=True)
            (cfg.git_root / "proj").mkdir(parents=True)
            (cfg.git_root / "proj" / "f.txt").write_text(original, encoding="utf-8")
            (cfg.edit_root / "proj" / "f.txt").write_text(
                f"one\nTWO {m.mark_in}\nthree\n", encoding="utf-8"
            )
            (cfg.edit_root / "proj" / "untouched.txt").write_text("nothing here\n", encoding="utf-8")

            # 4) Prune: rewrite + retention
            pruned = EditTreePruner(cfg.edit_root, m, store).run()
            edited = (cfg.edit_root / "proj" / "f.txt").read_text(encoding="utf-8")
            if edited != f"{m.mark_out}\nTWO \n{m.mark_out}\n":
                fail(f"Prune rewrite incorrect: {edited!r}")
            elif (cfg.edit_root / "proj" / "untouched.txt").exists():
                fail("Unmarked file survived prune.")
            elif not pruned.success:
                fail("Prune reported failure.")
            else:
                pass_("Prune rewrite and retention.")

            # 5) Export round trip touches only the edited line
            exporter = PatchExporter(cfg.edit_root, cfg.baseline_roots(), cfg.output_root, m, store)
            first = exporter.export()
            patch = cfg.output_root / "proj" / "f.txt.patch"
            if not first.success or not patch.is_file():
                fail("Export did not produce f.txt.patch.")
            else:
                text = patch.read_text(encoding="utf-8")
                changed = [l for l in text.splitlines() if l[:1] in ("+", "-") and not l.startswith(("---", "+++"))]
                if changed != ["-two", "+TWO "]:
                    fail(f"Patch touched unexpected lines: {changed!r}")
                else:
                    pass_("Export round trip.")

                # 6) Idempotence
                exporter.export()
                if patch.read_text(encoding="utf-8") != text:
                    fail("Second export produced different bytes.")
                else:
                    pass_("Export idempotence.")

            # 7) Invalid selection aborts prune before any write
            bad = cfg.edit_root / "proj" / "bad.txt"
            bad_text = f"{m.sel_start}a\n{m.mark_out}\n"
            bad.write_text(bad_text, encoding="utf-8")
            try:
                EditTreePruner(cfg.edit_root, m, store).run()
            except MarkerValidationError:
                if bad.read_text(encoding="utf-8") != bad_text:
                    fail("Invalid file was modified.")
                else:
                    pass_("Invalid selection aborts prune.")
            else:
                fail("Unbalanced selection did not abort prune.")

        return ok, "\n".join(report_lines)
