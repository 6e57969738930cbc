import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from markpatch.core.errors import EXIT_MISSING_EDIT_ROOT, MarkerValidationError, PreconditionError
from markpatch.core.filestore import FileStore
from markpatch.core.models import FileScan, MarkerSet
from markpatch.core.retention import DirNode, EditTreePruner, RetentionClassifier, has_useful_content

M = MarkerSet()


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class UsefulContentTests(unittest.TestCase):
    def test_only_sentinels_and_blanks(self) -> None:
        self.assertFalse(has_useful_content([M.mark_out, "  ", "\t" + M.mark_out]))

    def test_real_line(self) -> None:
        self.assertTrue(has_useful_content([M.mark_out, "x"]))


class ClassifierTests(unittest.TestCase):
    def test_reasons_and_ancestors(self) -> None:
        root = Path("/ws/edit")
        a = root / "p" / "sub" / "a.txt"
        b = root / "p" / "b.txt"
        c = root / "q" / "c.txt"
        readme = root / "r" / "README.md"
        scans = [
            FileScan(a, has_edit_marker=True, has_out_marker=True, has_selection=False),
            FileScan(b, has_edit_marker=True, has_out_marker=False, has_selection=False),
            FileScan(c, has_edit_marker=False, has_out_marker=False, has_selection=False),
            FileScan(readme, has_edit_marker=False, has_out_marker=False, has_selection=False, is_readme=True),
        ]
        rewritten = {a: [M.mark_out], b: ["  "]}
        res = RetentionClassifier(M).classify(root, scans, rewritten)
        self.assertEqual(res.reasons[a], "had both markers")
        self.assertEqual(res.reasons[readme], "readme")
        self.assertFalse(res.is_file_kept(b))
        self.assertFalse(res.is_file_kept(c))
        self.assertTrue(res.is_dir_kept(root / "p" / "sub"))
        self.assertTrue(res.is_dir_kept(root / "p"))
        self.assertFalse(res.is_dir_kept(root / "r"))
        self.assertTrue(res.is_dir_kept(root))
        self.assertFalse(res.is_dir_kept(root / "q"))

    def test_write_failure_is_kept(self) -> None:
        root = Path("/ws/edit")
        f = root / "x.txt"
        scans = [FileScan(f, has_edit_marker=True, has_out_marker=False, has_selection=False)]
        res = RetentionClassifier(M).classify(root, scans, {}, {f})
        self.assertTrue(res.is_file_kept(f))


class DirNodeTests(unittest.TestCase):
    def test_post_order_visits_children_first(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _write(root / "a" / "b" / "f.txt", "x")
            _write(root / "g.txt", "y")
            snap = DirNode.build(root)
            order = [n.path for n in snap.post_order()]
            self.assertEqual(order, [root / "a" / "b", root / "a", root])
            self.assertEqual(sorted(snap.all_files()), [root / "a" / "b" / "f.txt", root / "g.txt"])


class PrunerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve() / "edit"
        self.root.mkdir()
        self.store = FileStore(use_mime_probe=False)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _prune(self):
        return EditTreePruner(self.root, M, self.store).run()

    def test_missing_root(self) -> None:
        with self.assertRaises(PreconditionError) as ctx:
            EditTreePruner(self.root / "nope", M, self.store).run()
        self.assertEqual(ctx.exception.exit_status, EXIT_MISSING_EDIT_ROOT)

    def test_no_markers_wipes_root(self) -> None:
        _write(self.root / "p" / "a.txt", "plain\n")
        _write(self.root / "b.txt", "plain\n")
        res = self._prune()
        self.assertTrue(res.success)
        self.assertTrue(self.root.is_dir())
        self.assertEqual(list(self.root.iterdir()), [])

    def test_marked_top_level_readme_blocks_wipe(self) -> None:
        readme = _write(self.root / "README.txt", f"notes\n{M.mark_out}\n")
        _write(self.root / "p" / "a.txt", "plain\n")
        res = self._prune()
        self.assertNotIn("wiped", res.overall_message)
        self.assertEqual(readme.read_text(encoding="utf-8"), f"notes\n{M.mark_out}\n")
        self.assertFalse((self.root / "p").exists())
        self.assertEqual(res.retention.reasons[readme], "top-level readme")

    def test_failed_rewrite_keeps_file_and_continues(self) -> None:
        first = _write(self.root / "p" / "a.txt", "a\nb ##edit-in##\n")
        second = _write(self.root / "p" / "b.txt", "c\nd ##edit-in##\n")
        real_write = self.store.atomic_write_text

        def flaky_write(path, text, preserve_metadata=True):
            if Path(path) == first:
                raise OSError(28, "No space left on device")
            return real_write(path, text, preserve_metadata)

        with patch.object(self.store, "atomic_write_text", side_effect=flaky_write):
            res = self._prune()

        self.assertTrue(res.success)
        self.assertEqual(first.read_text(encoding="utf-8"), "a\nb ##edit-in##\n")
        self.assertEqual(second.read_text(encoding="utf-8"), f"{M.mark_out}\nd \n")
        self.assertEqual(res.rewritten, [second])
        failures = [e for e in res.logs if e["message"] == "WRITE FAIL"]
        self.assertEqual([e["file"] for e in failures], [str(first)])
        self.assertEqual(res.retention.reasons[first], "rewrite failed, left untouched")
        self.assertEqual(res.summary["write_failures"], 1)

    def test_prune_keeps_edits_and_sweeps_the_rest(self) -> None:
        edited = _write(self.root / "p" / "src" / "main.c", "int a;\nint b; ##edit-in##\nint c;\n")
        already = _write(self.root / "p" / "done.c", f"{M.mark_out}\nkept\n")
        blank = _write(self.root / "p" / "blank.c", "x\n   ##edit-in##\n")
        _write(self.root / "p" / "junk" / "deep" / "x.txt", "nothing\n")
        readme = _write(self.root / "p" / "src" / "README.md", "docs ##edit-in##\n")
        _write(self.root / "p" / "docs" / "README.md", "docs\n")

        res = self._prune()

        self.assertEqual(edited.read_text(encoding="utf-8"), f"{M.mark_out}\nint b; \n{M.mark_out}\n")
        self.assertEqual(already.read_text(encoding="utf-8"), f"{M.mark_out}\nkept\n")
        self.assertFalse(blank.exists())
        self.assertFalse((self.root / "p" / "junk").exists())
        self.assertEqual(readme.read_text(encoding="utf-8"), "docs ##edit-in##\n")
        self.assertFalse((self.root / "p" / "docs").exists())
        self.assertIn(edited, res.rewritten)
        self.assertEqual(res.summary["dirs_removed"], 3)
        self.assertTrue(any(e["message"] == "DELETED FILE" for e in res.logs))

    def test_had_both_markers_kept_even_without_content(self) -> None:
        f = _write(self.root / "p" / "a.txt", f"{M.mark_out}\n ##edit-in##\n")
        self._prune()
        self.assertTrue(f.exists())
        self.assertEqual(f.read_text(encoding="utf-8"), f"{M.mark_out}\n \n")

    def test_invalid_file_aborts_before_any_write(self) -> None:
        good = _write(self.root / "p" / "good.txt", "a ##edit-in##\nb\n")
        bad = _write(self.root / "p" / "bad.txt", f"{M.sel_end}\n")
        junk = _write(self.root / "p" / "junk.txt", "junk\n")
        with self.assertRaises(MarkerValidationError) as ctx:
            self._prune()
        self.assertEqual(ctx.exception.path, bad)
        self.assertEqual(good.read_text(encoding="utf-8"), "a ##edit-in##\nb\n")
        self.assertTrue(junk.exists())

    def test_second_prune_changes_nothing(self) -> None:
        f = _write(self.root / "p" / "a.txt", "a\nb ##edit-in##\n")
        self._prune()
        first = f.read_bytes()
        self._prune()
        self.assertEqual(f.read_bytes(), first)


if __name__ == "__main__":
    unittest.main()
