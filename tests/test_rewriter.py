import os
import stat
import tempfile
import unittest
from pathlib import Path

from markpatch.core.errors import EXIT_VALIDATION, MarkerValidationError
from markpatch.core.filestore import FileStore
from markpatch.core.models import MarkerSet
from markpatch.core.rewriter import MarkerRewriter

M = MarkerSet()


class RewriteLinesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.rw = MarkerRewriter(M, FileStore(use_mime_probe=False))

    def test_in_marker_kept_without_token(self) -> None:
        out = self.rw.rewrite_lines(["a", "b " + M.mark_in, "c"])
        self.assertEqual(out, [M.mark_out, "b ", M.mark_out])

    def test_selection_block_kept_verbatim(self) -> None:
        out = self.rw.rewrite_lines(["x", M.sel_start + "a", "b", "c" + M.sel_end, "y"])
        self.assertEqual(out, [M.mark_out, "a", "b", "c", M.mark_out])

    def test_single_line_selection_closes(self) -> None:
        out = self.rw.rewrite_lines([M.sel_start + "a" + M.sel_end, "b"])
        self.assertEqual(out, ["a", M.mark_out])

    def test_existing_sentinel_stays_sentinel(self) -> None:
        out = self.rw.rewrite_lines(["  " + M.mark_out, "k " + M.mark_in])
        self.assertEqual(out, [M.mark_out, "k "])

    def test_rewrite_is_idempotent(self) -> None:
        once = self.rw.rewrite_text("a\nb ##edit-in##\n##+edit-in+##c\nd##-edit-in-##\ne\n")
        self.assertEqual(self.rw.rewrite_text(once), once)


class RewriteFileTests(unittest.TestCase):
    def test_rewrite_file_replaces_content_and_keeps_mode(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "f.sh"
            path.write_text("echo a\necho b ##edit-in##\n", encoding="utf-8")
            os.chmod(path, 0o755)
            rw = MarkerRewriter(M, FileStore(use_mime_probe=False))
            lines = rw.rewrite_file(path)
            self.assertEqual(lines, [M.mark_out, "echo b "])
            self.assertEqual(path.read_text(encoding="utf-8"), f"{M.mark_out}\necho b \n")
            self.assertEqual(stat.S_IMODE(os.stat(path).st_mode), 0o755)
            self.assertEqual(sorted(p.name for p in Path(tmp).iterdir()), ["f.sh"])

    def test_invalid_selection_raises_and_leaves_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bad.txt"
            original = f"{M.sel_start}a\n{M.sel_start}b\n{M.sel_end}\n"
            path.write_text(original, encoding="utf-8")
            rw = MarkerRewriter(M, FileStore(use_mime_probe=False))
            with self.assertRaises(MarkerValidationError) as ctx:
                rw.rewrite_file(path)
            self.assertEqual(ctx.exception.line_number, 2)
            self.assertEqual(ctx.exception.exit_status, EXIT_VALIDATION)
            self.assertEqual(path.read_text(encoding="utf-8"), original)

    def test_undecodable_bytes_survive(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "latin.txt"
            path.write_bytes(b"caf\xe9 ##edit-in##\nother\n")
            MarkerRewriter(M, FileStore(use_mime_probe=False)).rewrite_file(path)
            self.assertEqual(path.read_bytes(), b"caf\xe9 \n##edit-out##\n")


if __name__ == "__main__":
    unittest.main()
