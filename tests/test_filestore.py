import os
import tempfile
import unittest
from pathlib import Path

from markpatch.core.filestore import FileStore


class FileStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = FileStore(use_mime_probe=False, sniff_bytes=16)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_sniff_text_and_binary(self) -> None:
        text = self.root / "t.txt"
        text.write_text("plain text\n", encoding="utf-8")
        empty = self.root / "empty"
        empty.write_bytes(b"")
        nul = self.root / "b.bin"
        nul.write_bytes(b"ab\x00cd")
        latin = self.root / "l.txt"
        latin.write_bytes(b"\xff\xfe\xfd")
        self.assertTrue(self.store.is_text_file(text))
        self.assertTrue(self.store.is_text_file(empty))
        self.assertFalse(self.store.is_text_file(nul))
        self.assertFalse(self.store.is_text_file(latin))

    def test_multibyte_cut_at_sniff_boundary_is_text(self) -> None:
        path = self.root / "u.txt"
        path.write_bytes(b"a" * 15 + "é".encode("utf-8"))
        self.assertTrue(self.store.is_text_file(path))

    def test_iter_files_sorted_and_skips_vcs(self) -> None:
        (self.root / "b").mkdir()
        (self.root / "b" / "z.txt").write_text("z", encoding="utf-8")
        (self.root / "a.txt").write_text("a", encoding="utf-8")
        (self.root / ".git").mkdir()
        (self.root / ".git" / "HEAD").write_text("ref", encoding="utf-8")
        rels = [p.relative_to(self.root).as_posix() for p in self.store.iter_files(self.root, skip_vcs=True)]
        self.assertEqual(rels, ["a.txt", "b/z.txt"])

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks unavailable")
    def test_symlinked_directory_listed_as_file(self) -> None:
        (self.root / "real").mkdir()
        (self.root / "real" / "f.txt").write_text("f", encoding="utf-8")
        os.symlink(self.root / "real", self.root / "link")
        rels = [p.relative_to(self.root).as_posix() for p in self.store.iter_files(self.root)]
        self.assertIn("link", rels)
        self.assertNotIn("link/f.txt", rels)

    def test_tree_contains_is_binary_safe(self) -> None:
        (self.root / "d").mkdir()
        (self.root / "d" / "x.bin").write_bytes(b"\x00\x01##edit-out##\x02")
        self.assertTrue(self.store.tree_contains(self.root / "d", "##edit-out##"))
        self.assertFalse(self.store.tree_contains(self.root / "d", "##edit-in##"))

    def test_clear_dir_keeps_root(self) -> None:
        (self.root / "sub").mkdir()
        (self.root / "sub" / "x").write_text("x", encoding="utf-8")
        (self.root / "y").write_text("y", encoding="utf-8")
        self.store.clear_dir(self.root)
        self.assertTrue(self.root.is_dir())
        self.assertEqual(list(self.root.iterdir()), [])


if __name__ == "__main__":
    unittest.main()
