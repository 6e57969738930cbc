import tempfile
import unittest
from pathlib import Path

from markpatch.core.backup import BackupManager
from markpatch.core.config import WorkspaceConfig
from markpatch.core.errors import EXIT_MISSING_EDIT_ROOT, PreconditionError
from markpatch.core.filestore import FileStore

OUT = "##edit-out##"


class BackupManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.cfg = WorkspaceConfig(workspace=Path(self._tmp.name).resolve(), use_mime_probe=False)
        self.edit = self.cfg.edit_root
        (self.edit / "marked").mkdir(parents=True)
        (self.edit / "marked" / "a.txt").write_text(f"{OUT}\nx\n", encoding="utf-8")
        (self.edit / "plain").mkdir()
        (self.edit / "plain" / "a.txt").write_text("x\n", encoding="utf-8")
        (self.edit / "README.md").write_text("docs\n", encoding="utf-8")
        self.mgr = BackupManager(self.cfg, FileStore(use_mime_probe=False))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_plan_excludes_backups_and_readme(self) -> None:
        (self.edit / "old.backup").mkdir()
        names = [src.name for src, _dest in self.mgr.plan_backup()]
        self.assertEqual(names, ["marked", "plain"])

    def test_backup_moves_only_marked_entries(self) -> None:
        res = self.mgr.backup()
        self.assertTrue(res.success)
        self.assertFalse((self.edit / "marked").exists())
        self.assertTrue((self.edit / "marked.backup" / "a.txt").is_file())
        self.assertTrue((self.edit / "plain").is_dir())
        self.assertFalse((self.edit / "plain.backup").exists())
        self.assertEqual(res.per_file["plain"]["status"], "Refused")

    def test_forced_backup_copies_and_replaces(self) -> None:
        (self.edit / "plain.backup").mkdir()
        (self.edit / "plain.backup" / "stale.txt").write_text("old\n", encoding="utf-8")
        self.mgr.backup(force=True)
        self.assertTrue((self.edit / "plain").is_dir())
        self.assertTrue((self.edit / "plain.backup" / "a.txt").is_file())
        self.assertFalse((self.edit / "plain.backup" / "stale.txt").exists())
        self.assertTrue((self.edit / "marked.backup" / "a.txt").is_file())

    def test_declined_confirmation_changes_nothing(self) -> None:
        res = self.mgr.backup(confirm=lambda _prompt: False)
        self.assertTrue(res.success)
        self.assertEqual(res.overall_message, "Operation cancelled.")
        self.assertTrue((self.edit / "marked").is_dir())

    def test_restore_round_trip_skips_existing_destination(self) -> None:
        self.mgr.backup(force=True)
        (self.edit / "marked").rename(self.edit / "elsewhere")
        res = self.mgr.restore()
        self.assertTrue((self.edit / "marked" / "a.txt").is_file())
        self.assertFalse((self.edit / "marked.backup").exists())
        self.assertTrue((self.edit / "plain.backup").exists())
        self.assertEqual(res.per_file["plain.backup"]["status"], "Skipped")

    def test_missing_edit_root(self) -> None:
        mgr = BackupManager(WorkspaceConfig(workspace=self.cfg.workspace / "none"))
        with self.assertRaises(PreconditionError) as ctx:
            mgr.backup()
        self.assertEqual(ctx.exception.exit_status, EXIT_MISSING_EDIT_ROOT)


if __name__ == "__main__":
    unittest.main()
