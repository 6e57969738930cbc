import unittest
from pathlib import Path

from markpatch.core.config import WorkspaceConfig
from markpatch.core.guards import ensure_unprivileged
from markpatch.core.errors import EXIT_PRIVILEGED, PreconditionError


class WorkspaceConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        cfg = WorkspaceConfig.from_env(Path("/ws"), env={})
        self.assertEqual(cfg.edit_root, Path("/ws/edit"))
        self.assertEqual(cfg.baseline_roots(), [Path("/ws/git"), Path("/ws/local")])
        self.assertEqual(cfg.output_root, Path("/ws/output"))
        self.assertEqual(cfg.markers.mark_out, "##edit-out##")
        self.assertTrue(cfg.use_mime_probe)

    def test_environment_overrides(self) -> None:
        env = {
            "MARKPATCH_WORKSPACE": "/elsewhere",
            "MARKPATCH_GIT_DIR": "",
            "MARKPATCH_MARK_OUT": "@@out@@",
            "MARKPATCH_USE_MIME_PROBE": "no",
        }
        cfg = WorkspaceConfig.from_env(env=env)
        self.assertEqual(cfg.workspace, Path("/elsewhere"))
        self.assertIsNone(cfg.git_root)
        self.assertEqual(cfg.baseline_roots(), [Path("/elsewhere/local")])
        self.assertEqual(cfg.markers.mark_out, "@@out@@")
        self.assertEqual(cfg.markers.mark_in, "##edit-in##")
        self.assertFalse(cfg.use_mime_probe)

    def test_root_toggles(self) -> None:
        cfg = WorkspaceConfig(workspace=Path("/ws"))
        self.assertEqual(cfg.without_git().baseline_roots(), [Path("/ws/local")])
        self.assertEqual(cfg.without_local().baseline_roots(), [Path("/ws/git")])
        self.assertEqual(cfg.without_git().without_local().baseline_roots(), [])


class GuardTests(unittest.TestCase):
    def test_root_refused(self) -> None:
        with self.assertRaises(PreconditionError) as ctx:
            ensure_unprivileged(env={}, euid=0)
        self.assertEqual(ctx.exception.exit_status, EXIT_PRIVILEGED)

    def test_sudo_refused(self) -> None:
        with self.assertRaises(PreconditionError):
            ensure_unprivileged(env={"SUDO_USER": "alice"}, euid=1000)

    def test_regular_user_allowed(self) -> None:
        ensure_unprivileged(env={}, euid=1000)


if __name__ == "__main__":
    unittest.main()
