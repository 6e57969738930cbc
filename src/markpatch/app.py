"""markpatch application entrypoint (CLI sub-commands + GUI launcher)."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core.backup import BackupManager
from .core.config import WorkspaceConfig
from .core.errors import EXIT_FAILURE, EXIT_OK, MarkerValidationError, MarkPatchError
from .core.filestore import FileStore
from .core.guards import ensure_unprivileged
from .core.models import RunResult
from .core.reconciler import PatchExporter
from .core.retention import EditTreePruner
from .core.selftests import MarkPatchSelfTests
from .core.sources import RepoRegistry, fetch_repositories, seed_from_local


def format_log(entry: Dict[str, Any]) -> str:
    fields = " ".join(
        f"{k}={v}" for k, v in entry.items() if k not in ("ts", "level", "message")
    )
    line = f"{entry.get('level', 'INFO')}: {entry.get('message', '')}"
    return f"{line} {fields}" if fields else line


def print_result(res: RunResult) -> None:
    for entry in res.logs:
        stream = sys.stdout if entry.get("level") == "INFO" else sys.stderr
        print(format_log(entry), file=stream)
    print(res.overall_message)


def prompt_confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def build_config(args: argparse.Namespace) -> WorkspaceConfig:
    cfg = WorkspaceConfig.from_env(Path(args.workspace) if args.workspace else None)
    if args.no_git_root:
        cfg = cfg.without_git()
    if args.no_local_root:
        cfg = cfg.without_local()
    return cfg


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="markpatch",
        description="Prune marker-tagged edit trees and export them as unified-diff patches.",
    )
    p.add_argument("-w", "--workspace", help="Workspace directory holding edit/, git/, local/, output/.")
    p.add_argument("--no-git-root", action="store_true", help="Do not use the git/ baseline root.")
    p.add_argument("--no-local-root", action="store_true", help="Do not use the local/ baseline root.")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("prune", help="Rewrite marked files and delete everything without edits.")
    sub.add_parser("export", help="Write add/change/delete patches for every project.")

    bp = sub.add_parser("backup", help="Snapshot top-level edit entries as <name>.backup.")
    bp.add_argument("-f", "--force", action="store_true", help="Replace existing backups with a fresh copy.")
    bp.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")

    rp = sub.add_parser("restore", help="Move <name>.backup entries back to <name>.")
    rp.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")

    fp = sub.add_parser("fetch", help="Clone or refresh repositories into git/ and edit/.")
    fp.add_argument("urls", nargs="*", help="Repository URLs; remembered ones are used when omitted.")

    rep = sub.add_parser("repos", help="Manage remembered repository URLs.")
    rep.add_argument("action", choices=("list", "add", "remove"), nargs="?", default="list")
    rep.add_argument("url", nargs="?")

    sub.add_parser("seed", help="Copy local/ baselines into edit/.")
    sub.add_parser("selftest", help="Run in-process self tests.")
    sub.add_parser("gui", help="Open the desktop front-end.")
    return p


def _run_selftests_cli() -> int:
    ok, report = MarkPatchSelfTests.run()
    print(report)
    return 0 if ok else 2


def _run_gui(cfg: WorkspaceConfig) -> int:
    from PyQt6.QtGui import QFont
    from PyQt6.QtWidgets import QApplication

    from .ui.main_window import MainWindow

    app = QApplication(sys.argv[:1])
    app.setFont(QFont("Consolas", 10))
    w = MainWindow(cfg)
    w.show()
    return app.exec()


def _run_repos(cfg: WorkspaceConfig, action: str, url: Optional[str]) -> int:
    registry = RepoRegistry(cfg.repos_path)
    if action == "list":
        for u in registry.urls():
            print(u)
        return EXIT_OK
    if not url:
        print(f"repos {action}: a URL is required", file=sys.stderr)
        return EXIT_FAILURE
    if action == "add":
        print("Added." if registry.add(url) else "Already remembered.")
    else:
        print("Removed." if registry.remove(url) else "Not remembered.")
    return EXIT_OK


def _run_fetch(cfg: WorkspaceConfig, urls: List[str]) -> int:
    registry = RepoRegistry(cfg.repos_path)
    for u in urls:
        registry.add(u)
    targets = urls or registry.urls()
    if not targets:
        print("No repositories remembered; pass a URL.")
        return EXIT_OK
    res = fetch_repositories(cfg, targets)
    print_result(res)
    return EXIT_OK if res.success else EXIT_FAILURE


def run_command(args: argparse.Namespace) -> int:
    cfg = build_config(args)
    store = FileStore(use_mime_probe=cfg.use_mime_probe)
    cmd = args.command

    if cmd == "selftest":
        return _run_selftests_cli()
    if cmd == "gui":
        return _run_gui(cfg)
    if cmd == "prune":
        print_result(EditTreePruner(cfg.edit_root, cfg.markers, store).run())
        return EXIT_OK
    if cmd == "export":
        exporter = PatchExporter(
            cfg.edit_root, cfg.baseline_roots(), cfg.output_root,
            cfg.markers, store, backup_suffix=cfg.backup_suffix,
        )
        print_result(exporter.export())
        return EXIT_OK
    if cmd == "backup":
        confirm = (lambda _p: True) if args.yes else prompt_confirm
        print_result(BackupManager(cfg, store).backup(force=args.force, confirm=confirm))
        return EXIT_OK
    if cmd == "restore":
        confirm = (lambda _p: True) if args.yes else prompt_confirm
        print_result(BackupManager(cfg, store).restore(confirm=confirm))
        return EXIT_OK
    if cmd == "fetch":
        return _run_fetch(cfg, args.urls)
    if cmd == "repos":
        return _run_repos(cfg, args.action, args.url)
    if cmd == "seed":
        print_result(seed_from_local(cfg, store))
        return EXIT_OK
    raise ValueError(f"unknown command {cmd!r}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        ensure_unprivileged()
        return run_command(args)
    except MarkerValidationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print(f"ERROR: validation failed for {e.path}", file=sys.stderr)
        return e.exit_status
    except MarkPatchError as e:
        print(str(e), file=sys.stderr)
        return e.exit_status
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
