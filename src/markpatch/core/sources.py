"""markpatch core: remembered repositories, git fetch and local seeding."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from .config import WorkspaceConfig
from .errors import CommandError, PreconditionError
from .filestore import FileStore
from .markers import is_readme_name
from .models import RunResult


def repo_dir_name(url: str) -> str:
    """Final path segment of a repository URL, without a trailing .git."""
    tail = url.strip().rstrip("/")
    for sep in ("/", ":"):
        if sep in tail:
            tail = tail.rsplit(sep, 1)[1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    if not tail:
        raise ValueError(f"Cannot derive a directory name from {url!r}")
    return tail


class RepoRegistry:
    """One URL per line, insertion order kept, duplicates ignored."""

    def __init__(self, path: Path, store: Optional[FileStore] = None):
        self.path = Path(path)
        self.store = store or FileStore()
        self._urls: List[str] = []
        self.load()

    def load(self) -> List[str]:
        self._urls = []
        if self.path.is_file():
            for line in self.store.read_text(self.path).splitlines():
                url = line.strip()
                if url and url not in self._urls:
                    self._urls.append(url)
        return list(self._urls)

    def urls(self) -> List[str]:
        return list(self._urls)

    def add(self, url: str) -> bool:
        url = url.strip()
        if not url or url in self._urls:
            return False
        self._urls.append(url)
        self.save()
        return True

    def remove(self, url: str) -> bool:
        url = url.strip()
        if url not in self._urls:
            return False
        self._urls.remove(url)
        self.save()
        return True

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = "".join(u + "\n" for u in self._urls)
        if self.path.exists():
            self.store.atomic_write_text(self.path, text)
        else:
            self.store.write_text(self.path, text)


class GitFetcher:
    """Materialize `<dest_root>/<repo name>` by clone, or refresh it by fast-forward pull."""

    def __init__(self, git: str = "git"):
        self.git = git

    def _run(self, argv: Sequence[str], cwd: Optional[Path] = None) -> str:
        try:
            proc = subprocess.run(
                list(argv),
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise CommandError(argv, -1, str(e)) from e
        output = (proc.stdout or "") + (proc.stderr or "")
        if proc.returncode != 0:
            raise CommandError(argv, proc.returncode, output)
        return output

    def fetch(self, url: str, dest_root: Path) -> Path:
        dest_root = Path(dest_root)
        dest_root.mkdir(parents=True, exist_ok=True)
        target = dest_root / repo_dir_name(url)
        if (target / ".git").exists():
            self._run([self.git, "-C", str(target), "pull", "--ff-only"])
        else:
            self._run([self.git, "clone", url, str(target)])
        return target


def fetch_repositories(
    config: WorkspaceConfig,
    urls: Sequence[str],
    fetcher: Optional[GitFetcher] = None,
) -> RunResult:
    """Clone or refresh each URL under both the git baseline root and the edit root."""
    fetcher = fetcher or GitFetcher()
    res = RunResult(success=False, overall_message="Fetch failed.")
    roots = [r for r in (config.git_root, config.edit_root) if r is not None]
    failures = 0
    for url in urls:
        for root in roots:
            try:
                target = fetcher.fetch(url, root)
            except CommandError as e:
                failures += 1
                res.per_file[f"{root.name}/{url}"] = {"status": "Failed", "error": str(e)}
                res.error("git failed", url=url, root=str(root), error=str(e), output=e.output.strip())
                continue
            res.per_file[f"{root.name}/{target.name}"] = {"status": "Fetched", "path": str(target)}
            res.info("Fetched", url=url, path=str(target))
    res.summary["failures"] = failures
    res.success = failures == 0
    res.overall_message = "Done" if res.success else f"{failures} fetch(es) failed."
    return res


def seed_from_local(config: WorkspaceConfig, store: Optional[FileStore] = None) -> RunResult:
    """Copy every top-level entry of the local baseline root into the edit root."""
    store = store or FileStore(use_mime_probe=config.use_mime_probe)
    local = config.local_root
    if local is None or not local.is_dir():
        raise PreconditionError(f"Directory {local} not found")
    edit = config.edit_root
    edit.mkdir(parents=True, exist_ok=True)

    res = RunResult(success=False, overall_message="Seed failed.")
    for item in sorted(local.iterdir()):
        if is_readme_name(item.name):
            res.info("Skipping", item=item.name)
            continue
        dest = edit / item.name
        if dest.exists():
            res.per_file[item.name] = {"status": "Skipped"}
            res.warn("Skipping; already present in edit tree", item=item.name)
            continue
        try:
            store.copy(item, dest)
        except OSError as e:
            res.per_file[item.name] = {"status": "Failed", "error": str(e)}
            res.error("Copy failed", item=item.name, error=str(e))
            continue
        res.per_file[item.name] = {"status": "Copied"}
        res.info("Copied", item=item.name)
    res.success = True
    res.overall_message = "Done!"
    return res
