"""markpatch core: workspace layout and marker configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Mapping, Optional

from .models import MarkerSet

ENV_PREFIX = "MARKPATCH_"
BACKUP_SUFFIX = ".backup"


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


@dataclass
class WorkspaceConfig:
    """
    Directory layout, relative to the workspace:
      edit/    working copies carrying markers, one subdirectory per project
      git/     version-control baselines
      local/   manually supplied baselines
      output/  generated patches, mirrored per project
      repos.txt remembered repository URLs
    """
    workspace: Path = field(default_factory=Path.cwd)
    edit_dir: str = "edit"
    git_dir: Optional[str] = "git"
    local_dir: Optional[str] = "local"
    output_dir: str = "output"
    repos_file: str = "repos.txt"
    backup_suffix: str = BACKUP_SUFFIX
    markers: MarkerSet = field(default_factory=MarkerSet)
    use_mime_probe: bool = True

    @property
    def edit_root(self) -> Path:
        return self.workspace / self.edit_dir

    @property
    def git_root(self) -> Optional[Path]:
        return self.workspace / self.git_dir if self.git_dir else None

    @property
    def local_root(self) -> Optional[Path]:
        return self.workspace / self.local_dir if self.local_dir else None

    @property
    def output_root(self) -> Path:
        return self.workspace / self.output_dir

    @property
    def repos_path(self) -> Path:
        return self.workspace / self.repos_file

    def baseline_roots(self) -> List[Path]:
        """Baseline roots in lookup order: git first, then local."""
        return [r for r in (self.git_root, self.local_root) if r is not None]

    def without_git(self) -> "WorkspaceConfig":
        return replace(self, git_dir=None)

    def without_local(self) -> "WorkspaceConfig":
        return replace(self, local_dir=None)

    @classmethod
    def from_env(cls, workspace: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> "WorkspaceConfig":
        env = os.environ if env is None else env
        g = lambda name, default: env.get(ENV_PREFIX + name, default)

        if workspace is None:
            workspace = Path(g("WORKSPACE", "") or Path.cwd())
        defaults = MarkerSet()
        markers = MarkerSet(
            mark_in=g("MARK_IN", defaults.mark_in),
            mark_out=g("MARK_OUT", defaults.mark_out),
            sel_start=g("MARK_SEL_START", defaults.sel_start),
            sel_end=g("MARK_SEL_END", defaults.sel_end),
        )
        return cls(
            workspace=Path(workspace),
            edit_dir=g("EDIT_DIR", "edit"),
            git_dir=g("GIT_DIR", "git") or None,
            local_dir=g("LOCAL_DIR", "local") or None,
            output_dir=g("OUTPUT_DIR", "output"),
            repos_file=g("REPOS_FILE", "repos.txt"),
            markers=markers,
            use_mime_probe=_env_flag(env, "USE_MIME_PROBE", True),
        )
