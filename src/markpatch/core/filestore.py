"""markpatch core: file-system collaborator (read/write/copy/move/remove, binary probe)."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterator, Optional, Tuple

VCS_DIR_NAMES = (".git", ".hg", ".svn")

# Undecodable bytes round-trip unchanged through read_text/write_text.
TEXT_ERRORS = "surrogateescape"


class FileStore:
    """
    All disk access used by the workflows goes through here so the core
    algorithms can be driven against temporary directories in tests.
    """

    def __init__(self, use_mime_probe: bool = True, sniff_bytes: int = 8192):
        self.use_mime_probe = use_mime_probe
        self.sniff_bytes = sniff_bytes
        self._file_cmd: Optional[str] = shutil.which("file") if use_mime_probe else None

    # ---------------- Reading ----------------

    def read_text(self, path: Path) -> str:
        return Path(path).read_bytes().decode("utf-8", errors=TEXT_ERRORS)

    def contains(self, path: Path, token: str) -> bool:
        """Binary-safe literal search of a single file."""
        try:
            return token.encode("utf-8") in Path(path).read_bytes()
        except OSError:
            return False

    def tree_contains(self, root: Path, token: str) -> bool:
        root = Path(root)
        if root.is_file():
            return self.contains(root, token)
        for f in self.iter_files(root):
            if self.contains(f, token):
                return True
        return False

    def iter_files(self, root: Path, skip_vcs: bool = False) -> Iterator[Path]:
        """Regular files (and symlinks) under root, sorted, without following links."""
        root = Path(root)
        if not root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(root):
            if skip_vcs:
                dirnames[:] = [d for d in dirnames if d not in VCS_DIR_NAMES]
            dirnames.sort()
            base = Path(dirpath)
            for name in sorted(filenames):
                yield base / name
            # os.walk lists symlinked directories as dirs but does not descend them
            for name in list(dirnames):
                p = base / name
                if p.is_symlink():
                    dirnames.remove(name)
                    yield p

    # ---------------- Binary detection ----------------

    def is_text_file(self, path: Path) -> bool:
        """MIME probe when the `file` utility exists, else a leading-bytes sniff."""
        path = Path(path)
        if self._file_cmd:
            verdict = self._mime_probe(path)
            if verdict is not None:
                return verdict
        return self._sniff_text(path)

    def _mime_probe(self, path: Path) -> Optional[bool]:
        try:
            proc = subprocess.run(
                [self._file_cmd, "-b", "--mime", "--", str(path)],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            return None
        if proc.returncode != 0:
            return None
        mime = proc.stdout.strip().lower()
        if not mime:
            return None
        mime_type, _, params = mime.partition(";")
        if mime_type.startswith("text/") or "empty" in mime_type:
            return True
        charset = params.strip()
        if charset.startswith("charset="):
            return charset[len("charset="):] != "binary"
        return False

    def _sniff_text(self, path: Path) -> bool:
        try:
            with open(path, "rb") as f:
                chunk = f.read(self.sniff_bytes)
        except OSError:
            return False
        if not chunk:
            return True
        if b"\x00" in chunk:
            return False
        try:
            chunk.decode("utf-8")
        except UnicodeDecodeError as e:
            # A multibyte sequence cut by the read boundary is still text.
            return e.reason == "unexpected end of data" and len(chunk) == self.sniff_bytes
        return True

    # ---------------- Writing ----------------

    def stat_ownership(self, path: Path) -> Tuple[int, Optional[int], Optional[int]]:
        try:
            st = os.stat(path)
        except OSError:
            return 0o644, None, None
        return st.st_mode & 0o7777, st.st_uid, st.st_gid

    def atomic_write_text(self, path: Path, text: str, preserve_metadata: bool = True) -> None:
        """
        Write to a temp file in the same directory, then rename over the target.
        Mode bits, uid and gid of the original are reapplied; chown is best-effort.
        """
        path = Path(path)
        mode, uid, gid = self.stat_ownership(path) if preserve_metadata else (0o644, None, None)
        fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".tmp.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(text.encode("utf-8", errors=TEXT_ERRORS))
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        try:
            os.chmod(path, mode)
        except OSError:
            pass
        if uid is not None and gid is not None and hasattr(os, "chown"):
            try:
                os.chown(path, uid, gid)
            except OSError:
                pass

    def write_text(self, path: Path, text: str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8", errors=TEXT_ERRORS))

    # ---------------- Tree operations ----------------

    def copy(self, src: Path, dest: Path) -> None:
        src = Path(src)
        dest = Path(dest)
        if src.is_dir() and not src.is_symlink():
            shutil.copytree(str(src), str(dest), symlinks=True)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(str(src), str(dest), follow_symlinks=False)

    def move(self, src: Path, dest: Path) -> None:
        shutil.move(str(src), str(dest))

    def remove(self, path: Path) -> None:
        path = Path(path)
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(str(path))
        elif path.exists() or path.is_symlink():
            path.unlink()

    def clear_dir(self, root: Path) -> None:
        """Remove everything under root but keep root itself."""
        for child in sorted(Path(root).iterdir()):
            self.remove(child)
