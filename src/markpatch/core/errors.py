"""markpatch core: exception types and exit statuses."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_VALIDATION = 2
EXIT_PRIVILEGED = 3
EXIT_MISSING_EDIT_ROOT = 4
EXIT_MISSING_BASELINE_ROOT = 5


class MarkPatchError(Exception):
    exit_status = EXIT_FAILURE


class MarkerValidationError(MarkPatchError):
    """Malformed selection structure in one file; fatal for the whole prune run."""

    exit_status = EXIT_VALIDATION

    def __init__(self, path: Path, reason: str, line_number: Optional[int] = None):
        self.path = Path(path)
        self.reason = reason
        self.line_number = line_number
        where = f" on line {line_number}" if line_number is not None else ""
        super().__init__(f"{self.path}: {reason}{where}")


class PreconditionError(MarkPatchError):
    def __init__(self, message: str, exit_status: int = EXIT_FAILURE):
        super().__init__(message)
        self.exit_status = exit_status


class CommandError(MarkPatchError):
    def __init__(self, argv, returncode: int, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        super().__init__(f"{' '.join(self.argv)} exited with status {returncode}")
