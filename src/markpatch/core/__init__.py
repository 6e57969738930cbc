from .models import (
    MarkerSet, Hunk, ValidationResult, FileScan, RetentionResult,
    PatchRecord, RunResult, PruneResult, ExportResult,
)
from .markers import MarkerValidator, is_sentinel_line
from .rewriter import MarkerRewriter
from .retention import RetentionClassifier, EditTreePruner, DirNode
from .reconciler import PatchExporter, reconcile_lines, effective_text
from .diffgen import DiffGenerator
from .filestore import FileStore
from .config import WorkspaceConfig
from .backup import BackupManager
from .sources import RepoRegistry, GitFetcher
from .selftests import MarkPatchSelfTests

__all__ = [
    "MarkerSet","Hunk","ValidationResult","FileScan","RetentionResult",
    "PatchRecord","RunResult","PruneResult","ExportResult",
    "MarkerValidator","is_sentinel_line","MarkerRewriter",
    "RetentionClassifier","EditTreePruner","DirNode",
    "PatchExporter","reconcile_lines","effective_text",
    "DiffGenerator","FileStore","WorkspaceConfig",
    "BackupManager","RepoRegistry","GitFetcher","MarkPatchSelfTests",
]
