from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import threading
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from .errors import ScanAbortedError
from .models import ScanIssue, _DATACLASS_KWARGS
from .paths import expand_path, is_excluded, normalize_exclude_entries

if TYPE_CHECKING:
    from ..analyzer.project_detector import ProjectDetector

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATHS = (".git", "node_modules", ".vscode", ".idea", "target", "build", "dist")
DEFAULT_MAX_DEPTH = 3


@dataclass(**_DATACLASS_KWARGS)
class WalkResult:
    """Candidate project roots in discovery order plus what was skipped."""

    candidates: List[Path] = field(default_factory=list)
    issues: List[ScanIssue] = field(default_factory=list)
    errors: List[ScanAbortedError] = field(default_factory=list)
    cancelled: bool = False


class DirectoryWalker:
    """
    Depth-bounded walk over scan roots that reports project root candidates.

    Depth 0 is the root itself. A directory the detector accepts is reported
    and not descended into. Excluded directory names prune the whole subtree;
    roots are never pruned. Directories are tracked by canonical path so
    symlink cycles and overlapping roots are not walked twice.
    """

    def __init__(
        self,
        detector: ProjectDetector,
        *,
        exclude_paths: Iterable[str] | None = DEFAULT_EXCLUDE_PATHS,
        max_depth: int = DEFAULT_MAX_DEPTH,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        self.detector = detector
        self.exclude_paths = normalize_exclude_entries(exclude_paths)
        self.max_depth = max_depth
        self.cancel_event = cancel_event

    def walk(self, roots: Iterable[str | os.PathLike[str]]) -> WalkResult:
        result = WalkResult()
        # canonical path -> largest remaining depth budget it was walked with
        visited: Dict[str, int] = {}
        seen_candidates: set[str] = set()

        for root in roots:
            if self._cancelled():
                result.cancelled = True
                break

            root_label = os.fspath(root)
            try:
                resolved = expand_path(root).resolve(strict=True)
            except (OSError, RuntimeError) as exc:
                self._abort(result, root_label, _reason(exc))
                continue
            if not resolved.is_dir():
                self._abort(result, root_label, "not a directory")
                continue

            logger.debug(f"Walking {resolved} (max depth {self.max_depth})")
            self._walk_root(resolved, visited, seen_candidates, result)
            if result.cancelled:
                break

        return result

    def _walk_root(
        self,
        root: Path,
        visited: Dict[str, int],
        seen_candidates: set[str],
        result: WalkResult,
    ) -> None:
        # explicit stack keeps deep trees off the interpreter's recursion limit
        stack: List[Tuple[Path, int]] = [(root, 0)]
        while stack:
            if self._cancelled():
                result.cancelled = True
                return

            directory, depth = stack.pop()
            key = str(directory)
            remaining = self.max_depth - depth
            if visited.get(key, -1) >= remaining:
                continue
            visited[key] = remaining

            try:
                is_root = self.detector.is_project_root(directory)
            except Exception as exc:
                # Detectors are pluggable; a failed check only skips this subtree
                result.issues.append(ScanIssue(path=key, code="DETECTOR_FAILED", message=_reason(exc)))
                logger.warning(f"Project root check failed for {directory}: {exc}")
                continue

            if is_root:
                if key not in seen_candidates:
                    seen_candidates.add(key)
                    result.candidates.append(directory)
                    logger.debug(f"Found project root candidate: {directory}")
                continue

            if remaining <= 0:
                continue

            children = self._list_children(directory, depth, result)
            # reversed so the first child by name is walked first
            for child in reversed(children):
                stack.append((child, depth + 1))

    def _list_children(self, directory: Path, depth: int, result: WalkResult) -> List[Path]:
        key = str(directory)
        try:
            with os.scandir(directory) as entries:
                listed = sorted(
                    (Path(entry.path) for entry in entries if _is_dir(entry)),
                    key=lambda child: child.name,
                )
        except OSError as exc:
            if depth == 0:
                self._abort(result, key, _reason(exc))
            else:
                code = "PERMISSION_DENIED" if isinstance(exc, PermissionError) else "UNREADABLE_DIRECTORY"
                result.issues.append(ScanIssue(path=key, code=code, message=_reason(exc)))
                logger.debug(f"Skipping {directory}: {_reason(exc)}")
            return []

        children: List[Path] = []
        for child in listed:
            if is_excluded(child, self.exclude_paths):
                logger.debug(f"Excluded: {child}")
                continue
            try:
                resolved = child.resolve(strict=True)
            except (OSError, RuntimeError) as exc:
                result.issues.append(ScanIssue(path=str(child), code="BROKEN_LINK", message=_reason(exc)))
                continue
            if resolved != child and is_excluded(resolved, self.exclude_paths):
                continue
            children.append(resolved)
        return children

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _abort(self, result: WalkResult, root: str, reason: str) -> None:
        error = ScanAbortedError(root, reason)
        logger.warning(str(error))
        result.errors.append(error)


def _is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=True)
    except OSError:
        return False


def _reason(exc: BaseException) -> str:
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc) or type(exc).__name__
