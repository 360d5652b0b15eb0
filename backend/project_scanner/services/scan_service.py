from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable, Iterable, Optional

from ..analyzer.project_detector import DefaultProjectDetector, ProjectDetector
from ..config.settings import ScanSettings
from ..scanner.models import ProjectConfig, ScanIssue, ScanResult
from ..scanner.paths import canonical_key
from ..scanner.walker import DirectoryWalker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProjectConfig], None]


class ScanService:
    """
    Scans root directories for projects and returns them without registering.

    Settings are passed in explicitly; nothing is read from global state
    during a scan.
    """

    def __init__(
        self,
        settings: Optional[ScanSettings] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.settings = settings or ScanSettings()
        self.cancel_event = cancel_event
        self.progress_callback = progress_callback

    def scan_configured(self, detector: Optional[ProjectDetector] = None) -> ScanResult:
        """Scan the roots listed in the settings, if scanning is enabled."""
        if not self.settings.enabled:
            logger.info("Project scanning is disabled; skipping scan")
            return ScanResult()
        return self.scan_for_projects(self.settings.scan_paths, detector)

    def scan_for_projects(
        self,
        roots: Iterable[str | os.PathLike[str]],
        detector: Optional[ProjectDetector] = None,
    ) -> ScanResult:
        detector = detector if detector is not None else DefaultProjectDetector()
        roots = list(roots)
        start = time.perf_counter()

        walker = DirectoryWalker(
            detector,
            exclude_paths=self.settings.exclude_paths,
            max_depth=self.settings.max_depth,
            cancel_event=self.cancel_event,
        )
        walk = walker.walk(roots)
        result = ScanResult(
            errors=list(walk.errors),
            issues=list(walk.issues),
            cancelled=walk.cancelled,
        )
        for error in walk.errors:
            result.issues.append(ScanIssue.from_error(error.root, error))

        seen: set[str] = set()
        for candidate in walk.candidates:
            if self.cancel_event is not None and self.cancel_event.is_set():
                result.cancelled = True
                break

            key = canonical_key(candidate)
            if key in seen:
                continue
            seen.add(key)

            try:
                project = detector.detect_project(candidate)
            except Exception as exc:
                # Detectors are pluggable; any failure only costs this project.
                logger.warning(f"Project detection failed for {candidate}: {exc}")
                result.errors.append(exc)
                result.issues.append(ScanIssue.from_error(key, exc))
                continue
            if project is None:
                continue

            project_key = canonical_key(project.path)
            if project_key != key:
                if project_key in seen:
                    continue
                seen.add(project_key)

            for issue in project.issues:
                result.errors.append(issue)
                result.issues.append(ScanIssue.from_error(project.path, issue))
            result.projects.append(project)
            self._emit_progress(project)

        logger.info(
            f"Scanned {len(roots)} root(s) in {time.perf_counter() - start:.2f}s: "
            f"{len(result.projects)} project(s), {len(result.errors)} error(s)"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result

    def _emit_progress(self, project: ProjectConfig) -> None:
        if not self.progress_callback:
            return
        try:
            self.progress_callback(project)
        except Exception:
            logger.debug("Progress callback failed", exc_info=True)


def scan_for_projects(
    roots: Iterable[str | os.PathLike[str]],
    detector: Optional[ProjectDetector] = None,
    *,
    settings: Optional[ScanSettings] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ScanResult:
    """Convenience wrapper around ``ScanService.scan_for_projects``."""
    service = ScanService(settings, cancel_event=cancel_event)
    return service.scan_for_projects(roots, detector)
