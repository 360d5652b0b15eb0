from __future__ import annotations

from pathlib import Path
import threading
from typing import List

import pytest

from project_scanner.analyzer.project_detector import DefaultProjectDetector
from project_scanner.config.settings import ScanSettings
from project_scanner.scanner.errors import (
    MalformedServerConfigError,
    ScanAbortedError,
    ScanErrors,
    UnreadableConfigError,
)
from project_scanner.scanner.models import ProjectConfig, ServerConfig
from project_scanner.services.scan_service import ScanService, scan_for_projects


def _names(projects: List[ProjectConfig]) -> List[str]:
    return [project.name for project in projects]


def test_scan_returns_projects_with_servers(make_tree, stdio_server_doc) -> None:
    root = make_tree(
        {
            "api/mcp.json": stdio_server_doc,
            "api/package.json": "{}",
            "cli/go.mod": "module cli",
        }
    )

    result = ScanService().scan_for_projects([root])

    assert _names(result.projects) == ["api", "cli"]
    api = result.projects[0]
    assert api.path == str((root / "api").resolve())
    assert api.servers == {"x": ServerConfig(name="x", transport="stdio", command="npx")}
    assert result.projects[1].servers == {}
    assert result.ok
    result.raise_for_errors()


def test_scan_with_no_projects_returns_empty_list(make_tree) -> None:
    root = make_tree({"docs/readme.txt": "hi"})

    result = scan_for_projects([root])

    assert result.projects == []
    assert result.errors == []


def test_nested_roots_yield_each_project_once(make_tree) -> None:
    root = make_tree(
        {
            "work/alpha/package.json": "{}",
            "work/beta/Cargo.toml": "[package]",
        }
    )

    result = scan_for_projects([root, root / "work", root / "work" / "alpha"])

    assert _names(result.projects) == ["alpha", "beta"]
    assert len({project.path for project in result.projects}) == 2


def test_settings_are_applied_to_the_walk(make_tree) -> None:
    root = make_tree({"vendor/lib/package.json": "{}", "deep/a/b/c/package.json": "{}"})
    settings = ScanSettings(exclude_paths=["vendor"], max_depth=2)

    result = ScanService(settings).scan_for_projects([root])

    assert result.projects == []


def test_max_depth_zero_only_detects_roots(make_tree) -> None:
    root = make_tree({"go.mod": "module root", "child/package.json": "{}"}, name="root")
    other = make_tree({"child/package.json": "{}"}, name="other")

    result = ScanService(ScanSettings(max_depth=0)).scan_for_projects([root, other])

    assert _names(result.projects) == ["root"]


def test_config_failures_are_collected_without_losing_projects(make_tree) -> None:
    root = make_tree(
        {
            "broken/mcp.json": "{ not json",
            "partial/mcp.json": {
                "mcpServers": {
                    "ok": {"transport": "stdio", "command": "npx"},
                    "bad": {"transport": "stdio"},
                }
            },
            "fine/go.mod": "module fine",
        }
    )

    result = scan_for_projects([root])

    assert _names(result.projects) == ["broken", "fine", "partial"]
    assert [type(err) for err in result.errors] == [UnreadableConfigError, MalformedServerConfigError]
    assert list(result.projects[2].servers) == ["ok"]
    assert {issue.code for issue in result.issues} == {"UNREADABLE_CONFIG", "MALFORMED_SERVER"}

    with pytest.raises(ScanErrors) as exc_info:
        result.raise_for_errors()
    assert len(exc_info.value) == 2
    assert exc_info.value.code == "SCAN_ERRORS"


def test_missing_root_is_reported_and_scan_continues(make_tree, tmp_path: Path) -> None:
    root = make_tree({"svc/pyproject.toml": "[project]"})

    result = scan_for_projects([tmp_path / "nowhere", root])

    assert _names(result.projects) == ["svc"]
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], ScanAbortedError)
    assert result.issues[0].code == "SCAN_ABORTED"


class ExplodingDetector(DefaultProjectDetector):
    def detect_project(self, path: Path) -> ProjectConfig:
        if Path(path).name == "bad":
            raise RuntimeError("detector blew up")
        return super().detect_project(path)


def test_detector_exception_only_costs_that_project(make_tree) -> None:
    root = make_tree({"bad/package.json": "{}", "good/package.json": "{}"})

    result = ScanService().scan_for_projects([root], ExplodingDetector())

    assert _names(result.projects) == ["good"]
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], RuntimeError)
    assert result.issues[0].code == "RUNTIMEERROR"


class MarkerlessDetector:
    """Custom detector that treats any directory holding a ``.workspace`` file as a project."""

    def is_project_root(self, path: Path) -> bool:
        return (Path(path) / ".workspace").is_file()

    def detect_project(self, path: Path) -> ProjectConfig:
        resolved = Path(path).resolve()
        return ProjectConfig(name=f"ws-{resolved.name}", path=str(resolved))


def test_any_object_with_both_operations_can_be_used(make_tree) -> None:
    root = make_tree({"one/.workspace": "", "two/package.json": "{}"})

    result = scan_for_projects([root], MarkerlessDetector())

    assert _names(result.projects) == ["ws-one"]


def test_progress_callback_receives_each_project(make_tree) -> None:
    root = make_tree({"a/go.mod": "module a", "b/go.mod": "module b"})
    seen: List[str] = []

    def _callback(project: ProjectConfig) -> None:
        seen.append(project.name)
        raise ValueError("callback failures are ignored")

    result = ScanService(progress_callback=_callback).scan_for_projects([root])

    assert seen == ["a", "b"]
    assert _names(result.projects) == ["a", "b"]


def test_cancelled_scan_returns_partial_result(make_tree) -> None:
    root = make_tree({"a/go.mod": "module a", "b/go.mod": "module b"})
    cancel = threading.Event()

    def _callback(project: ProjectConfig) -> None:
        cancel.set()

    result = ScanService(cancel_event=cancel, progress_callback=_callback).scan_for_projects([root])

    assert _names(result.projects) == ["a"]
    assert result.cancelled is True


def test_scan_configured_uses_settings_paths(make_tree) -> None:
    root = make_tree({"app/package.json": "{}"})

    result = ScanService(ScanSettings(scan_paths=[str(root)])).scan_configured()

    assert _names(result.projects) == ["app"]


def test_scan_configured_disabled_returns_empty(make_tree) -> None:
    root = make_tree({"app/package.json": "{}"})

    result = ScanService(ScanSettings(enabled=False, scan_paths=[str(root)])).scan_configured()

    assert result.projects == []
    assert result.errors == []



class FlakyRootDetector(DefaultProjectDetector):
    """Root check fails for directories named ``bad``."""

    def is_project_root(self, path: Path) -> bool:
        if Path(path).name == "bad":
            raise OSError("marker lookup failed")
        return super().is_project_root(path)


def test_failing_root_check_skips_only_that_subtree(make_tree) -> None:
    root = make_tree({"bad/inner/package.json": "{}", "good/package.json": "{}"})

    result = ScanService().scan_for_projects([root], FlakyRootDetector())

    assert _names(result.projects) == ["good"]
    assert [issue.code for issue in result.issues] == ["DETECTOR_FAILED"]
    assert result.issues[0].path == str((root / "bad").resolve())
    assert "marker lookup failed" in result.issues[0].message
