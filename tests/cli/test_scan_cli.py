from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console

from project_scanner.cli import scan_cli
from project_scanner.scanner.models import ProjectConfig, ScanIssue, ScanResult, ServerConfig
from project_scanner.services.registry_service import ProjectRegistry
from project_scanner.storage.file_storage import FileStorage
from project_scanner.storage.memory import MemoryStorage


@pytest.fixture
def recorded_console(monkeypatch: pytest.MonkeyPatch) -> Console:
    console = Console(record=True, width=200)
    monkeypatch.setattr(scan_cli, "console", console)
    return console


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("PROJECT_SCAN_ENABLED", "PROJECT_SCAN_PATHS", "PROJECT_SCAN_EXCLUDE", "PROJECT_SCAN_MAX_DEPTH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_render_projects_lists_servers() -> None:
    project = ProjectConfig(
        name="api",
        path="/work/api",
        servers={
            "git": ServerConfig(name="git", transport="stdio", command="uvx"),
            "docs": ServerConfig(name="docs", transport="url", url="https://docs.example.com"),
        },
    )
    console = Console(record=True, width=200)

    console.print(scan_cli.render_projects([project]))
    output = console.export_text()

    assert "api" in output
    assert "docs (url): https://docs.example.com" in output
    assert "git (stdio): uvx" in output


def test_render_issues_is_skipped_without_issues() -> None:
    assert scan_cli.render_issues(ScanResult()) is None
    table = scan_cli.render_issues(ScanResult(issues=[ScanIssue(path="/x", code="SCAN_ABORTED", message="gone")]))
    assert table is not None
    assert table.row_count == 1


def test_scan_and_register_then_list(make_tree, tmp_path: Path, recorded_console: Console) -> None:
    root = make_tree({"svc/go.mod": "module svc", "web/mcp.json": {"servers": {"s": {"command": "npx"}}}})
    store = tmp_path / "store"

    exit_code = scan_cli.main(["--store", str(store), "scan", str(root), "--register"])

    assert exit_code == 0
    registry = ProjectRegistry(FileStorage(store))
    assert [info.name for info in registry.list_projects()] == ["svc", "web"]

    assert scan_cli.main(["--store", str(store), "list"]) == 0
    output = recorded_console.export_text()
    assert "Registered 2 project(s)" in output
    assert "svc" in output and "web" in output


def test_scan_with_errors_exits_non_zero(make_tree, tmp_path: Path, recorded_console: Console) -> None:
    root = make_tree({"bad/mcp.json": "{ nope"})

    exit_code = scan_cli.main(["--store", str(tmp_path / "store"), "scan", str(root)])

    assert exit_code == 1
    assert "UNREADABLE_CONFIG" in recorded_console.export_text()


def test_invalid_depth_option_reports_error(make_tree, tmp_path: Path, recorded_console: Console) -> None:
    root = make_tree({"app/package.json": "{}"})

    exit_code = scan_cli.main(["scan", str(root), "--max-depth", "-1"])

    assert exit_code == 1
    assert "Invalid options" in recorded_console.export_text()


def test_scan_uses_configured_paths(make_tree, tmp_path: Path, recorded_console: Console) -> None:
    root = make_tree({"app/package.json": "{}"})
    settings_file = tmp_path / "settings.json"
    settings_file.write_text('{"scanPaths": ["%s"], "maxDepth": 1}' % root.as_posix())

    exit_code = scan_cli.main(["scan", "--config", str(settings_file)])

    assert exit_code == 0
    assert "Projects (1)" in recorded_console.export_text()


def test_storage_options_are_accepted_after_the_subcommand(make_tree, tmp_path: Path, recorded_console: Console) -> None:
    root = make_tree({"svc/go.mod": "module svc"})
    store = tmp_path / "after"

    assert scan_cli.main(["scan", str(root), "--register", "--store", str(store)]) == 0
    assert scan_cli.main(["list", "--store", str(store)]) == 0

    assert [info.name for info in ProjectRegistry(FileStorage(store)).list_projects()] == ["svc"]
    assert "svc" in recorded_console.export_text()


def test_supabase_backend_is_used_when_selected(
    make_tree, monkeypatch: pytest.MonkeyPatch, recorded_console: Console
) -> None:
    root = make_tree({"svc/go.mod": "module svc"})
    shared = MemoryStorage()
    monkeypatch.setattr(scan_cli, "SupabaseStorage", lambda: shared)

    assert scan_cli.main(["--backend", "supabase", "scan", str(root), "--register"]) == 0
    assert scan_cli.main(["list", "--backend", "supabase"]) == 0

    assert [info.name for info in ProjectRegistry(shared).list_projects()] == ["svc"]
    assert "Registered 1 project(s) in Supabase" in recorded_console.export_text()


def test_supabase_backend_without_credentials_fails_cleanly(
    monkeypatch: pytest.MonkeyPatch, recorded_console: Console
) -> None:
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_KEY", raising=False)

    assert scan_cli.main(["list", "--backend", "supabase"]) == 1
    assert "Supabase credentials not configured" in recorded_console.export_text()
