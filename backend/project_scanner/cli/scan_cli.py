"""
Project Scanner CLI
Scans directories for projects, shows their MCP servers and optionally
registers them in a file-backed registry.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import List, Optional, Sequence

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..analyzer.project_detector import DefaultProjectDetector
from ..config.settings import ScanSettings, load_scan_settings
from ..scanner.errors import ScannerError, SettingsError
from ..scanner.models import ProjectConfig, ScanResult
from ..services.registry_service import ProjectRegistry
from ..services.scan_service import ScanService
from ..storage.base import KeyValueStorage, StorageError
from ..storage.file_storage import FileStorage
from ..storage.supabase_storage import SupabaseStorage

DEFAULT_STORE = "~/.project-scanner"
BACKENDS = ("file", "supabase")

console = Console()


def render_projects(projects: List[ProjectConfig]) -> Table:
    table = Table(title=f"Projects ({len(projects)})", box=box.ROUNDED, show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Path")
    table.add_column("MCP Servers")

    for index, project in enumerate(projects, start=1):
        servers = []
        for name, server in sorted(project.servers.items()):
            target = server.command if server.command is not None else server.url
            servers.append(f"{name} ({server.transport}): {target}")
        table.add_row(str(index), escape(project.name), escape(project.path), escape("\n".join(servers)) or "-")
    return table


def render_issues(result: ScanResult) -> Optional[Table]:
    if not result.issues:
        return None
    table = Table(title="Issues", box=box.ROUNDED)
    table.add_column("Code", style="yellow")
    table.add_column("Path")
    table.add_column("Message")
    for issue in result.issues:
        table.add_row(issue.code, escape(issue.path), escape(issue.message))
    return table


def open_storage(args: argparse.Namespace) -> KeyValueStorage:
    if args.backend == "supabase":
        # SUPABASE_URL / SUPABASE_KEY may live in a .env file
        load_dotenv(find_dotenv(usecwd=True), override=False)
        return SupabaseStorage()
    return FileStorage(args.store)


def cmd_scan(args: argparse.Namespace) -> int:
    settings = load_scan_settings(args.config)
    overrides = settings.model_dump()
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    if args.exclude:
        overrides["exclude_paths"] = settings.exclude_paths + args.exclude
    try:
        settings = ScanSettings.model_validate(overrides)
    except ValidationError as exc:
        raise SettingsError(f"Invalid options: {exc}") from exc

    detector = DefaultProjectDetector(substitute_env=not args.no_env)
    service = ScanService(settings)
    if args.paths:
        result = service.scan_for_projects(args.paths, detector)
    else:
        result = service.scan_configured(detector)

    console.print(render_projects(result.projects))
    issues = render_issues(result)
    if issues is not None:
        console.print(issues)

    if args.register and result.projects:
        registry = ProjectRegistry(open_storage(args))
        for project in result.projects:
            registry.register(project.path, project)
        target = args.store if args.backend == "file" else "Supabase"
        console.print(f"Registered {len(result.projects)} project(s) in {escape(target)}")

    return 0 if result.ok else 1


def cmd_list(args: argparse.Namespace) -> int:
    registry = ProjectRegistry(open_storage(args))
    table = Table(title="Registered projects", box=box.ROUNDED)
    table.add_column("Name", style="bold")
    table.add_column("Path")
    table.add_column("Servers", justify="right")
    for info in registry.list_projects():
        table.add_row(escape(info.name), escape(info.path), str(info.server_count))
    console.print(table)
    return 0


def _add_storage_options(parser: argparse.ArgumentParser, *, defaults: bool) -> None:
    parser.add_argument(
        "--store",
        default=DEFAULT_STORE if defaults else argparse.SUPPRESS,
        help=f"Registry directory for the file backend (default: {DEFAULT_STORE})",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default="file" if defaults else argparse.SUPPRESS,
        help="Registry storage backend (default: file)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-scanner",
        description="Find projects and the MCP servers they declare",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    _add_storage_options(parser, defaults=True)

    # accepted after the subcommand too; SUPPRESS keeps the top-level value when omitted
    storage_options = argparse.ArgumentParser(add_help=False)
    _add_storage_options(storage_options, defaults=False)

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.required = True

    scan_parser = subparsers.add_parser("scan", parents=[storage_options], help="Scan directories for projects")
    scan_parser.add_argument("paths", nargs="*", help="Root directories (default: configured scan paths)")
    scan_parser.add_argument("-c", "--config", type=Path, help="JSON settings file")
    scan_parser.add_argument("-d", "--max-depth", type=int, help="Override the maximum depth")
    scan_parser.add_argument("-x", "--exclude", action="append", default=[], help="Extra directory name to skip")
    scan_parser.add_argument("--no-env", action="store_true", help="Do not expand ${VAR} in server configs")
    scan_parser.add_argument("--register", action="store_true", help="Register every project found")
    scan_parser.set_defaults(func=cmd_scan)

    list_parser = subparsers.add_parser("list", parents=[storage_options], help="List registered projects")
    list_parser.set_defaults(func=cmd_list)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except KeyboardInterrupt:
        console.print("\nOperation cancelled by user")
        return 130
    except (ScannerError, StorageError) as exc:
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
