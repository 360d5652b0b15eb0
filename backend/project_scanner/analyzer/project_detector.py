"""
Project Detector Module

Decides whether a directory is a project root and builds its ProjectConfig.
A project is identified by the presence of marker files (ecosystem manifests
or MCP-specific files); MCP server definitions are read from the first MCP
config file found in the project.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set, runtime_checkable

from ..scanner.errors import UnreadableConfigError
from ..scanner.mcp_config import load_mcp_config
from ..scanner.models import ProjectConfig
from ..scanner.paths import canonical_path

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_MARKERS: Dict[str, List[str]] = {
    "javascript": ["package.json"],
    "go": ["go.mod"],
    "rust": ["Cargo.toml"],
    "python": ["pyproject.toml", "requirements.txt"],
    "java": ["pom.xml", "build.gradle"],
    "eclipse": [".project"],
    "mcp": ["mcp.json", "mcp-config.json", ".mcp"],
}

# Markers that only count when they are directories.
DIRECTORY_MARKERS = frozenset({".mcp"})

# Checked in order; the first one present is used on its own.
MCP_CONFIG_FILES = ("mcp.json", "mcp-config.json", ".mcp/config.json")


@runtime_checkable
class ProjectDetector(Protocol):
    """Anything that can classify a directory and describe the project in it."""

    def is_project_root(self, path: Path) -> bool:
        ...

    def detect_project(self, path: Path) -> ProjectConfig:
        ...


class DefaultProjectDetector:
    """
    Marker-file based detector.

    Args:
        project_markers: ecosystem -> marker names. Defaults to
            ``DEFAULT_PROJECT_MARKERS``.
        config_files: MCP config locations relative to the project root, in
            precedence order.
        substitute_env: expand ``${VAR}`` references in server definitions.
    """

    def __init__(
        self,
        project_markers: Optional[Mapping[str, Iterable[str]]] = None,
        *,
        config_files: Iterable[str] = MCP_CONFIG_FILES,
        substitute_env: bool = True,
    ) -> None:
        markers = DEFAULT_PROJECT_MARKERS if project_markers is None else project_markers
        self.project_markers: Dict[str, List[str]] = {
            ecosystem: list(names) for ecosystem, names in markers.items()
        }
        self.config_files = tuple(config_files)
        self.substitute_env = substitute_env

    @property
    def marker_names(self) -> Set[str]:
        return {marker for names in self.project_markers.values() for marker in names}

    def is_project_root(self, path: Path) -> bool:
        return bool(self._find_project_markers(Path(path)))

    def detect_project(self, path: Path) -> ProjectConfig:
        directory = canonical_path(path)
        if not directory.is_dir():
            raise NotADirectoryError(f"Not a directory: {directory}")

        markers = self._find_project_markers(directory)
        project = ProjectConfig(
            name=directory.name or str(directory),
            path=str(directory),
            metadata={
                "detector": type(self).__name__,
                "detectedAt": datetime.now(timezone.utc).isoformat(),
                "markers": markers,
                "ecosystems": self._determine_ecosystems(markers),
            },
        )

        config_path = self._locate_config_file(directory)
        if config_path is None:
            logger.debug(f"No MCP config in {directory}")
            return project

        project.metadata["configFile"] = config_path.relative_to(directory).as_posix()
        try:
            normalized = load_mcp_config(config_path, substitute_env=self.substitute_env)
        except UnreadableConfigError as exc:
            logger.warning(str(exc))
            project.issues.append(exc)
            return project

        project.servers = dict(normalized.servers)
        project.issues.extend(normalized.errors)
        if normalized.inputs:
            project.metadata["inputs"] = normalized.inputs

        logger.debug(f"Detected project {project.name} with {len(project.servers)} server(s)")
        return project

    def _find_project_markers(self, directory: Path) -> List[str]:
        """Find marker files directly inside a directory."""
        markers: List[str] = []

        try:
            dir_contents = {entry.name: entry for entry in directory.iterdir()}
        except (PermissionError, FileNotFoundError, NotADirectoryError):
            logger.debug(f"Cannot list directory: {directory}")
            return markers

        for names in self.project_markers.values():
            for marker in names:
                entry = dir_contents.get(marker)
                if entry is None or marker in markers:
                    continue
                if marker in DIRECTORY_MARKERS and not entry.is_dir():
                    continue
                markers.append(marker)

        return markers

    def _determine_ecosystems(self, markers: List[str]) -> List[str]:
        return [
            ecosystem
            for ecosystem, names in self.project_markers.items()
            if any(marker in names for marker in markers)
        ]

    def _locate_config_file(self, directory: Path) -> Optional[Path]:
        for relative in self.config_files:
            candidate = directory / relative
            if candidate.is_file():
                return candidate
        return None
