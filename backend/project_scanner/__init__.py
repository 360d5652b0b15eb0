"""Discover projects on disk, normalize their MCP server configs and keep a registry of them."""
from .analyzer.project_detector import DefaultProjectDetector, ProjectDetector
from .config.settings import ScanSettings, load_scan_settings
from .scanner.errors import (
    MalformedServerConfigError,
    ProjectNotFoundError,
    RegistryError,
    ScanAbortedError,
    ScanErrors,
    ScannerError,
    SettingsError,
    UnreadableConfigError,
)
from .scanner.mcp_config import load_mcp_config, normalize_mcp_config, parse_mcp_config
from .scanner.models import ProjectConfig, ProjectInfo, ScanIssue, ScanResult, ServerConfig
from .services.registry_service import ProjectRegistry
from .services.scan_service import ScanService, scan_for_projects

__version__ = "0.1.0"

__all__ = [
    "DefaultProjectDetector",
    "MalformedServerConfigError",
    "ProjectConfig",
    "ProjectDetector",
    "ProjectInfo",
    "ProjectNotFoundError",
    "ProjectRegistry",
    "RegistryError",
    "ScanAbortedError",
    "ScanErrors",
    "ScanIssue",
    "ScanResult",
    "ScanService",
    "ScanSettings",
    "ScannerError",
    "ServerConfig",
    "SettingsError",
    "UnreadableConfigError",
    "load_mcp_config",
    "load_scan_settings",
    "normalize_mcp_config",
    "parse_mcp_config",
    "scan_for_projects",
]
