from __future__ import annotations

from typing import Iterable, List


class ScannerError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class UnreadableConfigError(ScannerError):
    """An MCP config file exists but is not parseable structured data."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Unreadable MCP config {source}: {reason}", "UNREADABLE_CONFIG")
        self.source = source


class MalformedServerConfigError(ScannerError):
    """A single server entry is missing or has inconsistent required fields."""

    def __init__(self, server_name: str, source: str, reason: str) -> None:
        super().__init__(
            f"Malformed server '{server_name}' in {source}: {reason}",
            "MALFORMED_SERVER",
        )
        self.server_name = server_name
        self.source = source


class ProjectNotFoundError(ScannerError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Project not found: {path}", "PROJECT_NOT_FOUND")
        self.path = path


class ScanAbortedError(ScannerError):
    """A scan root could not be walked at all."""

    def __init__(self, root: str, reason: str) -> None:
        super().__init__(f"Scan aborted for {root}: {reason}", "SCAN_ABORTED")
        self.root = root


class RegistryError(ScannerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "REGISTRY_ERROR")


class SettingsError(ScannerError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "INVALID_SETTINGS")


class ScanErrors(ScannerError):
    """Aggregate of every failure collected during one scan."""

    def __init__(self, errors: Iterable[Exception]) -> None:
        self.errors: List[Exception] = list(errors)
        summary = "; ".join(str(err) for err in self.errors[:3])
        if len(self.errors) > 3:
            summary += f"; and {len(self.errors) - 3} more"
        super().__init__(f"{len(self.errors)} error(s) during scan: {summary}", "SCAN_ERRORS")

    def __iter__(self):
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)
