from __future__ import annotations

from dataclasses import dataclass, field
import sys
from typing import Any, Dict, List, Optional

from .errors import ScanErrors, ScannerError

_DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}

STDIO_TRANSPORT = "stdio"
URL_TRANSPORT = "url"
# Anything outside PROCESS_TRANSPORTS is reached over the network and needs a url.
PROCESS_TRANSPORTS = frozenset({STDIO_TRANSPORT})
NETWORK_TRANSPORTS = frozenset({URL_TRANSPORT, "sse", "http", "streamable-http"})


def is_process_transport(transport: str) -> bool:
    return transport in PROCESS_TRANSPORTS


@dataclass(**_DATACLASS_KWARGS)
class ServerConfig:
    """One MCP server definition in canonical form."""

    name: str
    transport: str
    command: Optional[str] = None
    args: List[str] = field(default_factory=list)
    url: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "transport": self.transport}
        if self.command is not None:
            data["command"] = self.command
        if self.args:
            data["args"] = list(self.args)
        if self.url is not None:
            data["url"] = self.url
        if self.env:
            data["env"] = dict(self.env)
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerConfig":
        return cls(
            name=data["name"],
            transport=data["transport"],
            command=data.get("command"),
            args=list(data.get("args") or []),
            url=data.get("url"),
            env=dict(data.get("env") or {}),
            headers=dict(data.get("headers") or {}),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(**_DATACLASS_KWARGS)
class ScanIssue:
    path: str
    code: str
    message: str

    @classmethod
    def from_error(cls, path: str, error: Exception) -> "ScanIssue":
        code = error.code if isinstance(error, ScannerError) else type(error).__name__.upper()
        return cls(path=path, code=code, message=str(error))


@dataclass(**_DATACLASS_KWARGS)
class ProjectInfo:
    """Read-only summary of a registered project."""

    name: str
    path: str
    server_count: int
    servers: List[str] = field(default_factory=list)


@dataclass(**_DATACLASS_KWARGS)
class ProjectConfig:
    name: str
    path: str
    servers: Dict[str, ServerConfig] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    # Detection problems; never serialized.
    issues: List[Exception] = field(default_factory=list, compare=False, repr=False)

    def info(self) -> ProjectInfo:
        return ProjectInfo(
            name=self.name,
            path=self.path,
            server_count=len(self.servers),
            servers=sorted(self.servers),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "servers": {name: server.to_dict() for name, server in self.servers.items()},
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectConfig":
        servers = {}
        for name, raw in (data.get("servers") or {}).items():
            payload = dict(raw)
            payload.setdefault("name", name)
            servers[name] = ServerConfig.from_dict(payload)
        return cls(
            name=data["name"],
            path=data["path"],
            servers=servers,
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(**_DATACLASS_KWARGS)
class ScanResult:
    """Everything one scan produced, including the failures it tolerated."""

    projects: List[ProjectConfig] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    issues: List[ScanIssue] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ScanErrors(self.errors)
