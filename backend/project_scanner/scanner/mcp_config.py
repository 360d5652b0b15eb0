"""
MCP Config Normalizer

Turns the MCP server definitions found in project config files into
canonical ``ServerConfig`` objects. Three wrapper shapes are recognized and
checked in priority order, the first match wins:

1. ``{"mcpServers": {...}}``           (Claude Desktop / Cursor)
2. ``{"mcp": {"servers": {...}}}``     (GitHub / VS Code, may carry ``inputs``)
3. ``{"servers": {...}}``              (flat)

Broken server entries are skipped and reported without discarding their
siblings; a file that is not parseable at all raises ``UnreadableConfigError``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import MalformedServerConfigError, UnreadableConfigError
from .models import (
    NETWORK_TRANSPORTS,
    STDIO_TRANSPORT,
    URL_TRANSPORT,
    ServerConfig,
    _DATACLASS_KWARGS,
    is_process_transport,
)

logger = logging.getLogger(__name__)

SHAPE_CLAUDE_DESKTOP = "mcpServers"
SHAPE_NESTED = "mcp.servers"
SHAPE_FLAT = "servers"

_VARIABLE_PATTERN = re.compile(r"\$\{([^}]+)\}")
_SCALAR_TYPES = (str, int, float, bool)


@dataclass(**_DATACLASS_KWARGS)
class NormalizedConfig:
    """Outcome of normalizing one config document."""

    source: str
    shape: Optional[str] = None
    servers: Dict[str, ServerConfig] = field(default_factory=dict)
    errors: List[MalformedServerConfigError] = field(default_factory=list)
    inputs: List[Any] = field(default_factory=list)


def detect_shape(data: Mapping[str, Any]) -> Tuple[Optional[str], Optional[Mapping[str, Any]]]:
    """Return ``(shape, servers_mapping)`` for the first recognized wrapper."""
    claude = data.get("mcpServers")
    if isinstance(claude, Mapping):
        return SHAPE_CLAUDE_DESKTOP, claude

    nested = data.get("mcp")
    if isinstance(nested, Mapping) and isinstance(nested.get("servers"), Mapping):
        return SHAPE_NESTED, nested["servers"]

    flat = data.get("servers")
    if isinstance(flat, Mapping):
        return SHAPE_FLAT, flat

    return None, None


def substitute_variables(value: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Replace ``${VAR}`` with values from ``environ`` (defaults to the process
    environment). Unknown variables and ``${input:...}`` placeholders stay as-is
    so they can be resolved when the server is launched.
    """
    env = os.environ if environ is None else environ

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name.startswith("input:"):
            return match.group(0)
        resolved = env.get(name)
        if resolved is None or resolved == "":
            return match.group(0)
        return resolved

    return _VARIABLE_PATTERN.sub(_replace, value)


def normalize_mcp_config(
    data: Any,
    *,
    source: str = "<memory>",
    substitute_env: bool = True,
    environ: Mapping[str, str] | None = None,
) -> NormalizedConfig:
    """Normalize an already-decoded config document."""
    if not isinstance(data, Mapping):
        raise UnreadableConfigError(source, f"expected a JSON object, got {type(data).__name__}")

    result = NormalizedConfig(source=source)
    shape, raw_servers = detect_shape(data)
    if shape is None or raw_servers is None:
        logger.debug(f"No MCP server section found in {source}")
        return result

    result.shape = shape
    if shape == SHAPE_NESTED:
        inputs = data["mcp"].get("inputs")
        if isinstance(inputs, list):
            result.inputs = list(inputs)

    for name, raw in raw_servers.items():
        try:
            server = _build_server(str(name), raw, source)
        except MalformedServerConfigError as exc:
            logger.warning(str(exc))
            result.errors.append(exc)
            continue
        if substitute_env:
            server = _substitute_server(server, environ)
        result.servers[server.name] = server

    logger.debug(
        f"Normalized {len(result.servers)} server(s) from {source} "
        f"({shape}, {len(result.errors)} skipped)"
    )
    return result


def parse_mcp_config(
    text: str | bytes,
    *,
    source: str = "<memory>",
    substitute_env: bool = True,
    environ: Mapping[str, str] | None = None,
) -> NormalizedConfig:
    """Decode JSON text and normalize it."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise UnreadableConfigError(source, str(exc)) from exc
    return normalize_mcp_config(data, source=source, substitute_env=substitute_env, environ=environ)


def load_mcp_config(
    path: Path,
    *,
    substitute_env: bool = True,
    environ: Mapping[str, str] | None = None,
) -> NormalizedConfig:
    """Read and normalize one config file."""
    source = str(path)
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise UnreadableConfigError(source, exc.strerror or str(exc)) from exc
    return parse_mcp_config(raw, source=source, substitute_env=substitute_env, environ=environ)


def _build_server(name: str, raw: Any, source: str) -> ServerConfig:
    def _malformed(reason: str) -> MalformedServerConfigError:
        return MalformedServerConfigError(name, source, reason)

    if not isinstance(raw, Mapping):
        raise _malformed("server entry must be an object")

    command = _optional_string(raw, "command", _malformed)
    url = _optional_string(raw, "url", _malformed)

    if command is None and url is None:
        raise _malformed("missing both 'command' and 'url'")
    if command is not None and url is not None:
        raise _malformed("defines both 'command' and 'url'")

    transport = raw.get("transport", raw.get("type"))
    if transport is None:
        transport = STDIO_TRANSPORT if command is not None else URL_TRANSPORT
    elif not isinstance(transport, str) or not transport.strip():
        raise _malformed("'transport' must be a non-empty string")
    transport = transport.strip().lower()

    if is_process_transport(transport) and command is None:
        raise _malformed(f"transport '{transport}' requires 'command'")
    if not is_process_transport(transport) and url is None:
        raise _malformed(f"transport '{transport}' requires 'url'")
    if transport not in NETWORK_TRANSPORTS and not is_process_transport(transport):
        logger.debug(f"Server '{name}' in {source} uses unrecognized transport '{transport}'")

    args = raw.get("args")
    if args is None:
        args = []
    elif not isinstance(args, list) or not all(isinstance(item, str) for item in args):
        raise _malformed("'args' must be a list of strings")

    metadata = raw.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise _malformed("'metadata' must be an object")

    return ServerConfig(
        name=name,
        transport=transport,
        command=command,
        args=list(args),
        url=url,
        env=_string_mapping(raw, "env", _malformed),
        headers=_string_mapping(raw, "headers", _malformed),
        metadata=dict(metadata),
    )


def _optional_string(raw: Mapping[str, Any], key: str, malformed) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise malformed(f"'{key}' must be a string")
    value = value.strip()
    return value or None


def _string_mapping(raw: Mapping[str, Any], key: str, malformed) -> Dict[str, str]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise malformed(f"'{key}' must be an object")
    mapping: Dict[str, str] = {}
    for item_key, item_value in value.items():
        if not isinstance(item_value, _SCALAR_TYPES):
            raise malformed(f"'{key}.{item_key}' must be a scalar value")
        if isinstance(item_value, bool):
            mapping[str(item_key)] = "true" if item_value else "false"
        else:
            mapping[str(item_key)] = str(item_value)
    return mapping


def _substitute_server(server: ServerConfig, environ: Mapping[str, str] | None) -> ServerConfig:
    def _sub(value: Optional[str]) -> Optional[str]:
        return substitute_variables(value, environ) if value is not None else None

    return ServerConfig(
        name=server.name,
        transport=server.transport,
        command=_sub(server.command),
        args=[substitute_variables(arg, environ) for arg in server.args],
        url=_sub(server.url),
        env={key: substitute_variables(val, environ) for key, val in server.env.items()},
        headers={key: substitute_variables(val, environ) for key, val in server.headers.items()},
        metadata=dict(server.metadata),
    )
