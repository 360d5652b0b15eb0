"""
Pytest configuration and fixtures
"""
from pathlib import Path
import json
import sys
from typing import Callable, Dict, Optional, Union

import pytest


# Define paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
BACKEND_ROOT = PROJECT_ROOT / "backend"

# Allow running the suite from a checkout without installing the package
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


TreeSpec = Dict[str, Optional[Union[str, dict, list]]]


def build_tree(root: Path, spec: TreeSpec) -> Path:
    """
    Create files and directories under ``root``.

    Keys are relative paths. ``None`` creates a directory, a string is written
    as-is and a dict/list is written as JSON.
    """
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in spec.items():
        target = root / relative
        if content is None:
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            target.write_text(json.dumps(content), encoding="utf-8")
        else:
            target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[TreeSpec], Path]:
    def _make(spec: TreeSpec, name: str = "workspace") -> Path:
        return build_tree(tmp_path / name, spec)

    return _make


@pytest.fixture
def stdio_server_doc() -> dict:
    return {"mcpServers": {"x": {"transport": "stdio", "command": "npx"}}}
