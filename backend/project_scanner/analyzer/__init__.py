# Analyzer module
# Decides which directories are project roots and what MCP servers they declare

from .project_detector import DEFAULT_PROJECT_MARKERS, MCP_CONFIG_FILES, DefaultProjectDetector, ProjectDetector

__all__ = ["DEFAULT_PROJECT_MARKERS", "MCP_CONFIG_FILES", "DefaultProjectDetector", "ProjectDetector"]
