"""Infrastructure - project configuration and source file discovery."""

from praxis.infrastructure.config import ProjectConfig, load_project_config
from praxis.infrastructure.discovery import discover_files, matches_glob

__all__ = [
    "ProjectConfig",
    "discover_files",
    "load_project_config",
    "matches_glob",
]
