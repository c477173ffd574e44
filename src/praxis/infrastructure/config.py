"""Project configuration: read ``praxis.yml`` from the project root."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from praxis.rules.loader import ConfigError
from praxis.rules.model import VALID_SEVERITIES

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "praxis.yml"
DEFAULT_EXCLUDES: tuple[str, ...] = (".build/**", "Pods/**", "Carthage/**", "DerivedData/**")

_KNOWN_KEYS: frozenset[str] = frozenset(
    {
        "rules",
        "include",
        "exclude",
        "severity_overrides",
        "disabled_rules",
        "max_workers",
        "timeout_seconds",
    }
)


def default_max_workers() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass(frozen=True)
class ProjectConfig:
    """Per-project scan settings.

    ``rules_path`` is ``None`` when the bundled rule set should be used.
    """

    root: Path
    rules_path: Path | None = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = DEFAULT_EXCLUDES
    severity_overrides: dict[str, str] = field(default_factory=dict)
    disabled_rules: tuple[str, ...] = ()
    max_workers: int = field(default_factory=default_max_workers)
    timeout_seconds: float | None = None


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _globs(value: object, key: str, source: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    msg = f"{source}: '{key}' must be a glob string or a list of glob strings"
    raise ConfigError(msg)


def _overrides(value: object, source: str) -> dict[str, str]:
    if not isinstance(value, dict):
        msg = f"{source}: 'severity_overrides' must be a mapping of rule id to severity"
        raise ConfigError(msg)
    result: dict[str, str] = {}
    for rule_id, severity in value.items():
        if severity not in VALID_SEVERITIES:
            msg = (
                f"{source}: severity override for '{rule_id}' must be one of "
                f"{sorted(VALID_SEVERITIES)}, got {severity!r}"
            )
            raise ConfigError(msg)
        result[str(rule_id)] = str(severity)
    return result


def _workers(value: object, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        msg = f"{source}: 'max_workers' must be a positive integer"
        raise ConfigError(msg)
    return value


def _timeout(value: object, source: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        msg = f"{source}: 'timeout_seconds' must be a positive number"
        raise ConfigError(msg)
    return float(value)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def parse_project_config(
    data: dict[str, Any], root: Path, *, source: str = CONFIG_FILENAME
) -> ProjectConfig:
    """Build a ProjectConfig from an already-parsed mapping."""
    for key in sorted(set(data) - _KNOWN_KEYS):
        logger.warning("%s: ignoring unknown key '%s'", source, key)

    kwargs: dict[str, Any] = {}
    rules = data.get("rules")
    if rules is not None:
        if not isinstance(rules, str) or not rules.strip():
            msg = f"{source}: 'rules' must be a path to a rules YAML file"
            raise ConfigError(msg)
        rules_path = Path(rules)
        kwargs["rules_path"] = rules_path if rules_path.is_absolute() else root / rules_path
    if "include" in data:
        kwargs["include"] = _globs(data["include"], "include", source)
    if "exclude" in data:
        kwargs["exclude"] = _globs(data["exclude"], "exclude", source)
    if "severity_overrides" in data:
        kwargs["severity_overrides"] = _overrides(data["severity_overrides"], source)
    if "disabled_rules" in data:
        kwargs["disabled_rules"] = _globs(data["disabled_rules"], "disabled_rules", source)
    if "max_workers" in data:
        kwargs["max_workers"] = _workers(data["max_workers"], source)
    if "timeout_seconds" in data:
        kwargs["timeout_seconds"] = _timeout(data["timeout_seconds"], source)

    return ProjectConfig(root=root, **kwargs)


def load_project_config(project_root: Path, config_path: Path | None = None) -> ProjectConfig:
    """Load ``praxis.yml`` (or *config_path*) for *project_root*.

    A missing default config file yields the defaults.  A missing explicit
    *config_path*, invalid YAML or an invalid value raises
    :class:`~praxis.rules.loader.ConfigError`.
    """
    explicit = config_path is not None
    path = config_path if config_path is not None else project_root / CONFIG_FILENAME
    if not path.is_file():
        if explicit:
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        return ProjectConfig(root=project_root)

    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"Cannot read config file {path}: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"{path.name}: invalid YAML: {exc}"
        raise ConfigError(msg) from exc

    if data is None:
        logger.warning("%s is empty, using default settings", path.name)
        return ProjectConfig(root=project_root)
    if not isinstance(data, dict):
        msg = f"{path.name} must be a YAML mapping"
        raise ConfigError(msg)

    return parse_project_config(data, project_root, source=path.name)


STARTER_CONFIG = """\
# praxis project configuration
rules: praxis-rules.yml
include:
  - "**/*.swift"
exclude:
  - ".build/**"
  - "Pods/**"
  - "DerivedData/**"
# severity_overrides:
#   naming-bool-state-prefix: critical
# disabled_rules:
#   - structure-line-length
# max_workers: 8
# timeout_seconds: 60
"""
STARTER_RULES_FILENAME = "praxis-rules.yml"
