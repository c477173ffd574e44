"""Rule loading: parse rule YAML, validate descriptors, and build a RuleSet."""

from __future__ import annotations

import re
import string
from dataclasses import replace
from importlib import resources
from typing import TYPE_CHECKING

import yaml

from praxis.rules.model import (
    CLOSURE_DEFAULT_CAPTURE,
    CO_ANNOTATION_DIRECTIONS,
    LOAD_ERROR_RULE_ID,
    MATCHER_KINDS,
    METRIC_MEASURES,
    NAMING_CONTEXTS,
    TEMPLATE_FIELDS,
    VALID_CATEGORIES,
    VALID_SEVERITIES,
    ClosureCaptureSpec,
    CoAnnotationSpec,
    EmptyBlockSpec,
    MatcherSpec,
    MetricSpec,
    NamingSpec,
    PatternSpec,
    Rule,
    RuleSet,
    ScopedPatternSpec,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})
DEFAULT_RULES_RESOURCE = "defaults.yml"

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Fatal rule-configuration error; aborts a scan before matching."""

    code = "config"


class DuplicateRuleIdError(ConfigError):
    code = "duplicate-rule-id"


class UnknownMatcherKindError(ConfigError):
    code = "unknown-matcher-kind"


class MalformedTemplateError(ConfigError):
    code = "malformed-template"


class UnknownRuleIdError(ConfigError):
    """A finding or an override references a rule id that is not loaded."""

    code = "unknown-rule-id"


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _compile(value: object, context: str, *, ignore_case: bool = False) -> re.Pattern[str]:
    if not isinstance(value, str) or not value:
        msg = f"{context} must be a non-empty regular expression string"
        raise ConfigError(msg)
    try:
        return re.compile(value, re.IGNORECASE if ignore_case else 0)
    except re.error as exc:
        msg = f"{context}: invalid regular expression {value!r}: {exc}"
        raise ConfigError(msg) from exc


def _optional_regex(
    data: Mapping[str, object], key: str, context: str, *, ignore_case: bool = False
) -> re.Pattern[str] | None:
    value = data.get(key)
    if value is None:
        return None
    return _compile(value, f"{context}.{key}", ignore_case=ignore_case)


def _string_tuple(value: object, context: str) -> tuple[str, ...]:
    """Normalise a string or list of strings into a tuple."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    msg = f"{context} must be a string or a list of strings"
    raise ConfigError(msg)


def _positive_int(value: object, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        msg = f"{context} must be a positive integer"
        raise ConfigError(msg)
    return value


def _validate_template(template: str, context: str) -> str:
    """Reject templates with unbalanced braces or unknown placeholders."""
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as exc:
        msg = f"{context}: malformed template {template!r}: {exc}"
        raise MalformedTemplateError(msg) from exc

    for _literal, field_name, _spec, _conversion in parsed:
        if field_name is None:
            continue
        if field_name not in TEMPLATE_FIELDS:
            msg = (
                f"{context}: unknown placeholder '{{{field_name}}}' in template, "
                f"must be one of {sorted(TEMPLATE_FIELDS)}"
            )
            raise MalformedTemplateError(msg)

    # Format specs and conversions are only checked when applied.
    try:
        template.format(snippet="", line=1, file="", name="")
    except (ValueError, KeyError, IndexError) as exc:
        msg = f"{context}: malformed template {template!r}: {exc}"
        raise MalformedTemplateError(msg) from exc
    return template


# ---------------------------------------------------------------------------
# Matcher parsing
# ---------------------------------------------------------------------------


def _parse_pattern(data: Mapping[str, object], ctx: str) -> PatternSpec:
    ignore_case = bool(data.get("ignore_case", False))
    return PatternSpec(
        regex=_compile(data.get("regex"), f"{ctx}.regex", ignore_case=ignore_case),
        exclude=_optional_regex(data, "exclude", ctx, ignore_case=ignore_case),
        include_comments=bool(data.get("include_comments", False)),
    )


def _parse_naming(data: Mapping[str, object], ctx: str) -> NamingSpec:
    declaration = _compile(data.get("declaration"), f"{ctx}.declaration")
    if "name" not in declaration.groupindex:
        msg = f"{ctx}.declaration must define a named group '(?P<name>...)'"
        raise ConfigError(msg)

    require = _optional_regex(data, "require", ctx)
    forbid = _optional_regex(data, "forbid", ctx)
    if require is None and forbid is None:
        msg = f"{ctx}: naming matcher needs at least one of 'require' or 'forbid'"
        raise ConfigError(msg)

    contexts = _string_tuple(data.get("contexts"), f"{ctx}.contexts")
    for item in contexts:
        if item not in NAMING_CONTEXTS:
            msg = (
                f"{ctx}.contexts: invalid context '{item}', "
                f"must be one of {sorted(NAMING_CONTEXTS)}"
            )
            raise ConfigError(msg)

    return NamingSpec(
        declaration=declaration,
        require=require,
        forbid=forbid,
        contexts=contexts,
        exclude=_optional_regex(data, "exclude", ctx),
    )


def _parse_closure_capture(data: Mapping[str, object], ctx: str) -> ClosureCaptureSpec:
    references = _string_tuple(data.get("references", ["self"]), f"{ctx}.references")
    if not references:
        msg = f"{ctx}.references must not be empty"
        raise ConfigError(msg)
    capture = _optional_regex(data, "capture", ctx) or CLOSURE_DEFAULT_CAPTURE
    return ClosureCaptureSpec(
        references=references,
        capture=capture,
        ignore_callees=_string_tuple(data.get("ignore_callees"), f"{ctx}.ignore_callees"),
        skip_value_types=bool(data.get("skip_value_types", True)),
        value_type_keywords=_string_tuple(
            data.get("value_type_keywords", ["struct", "enum"]), f"{ctx}.value_type_keywords"
        ),
    )


def _parse_empty_block(data: Mapping[str, object], ctx: str) -> EmptyBlockSpec:
    return EmptyBlockSpec(
        header=_compile(data.get("header"), f"{ctx}.header"),
        comments_count_as_body=bool(data.get("comments_count_as_body", False)),
    )


def _parse_scoped_pattern(data: Mapping[str, object], ctx: str) -> ScopedPatternSpec:
    return ScopedPatternSpec(
        scope=_compile(data.get("scope"), f"{ctx}.scope"),
        regex=_compile(data.get("regex"), f"{ctx}.regex"),
        header_window=_positive_int(data.get("header_window", 2), f"{ctx}.header_window"),
        members_only=bool(data.get("members_only", True)),
    )


def _parse_co_annotation(data: Mapping[str, object], ctx: str) -> CoAnnotationSpec:
    direction = str(data.get("direction", "before"))
    if direction not in CO_ANNOTATION_DIRECTIONS:
        msg = (
            f"{ctx}.direction: invalid value '{direction}', "
            f"must be one of {sorted(CO_ANNOTATION_DIRECTIONS)}"
        )
        raise ConfigError(msg)
    return CoAnnotationSpec(
        target=_compile(data.get("target"), f"{ctx}.target"),
        required=_compile(data.get("required"), f"{ctx}.required"),
        trigger=_optional_regex(data, "trigger", ctx),
        window=_positive_int(data.get("window", 2), f"{ctx}.window"),
        direction=direction,
    )


def _parse_metric(data: Mapping[str, object], ctx: str) -> MetricSpec:
    measure = str(data.get("measure", ""))
    if measure not in METRIC_MEASURES:
        msg = f"{ctx}.measure: invalid value '{measure}', must be one of {sorted(METRIC_MEASURES)}"
        raise ConfigError(msg)
    return MetricSpec(measure=measure, max=_positive_int(data.get("max"), f"{ctx}.max"))


_MATCHER_PARSERS = {
    "pattern": _parse_pattern,
    "naming": _parse_naming,
    "closure_capture": _parse_closure_capture,
    "empty_block": _parse_empty_block,
    "scoped_pattern": _parse_scoped_pattern,
    "co_annotation": _parse_co_annotation,
    "metric": _parse_metric,
}


def _parse_matcher(rule_id: str, data: object) -> tuple[str, MatcherSpec]:
    ctx = f"Rule '{rule_id}' matcher"
    if not isinstance(data, dict):
        msg = f"{ctx} must be a mapping with a 'kind' key"
        raise ConfigError(msg)

    kind = data.get("kind")
    if not isinstance(kind, str) or kind not in MATCHER_KINDS:
        msg = f"{ctx}: unknown matcher kind {kind!r}, must be one of {sorted(MATCHER_KINDS)}"
        raise UnknownMatcherKindError(msg)

    return kind, _MATCHER_PARSERS[kind](data, ctx)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_rules(data: object, *, source: str = "rules.yml") -> RuleSet:
    """Validate an already-parsed rule document and build a RuleSet.

    Raises a :class:`ConfigError` subclass on the first invalid descriptor.
    """
    if not isinstance(data, dict):
        msg = f"{source} must be a YAML mapping"
        raise ConfigError(msg)

    version = data.get("version")
    if version is None:
        msg = f"{source}: missing required 'version' field"
        raise ConfigError(msg)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        msg = (
            f"{source}: unsupported version {version}, "
            f"expected one of {sorted(SUPPORTED_SCHEMA_VERSIONS)}"
        )
        raise ConfigError(msg)

    rules_data = data.get("rules", [])
    if not isinstance(rules_data, list):
        msg = f"{source}: 'rules' must be a list"
        raise ConfigError(msg)

    seen_ids: set[str] = {LOAD_ERROR_RULE_ID}
    rules: list[Rule] = []

    for idx, rule_data in enumerate(rules_data):
        if not isinstance(rule_data, dict):
            msg = f"{source}: rule at index {idx} must be a mapping"
            raise ConfigError(msg)

        rule_id = rule_data.get("id")
        if not isinstance(rule_id, str) or not rule_id.strip():
            msg = f"{source}: rule at index {idx} missing required 'id' field"
            raise ConfigError(msg)

        if rule_id in seen_ids:
            msg = f"{source}: duplicate rule id '{rule_id}'"
            raise DuplicateRuleIdError(msg)
        seen_ids.add(rule_id)

        category = str(rule_data.get("category", ""))
        if category not in VALID_CATEGORIES:
            msg = (
                f"{source}: rule '{rule_id}' has invalid category '{category}', "
                f"must be one of {sorted(VALID_CATEGORIES)}"
            )
            raise ConfigError(msg)

        severity = str(rule_data.get("severity", "warning"))
        if severity not in VALID_SEVERITIES:
            msg = (
                f"{source}: rule '{rule_id}' has invalid severity '{severity}', "
                f"must be one of {sorted(VALID_SEVERITIES)}"
            )
            raise ConfigError(msg)

        kind, matcher = _parse_matcher(rule_id, rule_data.get("matcher"))

        message = rule_data.get("message")
        if not isinstance(message, str) or not message.strip():
            msg = f"{source}: rule '{rule_id}' missing required 'message' template"
            raise ConfigError(msg)
        fix = rule_data.get("fix", "")
        if not isinstance(fix, str):
            msg = f"{source}: rule '{rule_id}' 'fix' must be a string"
            raise ConfigError(msg)

        rules.append(
            Rule(
                id=rule_id,
                category=category,
                severity=severity,
                kind=kind,
                matcher=matcher,
                message=_validate_template(message, f"Rule '{rule_id}' message"),
                fix=_validate_template(fix, f"Rule '{rule_id}' fix"),
                description=str(rule_data.get("description", "")),
                files=_string_tuple(rule_data.get("files"), f"Rule '{rule_id}' files"),
                priority=idx,
            )
        )

    return RuleSet(tuple(rules))


def load_rules(rules_path: Path) -> RuleSet:
    """Parse a rules YAML file and return a validated RuleSet."""
    try:
        with rules_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"Cannot read rules file {rules_path}: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"{rules_path.name}: invalid YAML: {exc}"
        raise ConfigError(msg) from exc

    return parse_rules(data, source=rules_path.name)


def default_rules_text() -> str:
    """Return the YAML text of the bundled rule set."""
    resource = resources.files("praxis.rules").joinpath(DEFAULT_RULES_RESOURCE)
    return resource.read_text(encoding="utf-8")


def load_default_rules() -> RuleSet:
    """Load the bundled rule set shipped with the package."""
    return parse_rules(yaml.safe_load(default_rules_text()), source=DEFAULT_RULES_RESOURCE)


def apply_overrides(
    rule_set: RuleSet,
    *,
    severity_overrides: Mapping[str, str] | None = None,
    disabled: Iterable[str] = (),
) -> RuleSet:
    """Return a new RuleSet with per-project severity overrides and disabled rules applied.

    Raises :class:`UnknownRuleIdError` when an override names a rule that is
    not loaded, and :class:`ConfigError` for an invalid severity value.
    """
    overrides = dict(severity_overrides or {})
    disabled_ids = set(disabled)

    for rule_id in sorted(set(overrides) | disabled_ids):
        if rule_id not in rule_set:
            msg = f"Override references unknown rule id '{rule_id}'"
            raise UnknownRuleIdError(msg)
    for rule_id, severity in sorted(overrides.items()):
        if severity not in VALID_SEVERITIES:
            msg = (
                f"Override for rule '{rule_id}' has invalid severity '{severity}', "
                f"must be one of {sorted(VALID_SEVERITIES)}"
            )
            raise ConfigError(msg)
    if LOAD_ERROR_RULE_ID in disabled_ids:
        msg = f"The built-in rule '{LOAD_ERROR_RULE_ID}' cannot be disabled"
        raise ConfigError(msg)

    rules: list[Rule] = []
    for rule in rule_set:
        if rule.id in disabled_ids:
            continue
        if rule.id in overrides:
            rule = replace(rule, severity=overrides[rule.id])
        rules.append(rule)
    return RuleSet(tuple(rules))
