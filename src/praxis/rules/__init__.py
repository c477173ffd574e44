"""Rule model - rule dataclasses, YAML loading, and the bundled rule set."""

from praxis.rules.loader import (
    ConfigError,
    DuplicateRuleIdError,
    MalformedTemplateError,
    UnknownMatcherKindError,
    UnknownRuleIdError,
    apply_overrides,
    default_rules_text,
    load_default_rules,
    load_rules,
    parse_rules,
)
from praxis.rules.model import (
    CATEGORIES,
    LOAD_ERROR_RULE_ID,
    ClosureCaptureSpec,
    CoAnnotationSpec,
    EmptyBlockSpec,
    MetricSpec,
    NamingSpec,
    PatternSpec,
    Rule,
    RuleSet,
    ScopedPatternSpec,
)

__all__ = [
    "CATEGORIES",
    "LOAD_ERROR_RULE_ID",
    "ClosureCaptureSpec",
    "CoAnnotationSpec",
    "ConfigError",
    "DuplicateRuleIdError",
    "EmptyBlockSpec",
    "MalformedTemplateError",
    "MetricSpec",
    "NamingSpec",
    "PatternSpec",
    "Rule",
    "RuleSet",
    "ScopedPatternSpec",
    "UnknownMatcherKindError",
    "UnknownRuleIdError",
    "apply_overrides",
    "default_rules_text",
    "load_default_rules",
    "load_rules",
    "parse_rules",
]
