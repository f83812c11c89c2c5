"""Core type definitions for the fieldrules validation engine.

This module defines the fundamental types used throughout fieldrules:
- ConfigErrorKind: Categories of configuration errors that abort a validation call
- RuleToken: A single parsed rule invocation (name + optional parameter)
- RuleGroup: Alternatives joined with ``|`` that are OR'd together
- FieldRuleSet: The fully parsed rule string of one field
- DiveSpec: Rules applied to the keys and elements of a container
- FieldSpec / StructSpec: The cached per-type field descriptor table

Parsed types are immutable so that a cached rule set can be shared by any
number of concurrent validation calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Tuple

from typing_extensions import TypeAlias


class ConfigErrorKind(str, Enum):
    """Configuration error categories.

    A configuration error signals a programming or setup defect rather than
    bad input data, so it aborts the whole validation call.
    """
    UNKNOWN_RULE = "unknown_rule"
    ALIAS_CYCLE = "alias_cycle"
    INVALID_TAG = "invalid_tag"
    BAD_PARAMETER = "bad_parameter"
    MAX_DEPTH = "max_depth"
    INVALID_SCHEMA = "invalid_schema"
    INVALID_TARGET = "invalid_target"
    RULE_FAILURE = "rule_failure"


@dataclass(frozen=True)
class RuleToken:
    """A single rule invocation parsed from a rule string.

    Attributes:
        name: Registered rule name (e.g. "min", "eqfield")
        param: Optional parameter text following ``=`` (e.g. "5", "Password")
        alias: Alias name this token was expanded from, if any

    Examples:
        >>> token = RuleToken(name="min", param="5")
        >>> token.tag
        'min'
        >>> RuleToken(name="required", alias="varchar").tag
        'varchar'
    """
    name: str
    param: Optional[str] = None
    alias: Optional[str] = None

    @property
    def tag(self) -> str:
        """Tag reported on failure: the alias name when expanded from one."""
        return self.alias or self.name


@dataclass(frozen=True)
class RuleGroup:
    """Alternatives OR'd together, evaluated left to right.

    Attributes:
        tokens: The alternatives, in declaration order
        text: The group's source text, reported as the tag of a failed alternation
    """
    tokens: Tuple[RuleToken, ...]
    text: str

    @property
    def is_alternation(self) -> bool:
        return len(self.tokens) > 1


@dataclass(frozen=True)
class DiveSpec:
    """Rules applied to the contents of a sequence or mapping.

    Attributes:
        elements: Rules for each element (sequence) or value (mapping)
        keys: Rules for each key; only set for ``dive,keys,...,endkeys``
    """
    elements: "FieldRuleSet"
    keys: Optional["FieldRuleSet"] = None


@dataclass(frozen=True)
class FieldRuleSet:
    """The parsed form of one rule string.

    Groups are AND'd in sequence; evaluation stops at the first failing group.

    Attributes:
        groups: Rule groups applied to the value itself
        omit_empty: Skip every rule when the value is empty
        skip: The field is excluded from validation entirely (tag ``-``)
        dive: Rules applied to contained elements, if any
    """
    groups: Tuple[RuleGroup, ...] = ()
    omit_empty: bool = False
    skip: bool = False
    dive: Optional[DiveSpec] = None


EMPTY_RULES = FieldRuleSet()
SKIP_RULES = FieldRuleSet(skip=True)


@dataclass(frozen=True)
class FieldSpec:
    """Descriptor of one field of a structured type.

    Attributes:
        name: Attribute or key name used to read the value
        display_name: Name used in error paths (see ``register_tag_name_func``)
        rules: Parsed rules for the field
    """
    name: str
    display_name: str
    rules: FieldRuleSet


@dataclass(frozen=True)
class StructSpec:
    """Cached descriptor table for a structured type.

    Attributes:
        type_name: Name used as the first namespace segment
        fields: Field descriptors in declaration order
    """
    type_name: str
    fields: Tuple[FieldSpec, ...]


TagNameFunc: TypeAlias = Callable[[str, Mapping[str, Any]], Optional[str]]
"""Maps a field name and its metadata to the name used in error paths.

Returning None (or an empty string) keeps the attribute name; returning "-"
excludes the field from validation.
"""


__all__ = [
    "ConfigErrorKind",
    "RuleToken",
    "RuleGroup",
    "DiveSpec",
    "FieldRuleSet",
    "EMPTY_RULES",
    "SKIP_RULES",
    "FieldSpec",
    "StructSpec",
    "TagNameFunc",
]
