"""Field descriptor tables for structured values.

Rules for a type come from one of two places:

- dataclass field metadata, e.g. ``field(metadata={"validate": "required,email"})``
- an explicit mapping registered with ``Validator.register_schema(cls, {...})``,
  which works for any class and takes precedence over dataclass metadata

Rule mappings handed to the engine (registered schemas and the rules given to
``Validator.validate_map``) are checked against a JSON Schema before use, so a
malformed mapping fails fast with an INVALID_SCHEMA configuration error instead
of surfacing later as a confusing rule failure.
"""

import dataclasses
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jsonschema import Draft7Validator

from fieldrules.errors import ConfigurationError
from fieldrules.types import ConfigErrorKind

# Rules registered for a class: field name -> rule string
FIELD_RULES_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "propertyNames": {"minLength": 1},
    "additionalProperties": {"type": "string"},
}

# Rules for validate_map: key -> rule string, or a nested rules mapping
MAP_RULES_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "propertyNames": {"minLength": 1},
    "additionalProperties": {
        "anyOf": [
            {"type": "string"},
            {"$ref": "#"},
        ]
    },
}

_field_rules_checker = Draft7Validator(FIELD_RULES_SCHEMA)
_map_rules_checker = Draft7Validator(MAP_RULES_SCHEMA)


def _check(checker: Draft7Validator, rules: Any, what: str) -> None:
    error = next(iter(checker.iter_errors(rules)), None)
    if error is None:
        return
    location = ".".join(str(p) for p in error.path) or "<root>"
    raise ConfigurationError(
        ConfigErrorKind.INVALID_SCHEMA,
        f"Invalid {what} at '{location}': {error.message}",
    )


def check_field_rules(rules: Any) -> None:
    """Check a ``register_schema`` mapping.

    Raises:
        ConfigurationError: INVALID_SCHEMA if ``rules`` is not a mapping of
            field name to rule string
    """
    _check(_field_rules_checker, rules, "field rules")


def check_map_rules(rules: Any) -> None:
    """Check a ``validate_map`` rules mapping.

    Raises:
        ConfigurationError: INVALID_SCHEMA if ``rules`` is not a (possibly
            nested) mapping of key to rule string
    """
    _check(_map_rules_checker, rules, "map rules")


def describe_fields(
    cls: type,
    schema: Optional[Mapping[str, str]],
    tag_key: str,
) -> List[Tuple[str, str, Mapping[str, Any]]]:
    """List ``(name, rule string, metadata)`` for each field of ``cls``.

    Fields come back in declaration order. Dataclass fields without rules
    are listed with an empty rule string so nested values are still walked.

    Raises:
        ConfigurationError: INVALID_TARGET if ``cls`` is neither a dataclass
            nor a class with a registered schema
    """
    if schema is not None:
        return [(name, tag, {}) for name, tag in schema.items()]
    if dataclasses.is_dataclass(cls):
        return [
            (f.name, f.metadata.get(tag_key, ""), f.metadata)
            for f in dataclasses.fields(cls)
        ]
    raise ConfigurationError(
        ConfigErrorKind.INVALID_TARGET,
        f"{cls.__name__} is not a dataclass and has no registered schema",
    )


__all__ = [
    "FIELD_RULES_SCHEMA",
    "MAP_RULES_SCHEMA",
    "check_field_rules",
    "check_map_rules",
    "describe_fields",
]
