"""Structured error types for the fieldrules validation engine.

Two classes of failure exist:

- Field-level failures (FieldError) are expected and recoverable. They are
  collected, in traversal order, into a ValidationErrors sequence that the
  caller inspects; an empty sequence means the value is valid.
- Configuration errors (ConfigurationError) signal a programming or setup
  defect: an unknown rule name, a cyclic alias, a malformed parameter, a
  malformed rule string or schema, or a value nested deeper than the guard
  allows. They are raised and abort the whole validation call.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fieldrules.types import ConfigErrorKind


def format_message(namespace: str, field: str, tag: str) -> str:
    """Build the human-readable message for a failed rule.

    Examples:
        >>> format_message("LoginRequest.Username", "Username", "email")
        "Key: 'LoginRequest.Username' Error:Field validation for 'Username' failed on the 'email' tag"
    """
    return (
        f"Key: '{namespace}' Error:Field validation for '{field}' "
        f"failed on the '{tag}' tag"
    )


@dataclass(frozen=True)
class FieldError:
    """A single field validation failure.

    Attributes:
        path: Dotted path relative to the validated value (e.g. "address.street",
            "hobbies[0]"); empty for a standalone value
        namespace: Path prefixed with the top-level type name
            (e.g. "RegisterRequest.address.street")
        field: Display name of the failing field or element (e.g. "street", "hobbies[0]")
        struct_field: Attribute name of the failing field (e.g. "Street")
        tag: Tag as written in the rule string (alias name if expanded from one)
        actual_tag: Rule that actually failed
        param: Rule parameter, empty when the rule has none
        value: The offending value
        message: Human-readable error description

    Examples:
        >>> err = FieldError(
        ...     path="Username",
        ...     namespace="LoginRequest.Username",
        ...     field="Username",
        ...     struct_field="Username",
        ...     tag="email",
        ...     actual_tag="email",
        ...     value="andi",
        ... )
        >>> err.message
        "Key: 'LoginRequest.Username' Error:Field validation for 'Username' failed on the 'email' tag"
    """
    path: str
    namespace: str
    field: str
    struct_field: str
    tag: str
    actual_tag: str
    param: str = ""
    value: Any = None
    message: str = ""

    def __post_init__(self):
        if not self.message:
            object.__setattr__(
                self, "message", format_message(self.namespace, self.field, self.tag)
            )

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "path": self.path,
            "namespace": self.namespace,
            "field": self.field,
            "structField": self.struct_field,
            "tag": self.tag,
            "actualTag": self.actual_tag,
            "message": self.message,
        }
        if self.param:
            result["param"] = self.param
        if self.value is not None:
            result["value"] = self.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        return cls(
            path=data["path"],
            namespace=data.get("namespace", data["path"]),
            field=data["field"],
            struct_field=data.get("structField", data["field"]),
            tag=data["tag"],
            actual_tag=data.get("actualTag", data["tag"]),
            param=data.get("param", ""),
            value=data.get("value"),
            message=data.get("message", ""),
        )


class ValidationErrors(List[FieldError]):
    """Ordered sequence of field failures produced by one validation call.

    Insertion order is traversal order. An empty sequence means success, so
    the result can be tested for truthiness directly.

    Examples:
        >>> errors = ValidationErrors()
        >>> errors.is_valid
        True
        >>> bool(errors)
        False
    """

    @property
    def is_valid(self) -> bool:
        return not self

    def paths(self) -> List[str]:
        """Paths of the failing fields, in traversal order."""
        return [error.path for error in self]

    def by_path(self, path: str) -> Optional[FieldError]:
        """Return the first error reported for ``path``, if any."""
        for error in self:
            if error.path == path:
                return error
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self],
        }

    def __str__(self) -> str:
        return "\n".join(error.message for error in self)


class ConfigurationError(Exception):
    """Raised when validation cannot proceed because of a setup defect.

    The validation call that raised it produces no result at all: partial
    field errors gathered before the failure are discarded.

    Attributes:
        kind: Category of the defect
        tag: The rule string being parsed or evaluated, if known
        rule: The rule name involved, if known
        message: Human-readable error message
    """

    def __init__(
        self,
        kind: ConfigErrorKind,
        message: str,
        tag: Optional[str] = None,
        rule: Optional[str] = None,
    ):
        self.kind = kind
        self.tag = tag
        self.rule = rule
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.tag is not None:
            result["tag"] = self.tag
        if self.rule is not None:
            result["rule"] = self.rule
        return result


__all__ = [
    "format_message",
    "FieldError",
    "ValidationErrors",
    "ConfigurationError",
]
