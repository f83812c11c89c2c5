"""Built-in validation rules and the FieldContext passed to every rule.

A rule is a plain function ``fn(ctx: FieldContext) -> bool`` returning True
when the value passes. String rules simply fail on values that are not
strings. Rules raise ConfigurationError only when they are misconfigured
(for instance a ``min`` parameter that is not a number, or ``min`` applied to
an object with no length), which aborts the whole validation call.
"""

import datetime as dt
import functools
import numbers
import re
from collections.abc import Sized
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple, Union
from urllib.parse import urlparse

from dateutil import parser as date_parser
from typing_extensions import TypeAlias

from fieldrules.errors import ConfigurationError
from fieldrules.types import ConfigErrorKind

Number = Union[int, float]

DIGITS_RE = re.compile(r"[0-9]+")
ALPHA_RE = re.compile(r"[a-zA-Z]+")
ALPHANUM_RE = re.compile(r"[a-zA-Z0-9]+")
EMAIL_RE = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+"
)
ONEOF_RE = re.compile(r"'[^']*'|\S+")


@dataclass(frozen=True)
class SiblingField:
    """Result of looking up another field from inside a rule.

    Attributes:
        value: The sibling's value (None when not found)
        name: Attribute name that was looked up
        display_name: Name the sibling is reported under
        found: Whether the sibling exists
    """
    value: Any
    name: str
    display_name: str
    found: bool


Resolver = Callable[[Any, str], SiblingField]


class FieldContext:
    """Everything a rule may inspect while evaluating one value.

    Created per rule invocation and discarded afterwards.

    Attributes:
        value: The value under validation
        param: The rule parameter ("" when the rule has none)
        parent: The structured value holding the field (or the "other" value
            of ``var_with_value``)
        top: The top-level value passed to the validator
        field_name: Display name of the field
        struct_field_name: Attribute name of the field
        path: Path of the field relative to the top-level value
    """

    __slots__ = (
        "value",
        "param",
        "rule",
        "parent",
        "top",
        "field_name",
        "struct_field_name",
        "path",
        "_resolver",
    )

    def __init__(
        self,
        value: Any,
        param: str = "",
        rule: str = "",
        parent: Any = None,
        top: Any = None,
        field_name: str = "",
        struct_field_name: str = "",
        path: str = "",
        resolver: Optional[Resolver] = None,
    ) -> None:
        self.value = value
        self.param = param
        self.rule = rule
        self.parent = parent
        self.top = top
        self.field_name = field_name
        self.struct_field_name = struct_field_name
        self.path = path
        self._resolver = resolver

    def param_int(self) -> int:
        """Parse the parameter as an int.

        Raises:
            ConfigurationError: BAD_PARAMETER if it is not an integer
        """
        try:
            return int(self.param.strip())
        except ValueError as exc:
            raise ConfigurationError(
                ConfigErrorKind.BAD_PARAMETER,
                f"Rule '{self.rule}' expects an integer parameter, got '{self.param}'",
                rule=self.rule,
            ) from exc

    def param_number(self) -> Number:
        """Parse the parameter as an int when possible, otherwise a float.

        Raises:
            ConfigurationError: BAD_PARAMETER if it is not a number
        """
        text = self.param.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError as exc:
            raise ConfigurationError(
                ConfigErrorKind.BAD_PARAMETER,
                f"Rule '{self.rule}' expects a numeric parameter, got '{self.param}'",
                rule=self.rule,
            ) from exc

    def lookup_field(self, name: Optional[str] = None) -> SiblingField:
        """Look up a sibling field of the current one.

        Args:
            name: Attribute name, or dotted path relative to the parent;
                defaults to the rule parameter. An empty name refers to the
                parent itself, which is how ``var_with_value`` exposes its
                second value.
        """
        if name is None:
            name = self.param
        if self._resolver is None:
            return SiblingField(value=None, name=name, display_name=name, found=False)
        return self._resolver(self.parent, name)

    def type_error(self) -> ConfigurationError:
        """Build the error raised when a rule cannot handle the value's type."""
        return ConfigurationError(
            ConfigErrorKind.INVALID_TARGET,
            f"Rule '{self.rule}' cannot be applied to '{self.path or self.field_name}' "
            f"of type {type(self.value).__name__}",
            rule=self.rule,
        )


RuleFunc: TypeAlias = Callable[[FieldContext], bool]


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def is_empty(value: Any) -> bool:
    """Whether ``value`` is absent or the zero value of its type."""
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if is_number(value):
        return value == 0
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def _measure(ctx: FieldContext) -> Number:
    """Length of strings and collections, the value itself for numbers."""
    value = ctx.value
    if is_number(value):
        return value
    if isinstance(value, Sized):
        return len(value)
    raise ctx.type_error()


def _bound(ctx: FieldContext) -> Number:
    if is_number(ctx.value):
        return ctx.param_number()
    return ctx.param_int()


def _text_rule(check: Callable[[FieldContext, str], bool]) -> RuleFunc:
    """Wrap a string check so that any non-string value simply fails it."""

    @functools.wraps(check)
    def rule(ctx: FieldContext) -> bool:
        if not isinstance(ctx.value, str):
            return False
        return check(ctx, ctx.value)

    return rule


def has_value(ctx: FieldContext) -> bool:
    return not is_empty(ctx.value)


def is_default(ctx: FieldContext) -> bool:
    return is_empty(ctx.value)


def has_min_of(ctx: FieldContext) -> bool:
    return _measure(ctx) >= _bound(ctx)


def has_max_of(ctx: FieldContext) -> bool:
    return _measure(ctx) <= _bound(ctx)


def has_length_of(ctx: FieldContext) -> bool:
    return _measure(ctx) == _bound(ctx)


def is_gt(ctx: FieldContext) -> bool:
    return _measure(ctx) > _bound(ctx)


def is_gte(ctx: FieldContext) -> bool:
    return _measure(ctx) >= _bound(ctx)


def is_lt(ctx: FieldContext) -> bool:
    return _measure(ctx) < _bound(ctx)


def is_lte(ctx: FieldContext) -> bool:
    return _measure(ctx) <= _bound(ctx)


def _equals_param(ctx: FieldContext) -> bool:
    value = ctx.value
    if isinstance(value, str):
        return value == ctx.param
    if isinstance(value, bool):
        return value == (ctx.param.strip().lower() == "true")
    return _measure(ctx) == _bound(ctx)


def is_eq(ctx: FieldContext) -> bool:
    return _equals_param(ctx)


def is_ne(ctx: FieldContext) -> bool:
    return not _equals_param(ctx)


def is_one_of(ctx: FieldContext) -> bool:
    options = [option.strip("'") for option in ONEOF_RE.findall(ctx.param)]
    value = ctx.value
    if isinstance(value, str):
        return value in options
    if is_number(value):
        return str(value) in options
    raise ctx.type_error()


def is_numeric(ctx: FieldContext) -> bool:
    if is_number(ctx.value):
        return True
    return isinstance(ctx.value, str) and DIGITS_RE.fullmatch(ctx.value) is not None


@_text_rule
def is_alpha(ctx: FieldContext, text: str) -> bool:
    return ALPHA_RE.fullmatch(text) is not None


@_text_rule
def is_alphanum(ctx: FieldContext, text: str) -> bool:
    return ALPHANUM_RE.fullmatch(text) is not None


@_text_rule
def is_lowercase(ctx: FieldContext, text: str) -> bool:
    return bool(text) and text == text.lower()


@_text_rule
def is_uppercase(ctx: FieldContext, text: str) -> bool:
    return bool(text) and text == text.upper()


@_text_rule
def contains(ctx: FieldContext, text: str) -> bool:
    return ctx.param in text


@_text_rule
def starts_with(ctx: FieldContext, text: str) -> bool:
    return text.startswith(ctx.param)


@_text_rule
def ends_with(ctx: FieldContext, text: str) -> bool:
    return text.endswith(ctx.param)


@_text_rule
def is_email(ctx: FieldContext, text: str) -> bool:
    return EMAIL_RE.fullmatch(text) is not None


@_text_rule
def is_url(ctx: FieldContext, text: str) -> bool:
    parsed = urlparse(text)
    if not parsed.scheme:
        return False
    if parsed.scheme == "file":
        return bool(parsed.path)
    return bool(parsed.netloc)


@_text_rule
def is_datetime(ctx: FieldContext, text: str) -> bool:
    """Without a parameter the value must be ISO 8601; otherwise it must match
    the strftime-style format given as parameter."""
    try:
        if ctx.param:
            dt.datetime.strptime(text, ctx.param)
        else:
            date_parser.isoparse(text)
    except ValueError:
        return False
    return True


def _ordered(left: Any, right: Any) -> Optional[Tuple[Any, Any]]:
    """Return comparable forms of two field values, or None."""
    if is_number(left) and is_number(right):
        return left, right
    if isinstance(left, (dt.date, dt.time)) and type(left) is type(right):
        return left, right
    if isinstance(left, Sized) and isinstance(right, Sized):
        return len(left), len(right)
    return None


def _compare_field(ctx: FieldContext, op: Callable[[Any, Any], bool]) -> bool:
    sibling = ctx.lookup_field()
    if not sibling.found:
        return False
    pair = _ordered(ctx.value, sibling.value)
    if pair is None:
        return False
    return op(*pair)


def _same_value(left: Any, right: Any) -> bool:
    # 1, 1.0 and True compare equal in Python but are different values here.
    return type(left) is type(right) and left == right


def is_eq_field(ctx: FieldContext) -> bool:
    sibling = ctx.lookup_field()
    return sibling.found and _same_value(ctx.value, sibling.value)


def is_ne_field(ctx: FieldContext) -> bool:
    sibling = ctx.lookup_field()
    return not sibling.found or not _same_value(ctx.value, sibling.value)


def is_gt_field(ctx: FieldContext) -> bool:
    return _compare_field(ctx, lambda a, b: a > b)


def is_gte_field(ctx: FieldContext) -> bool:
    return _compare_field(ctx, lambda a, b: a >= b)


def is_lt_field(ctx: FieldContext) -> bool:
    return _compare_field(ctx, lambda a, b: a < b)


def is_lte_field(ctx: FieldContext) -> bool:
    return _compare_field(ctx, lambda a, b: a <= b)


BUILTIN_RULES: Dict[str, RuleFunc] = {
    "required": has_value,
    "isdefault": is_default,
    "min": has_min_of,
    "max": has_max_of,
    "len": has_length_of,
    "eq": is_eq,
    "ne": is_ne,
    "gt": is_gt,
    "gte": is_gte,
    "lt": is_lt,
    "lte": is_lte,
    "oneof": is_one_of,
    "numeric": is_numeric,
    "number": is_numeric,
    "alpha": is_alpha,
    "alphanum": is_alphanum,
    "lowercase": is_lowercase,
    "uppercase": is_uppercase,
    "contains": contains,
    "startswith": starts_with,
    "endswith": ends_with,
    "email": is_email,
    "url": is_url,
    "datetime": is_datetime,
    "eqfield": is_eq_field,
    "nefield": is_ne_field,
    "gtfield": is_gt_field,
    "gtefield": is_gte_field,
    "ltfield": is_lt_field,
    "ltefield": is_lte_field,
}

# Rules that are evaluated even when the value is None.
NONE_AWARE_RULES: FrozenSet[str] = frozenset({"required", "isdefault"})


__all__ = [
    "SiblingField",
    "FieldContext",
    "RuleFunc",
    "is_empty",
    "is_number",
    "BUILTIN_RULES",
    "NONE_AWARE_RULES",
]
