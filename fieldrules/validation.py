"""Validation engine for fieldrules.

This module provides the Validator: it parses rule strings (once per type and
field, cached for the validator's lifetime), walks structured values depth
first in declaration order, evaluates each rule and collects failures into a
ValidationErrors sequence.

Per top-level call the engine moves through two phases per structured value:
field validation, then (only when every field of that value, including nested
values, passed) the struct-level hook registered for its class.

Configuration errors (unknown rules, alias cycles, bad parameters, excessive
nesting) abort the call: the caller receives either a complete, possibly empty,
ValidationErrors or a ConfigurationError, never a mixture.
"""

import re
import threading
from collections.abc import Iterable, Mapping, Set
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

import structlog

from fieldrules.errors import ConfigurationError, FieldError, ValidationErrors
from fieldrules.parser import TagParser
from fieldrules.registry import Registry, StructHook
from fieldrules.rules import FieldContext, RuleFunc, SiblingField, is_empty
from fieldrules.schema import check_map_rules, describe_fields
from fieldrules.types import (
    ConfigErrorKind,
    DiveSpec,
    FieldRuleSet,
    FieldSpec,
    RuleGroup,
    RuleToken,
    StructSpec,
    TagNameFunc,
)

logger = structlog.get_logger(__name__)

DEFAULT_TAG_KEY = "validate"
DEFAULT_MAX_DEPTH = 64

_INDEX_RE = re.compile(r"\[[^\]]*\]")


def _join(base: str, name: str) -> str:
    return f"{base}.{name}" if base else name


@dataclass(frozen=True)
class _Location:
    """Where a value sits relative to the top-level value."""
    path: str = ""
    namespace: str = ""
    field: str = ""
    struct_field: str = ""

    def child(self, display_name: str, name: str) -> "_Location":
        return _Location(
            path=_join(self.path, display_name),
            namespace=_join(self.namespace, display_name),
            field=display_name,
            struct_field=name,
        )

    def index(self, key: Any) -> "_Location":
        suffix = f"[{key}]"
        return _Location(
            path=self.path + suffix,
            namespace=self.namespace + suffix,
            field=self.field + suffix,
            struct_field=self.struct_field + suffix,
        )


class _Walk:
    """State of one top-level validation call."""

    def __init__(
        self,
        top: Any,
        include: Optional[FrozenSet[str]] = None,
        exclude: Optional[FrozenSet[str]] = None,
    ) -> None:
        self.top = top
        self.errors = ValidationErrors()
        self._include = include
        self._exclude = exclude

    def visits(self, path: str) -> bool:
        """Whether the field at ``path`` takes part in this call."""
        path = _INDEX_RE.sub("", path)
        if self._exclude is not None:
            return not any(path == p or path.startswith(p + ".") for p in self._exclude)
        if self._include is not None:
            return any(
                path == p or path.startswith(p + ".") or p.startswith(path + ".")
                for p in self._include
            )
        return True


class StructLevel:
    """Handle passed to struct-level hooks.

    Gives read access to the fully populated value and lets the hook report
    errors against it. Reported errors are appended to the result in the
    order reported, with paths relative to the value.

    Attributes:
        validator: The Validator running the hook
        current: The value the hook was registered for
        parent: The value holding ``current`` (``current`` itself at top level)
        top: The top-level value passed to the validator

    Examples:
        >>> def passwords_match(level):
        ...     if level.current.password != level.current.confirm:
        ...         level.report_error(level.current.confirm, "confirm", "confirm", "eqfield", "password")
    """

    def __init__(
        self,
        validator: "Validator",
        walk: _Walk,
        current: Any,
        parent: Any,
        location: _Location,
    ) -> None:
        self.validator = validator
        self.current = current
        self.parent = parent
        self.top = walk.top
        self._walk = walk
        self._location = location

    def report_error(
        self,
        value: Any,
        field_name: str,
        struct_field_name: str,
        tag: str,
        param: str = "",
    ) -> None:
        """Report a failure against a field of the current value.

        Args:
            value: The offending value
            field_name: Display name of the field ("" for the value as a whole)
            struct_field_name: Attribute name of the field
            tag: Tag describing the failed check
            param: Optional parameter of the check
        """
        location = self._location.child(field_name, struct_field_name) if field_name else self._location
        self._walk.errors.append(
            FieldError(
                path=location.path,
                namespace=location.namespace,
                field=location.field,
                struct_field=location.struct_field,
                tag=tag,
                actual_tag=tag,
                param=param,
                value=value,
            )
        )

    @property
    def errors(self) -> ValidationErrors:
        """Errors collected so far in this call."""
        return self._walk.errors


class Validator:
    """Tag-driven validator for standalone values and structured values.

    A Validator owns its rule registry and its parse caches. Configure it
    (register rules, aliases, hooks and schemas) before sharing it between
    threads; after that any number of threads may validate concurrently.

    Attributes:
        registry: Rules, aliases, struct hooks and schemas
        tag_key: Dataclass field metadata key holding the rule string
        max_depth: Nesting depth beyond which validation aborts

    Examples:
        >>> from dataclasses import dataclass, field
        >>> @dataclass
        ... class LoginRequest:
        ...     username: str = field(metadata={"validate": "required,email"})
        ...     password: str = field(metadata={"validate": "required,min=5,max=64"})
        >>> validator = Validator()
        >>> validator.struct(LoginRequest(username="andi@mail.com", password="password")).is_valid
        True
        >>> errors = validator.struct(LoginRequest(username="andi", password="asd"))
        >>> [(e.path, e.tag) for e in errors]
        [('username', 'email'), ('password', 'min')]
    """

    def __init__(self, tag_key: str = DEFAULT_TAG_KEY, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.registry = Registry()
        self.tag_key = tag_key
        self.max_depth = max_depth
        self._lock = threading.Lock()
        self._tag_cache: Dict[str, FieldRuleSet] = {}
        self._struct_cache: Dict[type, StructSpec] = {}

    # Configuration

    def register_rule(self, name: str, fn: RuleFunc, call_on_none: bool = False) -> None:
        """Add or override a named rule. See Registry.register_rule."""
        self.registry.register_rule(name, fn, call_on_none=call_on_none)
        self._clear_caches()

    def register_alias(self, name: str, tag: str) -> None:
        """Register ``name`` as shorthand for the rule string ``tag``."""
        self.registry.register_alias(name, tag)
        self._clear_caches()

    def register_struct_hook(self, cls: type, fn: StructHook) -> None:
        """Register a whole-object validation function for ``cls``."""
        self.registry.register_struct_hook(cls, fn)

    def register_schema(self, cls: type, rules: Mapping) -> None:
        """Declare the field rules of ``cls`` explicitly."""
        self.registry.register_schema(cls, rules)
        self._clear_caches()

    def register_tag_name_func(self, fn: Optional[TagNameFunc]) -> None:
        """Set the function naming fields in error paths.

        Examples:
            >>> validator = Validator()
            >>> validator.register_tag_name_func(lambda name, metadata: metadata.get("json"))
        """
        self.registry.register_tag_name_func(fn)
        self._clear_caches()

    def _clear_caches(self) -> None:
        with self._lock:
            self._tag_cache = {}
            self._struct_cache = {}

    # Caches

    def _parser(self) -> TagParser:
        return TagParser(self.registry.rules, self.registry.aliases)

    def rules_for(self, tag: str) -> FieldRuleSet:
        """Parse ``tag``, or return the cached parse.

        Raises:
            ConfigurationError: if the rule string is invalid
        """
        rule_set = self._tag_cache.get(tag)
        if rule_set is not None:
            return rule_set
        with self._lock:
            rule_set = self._tag_cache.get(tag)
            if rule_set is None:
                rule_set = self._parser().parse(tag)
                self._tag_cache[tag] = rule_set
                logger.debug("rules_parsed", tag=tag)
        return rule_set

    def struct_spec(self, cls: type) -> StructSpec:
        """Return the field descriptor table of ``cls``, building it on first use.

        Raises:
            ConfigurationError: if ``cls`` cannot be described or one of its
                rule strings is invalid
        """
        spec = self._struct_cache.get(cls)
        if spec is not None:
            return spec
        with self._lock:
            spec = self._struct_cache.get(cls)
            if spec is None:
                spec = self._build_struct_spec(cls)
                self._struct_cache[cls] = spec
                logger.debug("struct_spec_built", type=cls.__name__, fields=len(spec.fields))
        return spec

    def _build_struct_spec(self, cls: type) -> StructSpec:
        parser = self._parser()
        name_func = self.registry.tag_name_func
        fields = []
        for name, tag, metadata in describe_fields(cls, self.registry.schema_for(cls), self.tag_key):
            display_name = name
            if name_func is not None:
                custom = name_func(name, metadata)
                if custom == "-":
                    continue
                display_name = custom or name
            fields.append(FieldSpec(name=name, display_name=display_name, rules=parser.parse(tag)))
        return StructSpec(type_name=cls.__name__, fields=tuple(fields))

    # Public validation API

    def var(self, value: Any, tag: str) -> ValidationErrors:
        """Validate a standalone value against an inline rule string.

        Returns:
            Empty ValidationErrors when valid; otherwise the failures (at most
            one unless the rule string dives into a container)

        Examples:
            >>> Validator().var("andi", "required,alphanum").is_valid
            True
            >>> Validator().var("0815900141", "required,numeric,min=5,max=10").is_valid
            True
        """
        return self._run("var", value, lambda walk: self._var(walk, value, None, tag))

    def var_with_value(self, value: Any, other: Any, tag: str) -> ValidationErrors:
        """Validate ``value`` against rules that refer to a second value.

        Cross-field rules without a parameter (e.g. ``eqfield``) compare
        against ``other``.

        Examples:
            >>> Validator().var_with_value("password", "password", "eqfield").is_valid
            True
        """
        return self._run("var_with_value", value, lambda walk: self._var(walk, value, other, tag))

    def struct(self, value: Any) -> ValidationErrors:
        """Validate a structured value using its declared field rules.

        Raises:
            ConfigurationError: INVALID_TARGET if ``value`` is not structured,
                or any other configuration error met during the walk
        """
        return self._run_struct("struct", value, _Walk(value))

    def struct_partial(self, value: Any, *paths: str) -> ValidationErrors:
        """Validate only the fields at ``paths`` (dotted, relative to ``value``).

        Ancestors of the listed fields are validated too, so that a nested
        field can be reached; list indexes are ignored when matching.
        """
        return self._run_struct("struct_partial", value, _Walk(value, include=frozenset(paths)))

    def struct_except(self, value: Any, *paths: str) -> ValidationErrors:
        """Validate every field except those at ``paths`` and their descendants."""
        return self._run_struct("struct_except", value, _Walk(value, exclude=frozenset(paths)))

    def validate_map(self, data: Mapping, rules: Mapping) -> ValidationErrors:
        """Validate a mapping against a mapping of key -> rule string.

        A nested rules mapping validates the nested mapping stored under the
        same key.

        Examples:
            >>> errors = Validator().validate_map({"name": ""}, {"name": "required"})
            >>> errors.paths()
            ['name']
        """
        check_map_rules(rules)
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TARGET,
                f"validate_map expects a mapping, got {type(data).__name__}",
            )
        return self._run(
            "validate_map",
            data,
            lambda walk: self._validate_mapping(walk, data, rules, _Location(), 1),
        )

    def _run_struct(self, operation: str, value: Any, walk: _Walk) -> ValidationErrors:
        if not self.registry.is_structured(value):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TARGET,
                f"{operation} expects a dataclass instance or an instance of a "
                f"class with a registered schema, got {type(value).__name__}",
            )
        root = _Location(namespace=type(value).__name__)
        return self._run(
            operation,
            value,
            lambda _: self._validate_struct(walk, value, value, root, 1),
            walk=walk,
        )

    def _run(
        self,
        operation: str,
        value: Any,
        body: Callable[[_Walk], None],
        walk: Optional[_Walk] = None,
    ) -> ValidationErrors:
        walk = walk or _Walk(value)
        try:
            body(walk)
        except ConfigurationError as exc:
            logger.warning(
                "validation_aborted",
                operation=operation,
                kind=exc.kind.value,
                error=exc.message,
            )
            raise
        return walk.errors

    # Walker

    def _var(self, walk: _Walk, value: Any, other: Any, tag: str) -> None:
        self._validate_field(walk, value, other, self.rules_for(tag), _Location(), 1)

    def _check_depth(self, depth: int, location: _Location) -> None:
        if depth > self.max_depth:
            raise ConfigurationError(
                ConfigErrorKind.MAX_DEPTH,
                f"Maximum nesting depth {self.max_depth} exceeded at "
                f"'{location.namespace or '<root>'}'",
            )

    def _validate_struct(
        self,
        walk: _Walk,
        value: Any,
        parent: Any,
        location: _Location,
        depth: int,
    ) -> None:
        self._check_depth(depth, location)
        spec = self.struct_spec(type(value))
        errors_before = len(walk.errors)

        for field_spec in spec.fields:
            if field_spec.rules.skip:
                continue
            field_location = location.child(field_spec.display_name, field_spec.name)
            if not walk.visits(field_location.path):
                continue
            field_value = getattr(value, field_spec.name, None)
            self._validate_field(walk, field_value, value, field_spec.rules, field_location, depth)

        if len(walk.errors) > errors_before:
            return
        hook = self.registry.hook_for(type(value))
        if hook is not None:
            hook(StructLevel(self, walk, value, parent, location))

    def _validate_mapping(
        self,
        walk: _Walk,
        data: Mapping,
        rules: Mapping,
        location: _Location,
        depth: int,
    ) -> None:
        self._check_depth(depth, location)
        for key, rule in rules.items():
            field_location = location.child(key, key)
            value = data.get(key)
            if isinstance(rule, Mapping):
                if isinstance(value, Mapping):
                    self._validate_mapping(walk, value, rule, field_location, depth + 1)
                else:
                    walk.errors.append(
                        FieldError(
                            path=field_location.path,
                            namespace=field_location.namespace,
                            field=key,
                            struct_field=key,
                            tag="map",
                            actual_tag="map",
                            value=value,
                            message=f"Key: '{field_location.path}' Error:Field '{key}' is not a map to dive",
                        )
                    )
                continue
            self._validate_field(walk, value, data, self.rules_for(rule), field_location, depth)

    def _validate_field(
        self,
        walk: _Walk,
        value: Any,
        parent: Any,
        rules: FieldRuleSet,
        location: _Location,
        depth: int,
    ) -> None:
        if rules.skip:
            return
        if rules.omit_empty and is_empty(value):
            return

        if value is None:
            for group in rules.groups:
                tokens = tuple(t for t in group.tokens if self.registry.is_none_aware(t.name))
                if not tokens:
                    continue
                applicable = RuleGroup(tokens=tokens, text=group.text)
                if not self._run_group(walk, applicable, value, parent, location):
                    return
            return

        for group in rules.groups:
            if not self._run_group(walk, group, value, parent, location):
                return

        if rules.dive is not None:
            self._dive(walk, value, parent, rules.dive, location, depth + 1)
        elif self.registry.is_structured(value):
            self._validate_struct(walk, value, parent, location, depth + 1)

    def _dive(
        self,
        walk: _Walk,
        value: Any,
        parent: Any,
        dive: DiveSpec,
        location: _Location,
        depth: int,
    ) -> None:
        self._check_depth(depth, location)
        if isinstance(value, Mapping):
            for key, item in value.items():
                item_location = location.index(key)
                if dive.keys is not None:
                    self._validate_field(walk, key, parent, dive.keys, item_location, depth)
                self._validate_field(walk, item, parent, dive.elements, item_location, depth)
            return

        if dive.keys is not None:
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TAG,
                f"'keys' used on '{location.namespace}', which is not a mapping",
                rule="keys",
            )
        if not _is_collection(value):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TARGET,
                f"'dive' used on '{location.namespace}' of type {type(value).__name__}, "
                f"which is not a sequence or mapping",
                rule="dive",
            )
        for index, item in enumerate(value):
            self._validate_field(walk, item, parent, dive.elements, location.index(index), depth)

    # Evaluator

    def _run_group(
        self,
        walk: _Walk,
        group: RuleGroup,
        value: Any,
        parent: Any,
        location: _Location,
    ) -> bool:
        for token in group.tokens:
            if self._evaluate(walk, token, value, parent, location):
                return True

        if group.is_alternation:
            tag = actual_tag = group.text
            param = ""
        else:
            token = group.tokens[0]
            tag, actual_tag, param = token.tag, token.name, token.param or ""

        walk.errors.append(
            FieldError(
                path=location.path,
                namespace=location.namespace,
                field=location.field,
                struct_field=location.struct_field,
                tag=tag,
                actual_tag=actual_tag,
                param=param,
                value=value,
            )
        )
        return False

    def _evaluate(
        self,
        walk: _Walk,
        token: RuleToken,
        value: Any,
        parent: Any,
        location: _Location,
    ) -> bool:
        fn = self.registry.rules.get(token.name)
        if fn is None:
            raise ConfigurationError(
                ConfigErrorKind.UNKNOWN_RULE,
                f"Undefined validation rule '{token.name}'",
                rule=token.name,
            )
        ctx = FieldContext(
            value,
            param=token.param or "",
            rule=token.name,
            parent=parent,
            top=walk.top,
            field_name=location.field,
            struct_field_name=location.struct_field,
            path=location.path,
            resolver=self._resolve_sibling,
        )
        try:
            return bool(fn(ctx))
        except ConfigurationError:
            raise
        except Exception as exc:
            raise ConfigurationError(
                ConfigErrorKind.RULE_FAILURE,
                f"Rule '{token.name}' raised {type(exc).__name__}: {exc}",
                rule=token.name,
            ) from exc

    def _resolve_sibling(self, parent: Any, name: str) -> SiblingField:
        """Find ``name`` (possibly dotted) starting from ``parent``."""
        if not name:
            return SiblingField(value=parent, name="", display_name="", found=parent is not None)

        current = parent
        display_names = []
        for part in name.split("."):
            found, current, display_name = self._read_attribute(current, part)
            if not found:
                return SiblingField(value=None, name=name, display_name=name, found=False)
            display_names.append(display_name)
        return SiblingField(value=current, name=name, display_name=".".join(display_names), found=True)

    def _read_attribute(self, obj: Any, name: str) -> Tuple[bool, Any, str]:
        if obj is None:
            return False, None, name
        if isinstance(obj, Mapping):
            if name in obj:
                return True, obj[name], name
            return False, None, name
        if self.registry.is_structured(obj):
            for field_spec in self.struct_spec(type(obj)).fields:
                if field_spec.name == name:
                    return True, getattr(obj, name, None), field_spec.display_name
        if hasattr(obj, name):
            return True, getattr(obj, name), name
        return False, None, name


def _is_collection(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray)):
        return False
    return isinstance(value, (list, tuple, Set)) or (
        isinstance(value, Iterable) and hasattr(value, "__len__")
    )


__all__ = [
    "DEFAULT_TAG_KEY",
    "DEFAULT_MAX_DEPTH",
    "StructLevel",
    "Validator",
]
