"""Rule registry for the fieldrules validation engine.

The registry maps rule names to rule functions, alias names to the rule
strings they expand to, classes to struct-level hooks and classes to explicit
field schemas. It is mutated only through the ``register_*`` methods, during
a configuration phase that precedes concurrent use; validation only reads it.
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Set

import structlog
from typing_extensions import TypeAlias

from fieldrules.errors import ConfigurationError
from fieldrules.parser import is_valid_rule_name
from fieldrules.rules import BUILTIN_RULES, NONE_AWARE_RULES, RuleFunc
from fieldrules.schema import check_field_rules
from fieldrules.types import ConfigErrorKind, TagNameFunc

if TYPE_CHECKING:
    from fieldrules.validation import StructLevel

logger = structlog.get_logger(__name__)

StructHook: TypeAlias = Callable[["StructLevel"], None]


class Registry:
    """Named rules, aliases, struct hooks and schemas of one Validator.

    Examples:
        >>> registry = Registry()
        >>> registry.register_alias("varchar", "required,max=255")
        >>> registry.aliases["varchar"]
        'required,max=255'
        >>> "email" in registry.rules
        True
    """

    def __init__(self) -> None:
        self.rules: Dict[str, RuleFunc] = dict(BUILTIN_RULES)
        self.aliases: Dict[str, str] = {}
        self._none_aware: Set[str] = set(NONE_AWARE_RULES)
        self._struct_hooks: Dict[type, StructHook] = {}
        self._schemas: Dict[type, Dict[str, str]] = {}
        self.tag_name_func: Optional[TagNameFunc] = None

    def register_rule(self, name: str, fn: RuleFunc, call_on_none: bool = False) -> None:
        """Add or override a named rule.

        Args:
            name: Rule name as used in rule strings
            fn: Function taking a FieldContext and returning True on success
            call_on_none: Also run the rule when the value is None; by default
                absent values skip every rule except ``required``/``isdefault``

        Raises:
            ConfigurationError: INVALID_TAG if the name is reserved or contains
                ``,``, ``|`` or ``=``
        """
        if not is_valid_rule_name(name):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TAG,
                f"'{name}' cannot be used as a rule name",
                rule=name,
            )
        if not callable(fn):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TARGET,
                f"Rule '{name}' must be callable",
                rule=name,
            )
        self.rules[name] = fn
        if call_on_none:
            self._none_aware.add(name)
        else:
            self._none_aware.discard(name)
        logger.debug("rule_registered", rule=name, call_on_none=call_on_none)

    def register_alias(self, name: str, tag: str) -> None:
        """Register ``name`` as shorthand for the rule string ``tag``.

        Aliases are expanded when a rule string is parsed; cycles are only
        detected then, since aliases may refer to each other in any order.
        """
        if not is_valid_rule_name(name):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TAG,
                f"'{name}' cannot be used as an alias name",
                rule=name,
            )
        if not tag or not tag.strip():
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TAG,
                f"Alias '{name}' must expand to a rule string",
                rule=name,
            )
        self.aliases[name] = tag
        logger.debug("alias_registered", alias=name, tag=tag)

    def register_struct_hook(self, cls: type, fn: StructHook) -> None:
        """Run ``fn`` for every ``cls`` instance whose fields all passed."""
        if not isinstance(cls, type):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TARGET,
                f"Struct hooks are registered per class, got {cls!r}",
            )
        self._struct_hooks[cls] = fn
        logger.debug("struct_hook_registered", type=cls.__name__)

    def register_schema(self, cls: type, rules: Mapping[str, str]) -> None:
        """Declare the rules of ``cls`` explicitly (field name -> rule string)."""
        if not isinstance(cls, type):
            raise ConfigurationError(
                ConfigErrorKind.INVALID_TARGET,
                f"Schemas are registered per class, got {cls!r}",
            )
        check_field_rules(rules)
        self._schemas[cls] = dict(rules)
        logger.debug("schema_registered", type=cls.__name__, fields=len(rules))

    def register_tag_name_func(self, fn: Optional[TagNameFunc]) -> None:
        self.tag_name_func = fn

    def is_none_aware(self, name: str) -> bool:
        return name in self._none_aware

    def hook_for(self, cls: type) -> Optional[StructHook]:
        return self._struct_hooks.get(cls)

    def schema_for(self, cls: type) -> Optional[Dict[str, str]]:
        return self._schemas.get(cls)

    def is_structured(self, value: Any) -> bool:
        """Whether the walker descends into ``value``."""
        if value is None or isinstance(value, type):
            return False
        cls = type(value)
        return cls in self._schemas or hasattr(cls, "__dataclass_fields__")


__all__ = [
    "StructHook",
    "Registry",
]
