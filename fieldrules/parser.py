"""Rule string parser for the fieldrules validation engine.

A rule string is a comma separated list of rule invocations:

    "required,min=5,max=64,eqfield=Password"
    "required,email|numeric"
    "dive,keys,required,min=2,endkeys,required,gt=0"

Parsing produces an immutable FieldRuleSet. Aliases are expanded
transitively before the result is returned so the cached rule set never
refers to an alias again; only the alias name is remembered on each token
so that failures can be reported against the tag the caller wrote.

Parameters cannot contain a literal comma or pipe; write ``0x2C`` for a
comma and ``0x7C`` for a pipe instead (e.g. ``oneof=a0x2Cb``).
"""

from typing import Container, List, Mapping, Optional, Sequence, Tuple

from fieldrules.errors import ConfigurationError
from fieldrules.types import (
    EMPTY_RULES,
    SKIP_RULES,
    ConfigErrorKind,
    DiveSpec,
    FieldRuleSet,
    RuleGroup,
    RuleToken,
)

SKIP_TAG = "-"
OMIT_EMPTY = "omitempty"
DIVE = "dive"
KEYS = "keys"
END_KEYS = "endkeys"

RESERVED_TAGS = frozenset({SKIP_TAG, OMIT_EMPTY, DIVE, KEYS, END_KEYS})
RESTRICTED_CHARS = ",|="

COMMA_ESCAPE = "0x2C"
PIPE_ESCAPE = "0x7C"

# (token text, alias name it was expanded from)
_Item = Tuple[str, Optional[str]]


def is_valid_rule_name(name: str) -> bool:
    """Check that ``name`` can be used for a rule or an alias."""
    if not name or name.strip() != name:
        return False
    if name in RESERVED_TAGS:
        return False
    return not any(char in name for char in RESTRICTED_CHARS)


def _unescape(param: str) -> str:
    return param.replace(COMMA_ESCAPE, ",").replace(PIPE_ESCAPE, "|")


class TagParser:
    """Parses rule strings against a set of known rules and aliases.

    The parser holds no state of its own beyond references to the registry's
    rule names and aliases, so a new parser is cheap to build for each cache
    miss.

    Attributes:
        rules: Names of the rules that can be invoked
        aliases: Alias name -> rule string

    Examples:
        >>> parser = TagParser(rules={"required", "max", "min"}, aliases={"varchar": "required,max=255"})
        >>> rule_set = parser.parse("varchar,min=5")
        >>> [(g.tokens[0].name, g.tokens[0].param, g.tokens[0].tag) for g in rule_set.groups]
        [('required', None, 'varchar'), ('max', '255', 'varchar'), ('min', '5', 'min')]
    """

    def __init__(self, rules: Container[str], aliases: Mapping[str, str]) -> None:
        self.rules = rules
        self.aliases = aliases

    def parse(self, tag: str) -> FieldRuleSet:
        """Parse a rule string into a FieldRuleSet.

        Args:
            tag: The raw rule string

        Returns:
            The parsed rules; SKIP_RULES for "-", EMPTY_RULES for ""

        Raises:
            ConfigurationError: UNKNOWN_RULE, ALIAS_CYCLE or INVALID_TAG
        """
        tag = tag.strip()
        if tag == SKIP_TAG:
            return SKIP_RULES
        if not tag:
            return EMPTY_RULES
        items = self._expand(tag, alias=None, stack=())
        return self._build(items, tag)

    def _expand(self, tag: str, alias: Optional[str], stack: Tuple[str, ...]) -> List[_Item]:
        """Split ``tag`` on commas, replacing alias names with their expansion."""
        items: List[_Item] = []
        for raw in tag.split(","):
            text = raw.strip()
            if not text:
                raise ConfigurationError(
                    ConfigErrorKind.INVALID_TAG,
                    f"Empty rule in '{tag}'",
                    tag=tag,
                )
            if text in self.aliases:
                if text in stack:
                    cycle = " -> ".join(stack + (text,))
                    raise ConfigurationError(
                        ConfigErrorKind.ALIAS_CYCLE,
                        f"Alias cycle detected: {cycle}",
                        tag=tag,
                        rule=text,
                    )
                # the outermost alias is the one the caller wrote
                items.extend(self._expand(self.aliases[text], alias or text, stack + (text,)))
            elif "|" in text:
                items.append((self._expand_alternatives(text, stack), alias))
            else:
                items.append((text, alias))
        return items

    def _expand_alternatives(self, text: str, stack: Tuple[str, ...]) -> str:
        """Inline single-rule aliases used inside an alternation."""
        alternatives = []
        for alternative in text.split("|"):
            alternative = alternative.strip()
            if alternative in self.aliases:
                expanded = self._expand(self.aliases[alternative], alternative, stack + (alternative,))
                if len(expanded) != 1:
                    raise ConfigurationError(
                        ConfigErrorKind.INVALID_TAG,
                        f"Alias '{alternative}' expands to more than one rule "
                        f"and cannot be used in the alternation '{text}'",
                        tag=text,
                        rule=alternative,
                    )
                alternative = expanded[0][0]
            alternatives.append(alternative)
        return "|".join(alternatives)

    def _build(self, items: Sequence[_Item], tag: str) -> FieldRuleSet:
        groups: List[RuleGroup] = []
        omit_empty = False

        for index, (text, alias) in enumerate(items):
            if text == OMIT_EMPTY:
                omit_empty = True
                continue

            if text == DIVE:
                dive = self._build_dive(items[index + 1:], tag)
                return FieldRuleSet(groups=tuple(groups), omit_empty=omit_empty, dive=dive)

            if text in (KEYS, END_KEYS):
                raise ConfigurationError(
                    ConfigErrorKind.INVALID_TAG,
                    f"'{text}' must directly follow 'dive' in '{tag}'",
                    tag=tag,
                    rule=text,
                )

            if text == SKIP_TAG:
                raise ConfigurationError(
                    ConfigErrorKind.INVALID_TAG,
                    f"'-' must be the whole rule string, got '{tag}'",
                    tag=tag,
                )

            groups.append(self._build_group(text, alias, tag))

        return FieldRuleSet(groups=tuple(groups), omit_empty=omit_empty)

    def _build_dive(self, items: Sequence[_Item], tag: str) -> DiveSpec:
        if not items or items[0][0] != KEYS:
            return DiveSpec(elements=self._build(items, tag))

        for index, (text, _) in enumerate(items):
            if text == END_KEYS:
                key_items = items[1:index]
                if not key_items:
                    raise ConfigurationError(
                        ConfigErrorKind.INVALID_TAG,
                        f"'keys' without any rules in '{tag}'",
                        tag=tag,
                        rule=KEYS,
                    )
                return DiveSpec(
                    keys=self._build(key_items, tag),
                    elements=self._build(items[index + 1:], tag),
                )

        raise ConfigurationError(
            ConfigErrorKind.INVALID_TAG,
            f"'keys' without a matching 'endkeys' in '{tag}'",
            tag=tag,
            rule=KEYS,
        )

    def _build_group(self, text: str, alias: Optional[str], tag: str) -> RuleGroup:
        tokens = []
        for alternative in text.split("|"):
            alternative = alternative.strip()
            name, sep, param = alternative.partition("=")
            name = name.strip()
            if not name:
                raise ConfigurationError(
                    ConfigErrorKind.INVALID_TAG,
                    f"Empty rule in alternation '{text}' of '{tag}'",
                    tag=tag,
                )
            if name in RESERVED_TAGS:
                raise ConfigurationError(
                    ConfigErrorKind.INVALID_TAG,
                    f"'{name}' cannot take a parameter or appear in an alternation in '{tag}'",
                    tag=tag,
                    rule=name,
                )
            if name not in self.rules:
                raise ConfigurationError(
                    ConfigErrorKind.UNKNOWN_RULE,
                    f"Undefined validation rule '{name}' in '{tag}'",
                    tag=tag,
                    rule=name,
                )
            tokens.append(
                RuleToken(
                    name=name,
                    param=_unescape(param) if sep else None,
                    alias=alias,
                )
            )
        return RuleGroup(tokens=tuple(tokens), text=alias or text)


def parse_tag(tag: str, rules: Container[str], aliases: Optional[Mapping[str, str]] = None) -> FieldRuleSet:
    """Parse ``tag`` without a registry. Convenience wrapper around TagParser."""
    return TagParser(rules, aliases or {}).parse(tag)


__all__ = [
    "SKIP_TAG",
    "OMIT_EMPTY",
    "DIVE",
    "KEYS",
    "END_KEYS",
    "RESERVED_TAGS",
    "is_valid_rule_name",
    "TagParser",
    "parse_tag",
]
