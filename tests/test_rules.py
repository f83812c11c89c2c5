"""Unit tests for the built-in rules, exercised through Validator.var.

Tests cover:
- required / isdefault / omitempty and zero values
- Length and value bounds (min, max, len, gt, gte, lt, lte, eq, ne)
- String classes (numeric, number, alpha, alphanum, email, url, datetime ...)
- Alternation semantics
- Malformed parameters and unsupported value types
"""

import datetime as dt

import pytest

from fieldrules import ConfigErrorKind, ConfigurationError, Validator


@pytest.fixture
def validator():
    return Validator()


class TestRequired:
    """Test the required rule and zero values."""

    @pytest.mark.parametrize("value", ["", 0, 0.0, False, [], {}, (), set(), None])
    def test_zero_values_fail(self, validator, value):
        """Should fail on None and on the empty value of each type."""
        errors = validator.var(value, "required")

        assert len(errors) == 1
        assert errors[0].tag == "required"

    @pytest.mark.parametrize("value", ["a", 1, -1, 0.5, True, [0], {"k": None}, ("",)])
    def test_non_zero_values_pass(self, validator, value):
        """Should pass on any non-empty value."""
        assert validator.var(value, "required").is_valid

    def test_isdefault(self, validator):
        """Should pass only on the empty value."""
        assert validator.var("", "isdefault").is_valid
        assert validator.var(None, "isdefault").is_valid
        assert not validator.var("x", "isdefault").is_valid

    def test_none_skips_other_rules(self, validator):
        """Should treat None as absent and skip rules other than required."""
        assert validator.var(None, "min=5,email").is_valid

    def test_none_fails_required_only(self, validator):
        """Should report required, not the following rules, for None."""
        errors = validator.var(None, "required,min=5")

        assert [e.tag for e in errors] == ["required"]

    def test_omitempty_skips_empty_values(self, validator):
        """Should skip all rules for empty values when omitempty is set."""
        assert validator.var("", "omitempty,email").is_valid
        assert not validator.var("x", "omitempty,email").is_valid


class TestBounds:
    """Test min, max, len and comparison rules."""

    def test_string_length_bounds(self, validator):
        """Should compare string lengths for strings."""
        assert validator.var("abcde", "min=5,max=10").is_valid
        errors = validator.var("abcd", "min=5,max=10")
        assert [(e.tag, e.param) for e in errors] == [("min", "5")]
        errors = validator.var("a" * 11, "min=5,max=10")
        assert [(e.tag, e.param) for e in errors] == [("max", "10")]

    def test_numeric_value_bounds(self, validator):
        """Should compare values for numbers."""
        assert validator.var(10, "min=5,max=10").is_valid
        assert not validator.var(11, "max=10").is_valid
        assert not validator.var(4.5, "min=5").is_valid
        assert validator.var(4.5, "min=4.5").is_valid

    def test_collection_length_bounds(self, validator):
        """Should compare lengths for collections."""
        assert validator.var([1, 2], "min=2,max=2").is_valid
        assert not validator.var({"a": 1}, "min=2").is_valid

    def test_len(self, validator):
        """Should require an exact length or value."""
        assert validator.var("123456", "len=6").is_valid
        assert not validator.var("12345", "len=6").is_valid
        assert validator.var(6, "len=6").is_valid

    @pytest.mark.parametrize(
        "tag,value,valid",
        [
            ("gt=0", 1, True),
            ("gt=0", 0, False),
            ("gte=0", 0, True),
            ("lt=10", 10, False),
            ("lte=10", 10, True),
            ("gt=2", "abc", True),
            ("lt=2", "abc", False),
        ],
    )
    def test_comparisons(self, validator, tag, value, valid):
        """Should compare values for numbers and lengths for strings."""
        assert validator.var(value, tag).is_valid is valid

    def test_eq_and_ne(self, validator):
        """Should compare strings by value, numbers by value, collections by length."""
        assert validator.var("abc", "eq=abc").is_valid
        assert not validator.var("abc", "eq=ABC").is_valid
        assert validator.var(3, "eq=3").is_valid
        assert validator.var([1, 2], "eq=2").is_valid
        assert validator.var(True, "eq=true").is_valid
        assert validator.var("abc", "ne=abd").is_valid
        assert not validator.var(3, "ne=3").is_valid

    def test_oneof(self, validator):
        """Should accept only listed words, with quoted words allowed."""
        assert validator.var("red", "oneof=red green").is_valid
        assert not validator.var("blue", "oneof=red green").is_valid
        assert validator.var("dark blue", "oneof='dark blue' red").is_valid
        assert validator.var(2, "oneof=1 2 3").is_valid

    def test_non_numeric_parameter_is_fatal(self, validator):
        """Should abort with BAD_PARAMETER for a malformed bound."""
        with pytest.raises(ConfigurationError) as exc_info:
            validator.var("abc", "min=five")

        assert exc_info.value.kind == ConfigErrorKind.BAD_PARAMETER
        assert exc_info.value.rule == "min"

    def test_unsupported_type_is_fatal(self, validator):
        """Should abort with INVALID_TARGET when a bound is applied to an object."""
        with pytest.raises(ConfigurationError) as exc_info:
            validator.var(object(), "min=1")

        assert exc_info.value.kind == ConfigErrorKind.INVALID_TARGET


class TestStringClasses:
    """Test character-class and format rules."""

    @pytest.mark.parametrize("value,valid", [("0815900141", True), ("12a", False), ("", False), ("12345\n", False), (12, True), (1.5, True)])
    def test_numeric(self, validator, value, valid):
        """Should accept digit strings and numeric values."""
        assert validator.var(value, "numeric").is_valid is valid

    def test_number(self, validator):
        """Should accept digit strings."""
        assert validator.var("0904190424", "number").is_valid
        assert not validator.var("09-04", "number").is_valid

    @pytest.mark.parametrize("value,valid", [("andi", True), ("andi2", True), ("andi soraya@", False), ("", False), ("andi\n", False)])
    def test_alphanum(self, validator, value, valid):
        """Should accept ASCII letters and digits only."""
        assert validator.var(value, "alphanum").is_valid is valid

    def test_alpha(self, validator):
        """Should accept ASCII letters only."""
        assert validator.var("Coding", "alpha").is_valid
        assert not validator.var("Coding1", "alpha").is_valid
        assert not validator.var("Coding\n", "alpha").is_valid

    @pytest.mark.parametrize("tag", ["alpha", "alphanum", "email", "url", "datetime", "lowercase", "contains=1"])
    def test_string_rules_fail_on_non_strings(self, validator, tag):
        """Should fail, not abort, when a string rule meets a non-string."""
        errors = validator.var(123, tag)

        assert [e.tag for e in errors] == [tag.split("=")[0]]

    @pytest.mark.parametrize(
        "value,valid",
        [
            ("andi@mail.com", True),
            ("a@b.com", True),
            ("first.last+tag@sub.example.co.id", True),
            ("andi", False),
            ("andi@", False),
            ("@mail.com", False),
            ("andi@mail", False),
            ("an di@mail.com", False),
            ("a@b.com\n", False),
        ],
    )
    def test_email(self, validator, value, valid):
        """Should accept standard email addresses."""
        assert validator.var(value, "email").is_valid is valid

    def test_case_rules(self, validator):
        """Should compare strings with their lower/upper-cased form."""
        assert validator.var("abdul", "lowercase").is_valid
        assert not validator.var("Abdul", "lowercase").is_valid
        assert validator.var("ABDUL", "uppercase").is_valid
        assert not validator.var("", "uppercase").is_valid

    def test_substring_rules(self, validator):
        """Should test substrings."""
        assert validator.var("hello world", "contains=lo w").is_valid
        assert validator.var("hello", "startswith=he,endswith=lo").is_valid
        assert not validator.var("hello", "startswith=lo").is_valid

    def test_url(self, validator):
        """Should require a scheme and a host."""
        assert validator.var("https://example.com/path", "url").is_valid
        assert validator.var("file:///tmp/x", "url").is_valid
        assert not validator.var("example.com", "url").is_valid
        assert not validator.var("https://", "url").is_valid

    def test_datetime_iso(self, validator):
        """Should accept ISO 8601 strings when no format is given."""
        assert validator.var("2024-01-31", "datetime").is_valid
        assert validator.var("2024-01-31T10:15:00+07:00", "datetime").is_valid
        assert not validator.var("31/01/2024", "datetime").is_valid

    def test_datetime_with_format(self, validator):
        """Should use the parameter as a strptime format."""
        assert validator.var("31/01/2024", "datetime=%d/%m/%Y").is_valid
        assert not validator.var("2024-01-31", "datetime=%d/%m/%Y").is_valid


class TestAlternation:
    """Test '|' alternatives."""

    @pytest.mark.parametrize("value", ["12345", "a@b.com"])
    def test_passes_when_any_alternative_passes(self, validator, value):
        """Should pass when at least one alternative passes."""
        assert validator.var(value, "email|numeric").is_valid

    def test_string_alternative_does_not_abort_on_numbers(self, validator):
        """Should move on to the next alternative when a string rule meets an int."""
        assert validator.var(12345, "email|numeric").is_valid
        assert validator.var("12345", "email|numeric").is_valid

        errors = validator.var(12345, "email|alpha")
        assert [e.tag for e in errors] == ["email|alpha"]

    def test_trailing_newline_fails_every_alternative(self, validator):
        """Should not let a trailing newline through either alternative."""
        assert not validator.var("12345\n", "email|numeric").is_valid

    def test_fails_when_all_alternatives_fail(self, validator):
        """Should report one error tagged with the whole alternation."""
        errors = validator.var("abc", "email|numeric")

        assert len(errors) == 1
        assert errors[0].tag == "email|numeric"
        assert errors[0].actual_tag == "email|numeric"
        assert errors[0].value == "abc"

    def test_short_circuits_on_first_success(self, validator):
        """Should not evaluate alternatives after the first success."""
        calls = []

        def track(ctx):
            calls.append(ctx.value)
            return True

        validator.register_rule("track", track)
        assert validator.var("a@b.com", "email|track").is_valid
        assert calls == []


class TestCrossFieldRules:
    """Test cross-field rules against a second value."""

    def test_eqfield_with_value(self, validator):
        """Should compare with the other value exactly."""
        assert validator.var_with_value("password", "password", "eqfield").is_valid
        errors = validator.var_with_value("password", "Password", "eqfield")
        assert [e.tag for e in errors] == ["eqfield"]

    def test_eqfield_requires_same_type(self, validator):
        """Should not treat equal values of different types as equal."""
        assert validator.var_with_value(1, 1, "eqfield").is_valid
        assert not validator.var_with_value(1, True, "eqfield").is_valid
        assert not validator.var_with_value(1, 1.0, "eqfield").is_valid
        assert not validator.var_with_value("1", 1, "eqfield").is_valid
        assert validator.var_with_value(1, 1.0, "nefield").is_valid

    def test_nefield_with_value(self, validator):
        """Should require the values to differ."""
        assert validator.var_with_value("old", "new", "nefield").is_valid
        assert not validator.var_with_value("same", "same", "nefield").is_valid

    def test_ordered_field_comparisons(self, validator):
        """Should compare numbers, dates and lengths."""
        assert validator.var_with_value(10, 5, "gtfield").is_valid
        assert validator.var_with_value(5, 5, "gtefield").is_valid
        assert validator.var_with_value(dt.date(2024, 1, 1), dt.date(2024, 2, 1), "ltfield").is_valid
        assert validator.var_with_value("ab", "abc", "ltefield").is_valid
        assert not validator.var_with_value(10, "x", "gtfield").is_valid

    def test_eqfield_without_second_value(self, validator):
        """Should fail when there is nothing to compare against."""
        assert not validator.var("password", "eqfield").is_valid
