"""Unit tests for error structures.

Tests cover:
- FieldError construction, default message and serialization
- ValidationErrors helpers
- ConfigurationError attributes and serialization
"""

from fieldrules.errors import ConfigurationError, FieldError, ValidationErrors, format_message
from fieldrules.types import ConfigErrorKind


def make_error(**overrides):
    data = {
        "path": "address.street",
        "namespace": "RegisterRequest.address.street",
        "field": "street",
        "struct_field": "street",
        "tag": "varchar",
        "actual_tag": "required",
        "value": "",
    }
    data.update(overrides)
    return FieldError(**data)


class TestFieldError:
    """Test FieldError."""

    def test_default_message(self):
        """Should build the message from namespace, field and tag."""
        error = make_error()

        assert error.message == format_message("RegisterRequest.address.street", "street", "varchar")
        assert str(error) == error.message

    def test_explicit_message_is_kept(self):
        """Should not overwrite a message given explicitly."""
        assert make_error(message="custom").message == "custom"

    def test_to_dict(self):
        """Should serialize with camelCase keys and omit empty optionals."""
        result = make_error(value=None).to_dict()

        assert result == {
            "path": "address.street",
            "namespace": "RegisterRequest.address.street",
            "field": "street",
            "structField": "street",
            "tag": "varchar",
            "actualTag": "required",
            "message": make_error().message,
        }

    def test_to_dict_with_param_and_value(self):
        """Should include param and value when set."""
        result = make_error(tag="min", actual_tag="min", param="5", value="abc").to_dict()

        assert result["param"] == "5"
        assert result["value"] == "abc"

    def test_from_dict_round_trip(self):
        """Should rebuild an equal FieldError from its dict."""
        error = make_error(param="5", value="abc")

        assert FieldError.from_dict(error.to_dict()) == error

    def test_from_dict_defaults(self):
        """Should default optional keys from the required ones."""
        error = FieldError.from_dict({"path": "name", "field": "name", "tag": "required"})

        assert error.namespace == "name"
        assert error.struct_field == "name"
        assert error.actual_tag == "required"
        assert error.param == ""


class TestValidationErrors:
    """Test ValidationErrors."""

    def test_empty_is_valid(self):
        """Should be valid and falsy when empty."""
        errors = ValidationErrors()

        assert errors.is_valid
        assert not errors
        assert str(errors) == ""
        assert errors.to_dict() == {"isValid": True, "errors": []}

    def test_helpers(self):
        """Should expose paths, lookup and serialization."""
        first = make_error()
        second = make_error(path="password", namespace="RegisterRequest.password", field="password")
        errors = ValidationErrors([first, second])

        assert not errors.is_valid
        assert errors.paths() == ["address.street", "password"]
        assert errors.by_path("password") is second
        assert errors.by_path("missing") is None
        assert str(errors) == f"{first.message}\n{second.message}"
        assert errors.to_dict()["isValid"] is False
        assert len(errors.to_dict()["errors"]) == 2


class TestConfigurationError:
    """Test ConfigurationError."""

    def test_attributes(self):
        """Should keep kind, tag, rule and message."""
        error = ConfigurationError(
            ConfigErrorKind.UNKNOWN_RULE,
            "Undefined validation rule 'pin'",
            tag="required,pin=6",
            rule="pin",
        )

        assert error.kind == ConfigErrorKind.UNKNOWN_RULE
        assert error.tag == "required,pin=6"
        assert error.rule == "pin"
        assert str(error) == "Undefined validation rule 'pin'"

    def test_to_dict(self):
        """Should serialize kind as its string value."""
        error = ConfigurationError(ConfigErrorKind.MAX_DEPTH, "too deep")

        assert error.to_dict() == {"kind": "max_depth", "message": "too deep"}
