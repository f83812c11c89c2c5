"""fieldrules: tag-driven struct validation.

fieldrules validates values against compact rule strings:
- Field rules (``required``, ``min=5``, ``email``, ``alphanum`` ...)
- Cross-field rules (``eqfield=Password``)
- Nested structs, sequences (``dive``) and mappings (``dive,keys,...,endkeys``)
- Alternation (``email|numeric``), aliases and custom named rules
- Struct-level hooks that validate a whole object once its fields pass

Basic usage:
    >>> from dataclasses import dataclass, field
    >>> from fieldrules import Validator
    >>> @dataclass
    ... class RegisterRequest:
    ...     password: str = field(metadata={"validate": "required,min=5,max=64"})
    ...     confirm_password: str = field(metadata={"validate": "required,eqfield=password"})
    >>> validator = Validator()
    >>> validator.struct(RegisterRequest(password="password", confirm_password="password")).is_valid
    True
"""

__version__ = "0.1.0"

# Version info
VERSION = (0, 1, 0)

# Core exports
from fieldrules.errors import ConfigurationError, FieldError, ValidationErrors
from fieldrules.rules import FieldContext, SiblingField
from fieldrules.types import ConfigErrorKind
from fieldrules.validation import StructLevel, Validator

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "Validator",
    "StructLevel",
    "FieldContext",
    "SiblingField",
    "FieldError",
    "ValidationErrors",
    "ConfigurationError",
    "ConfigErrorKind",
]
