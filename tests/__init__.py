"""Test suite for fieldrules.

This package contains tests for:
- Rule string parsing (groups, alternation, aliases, dive/keys)
- Built-in rules applied to standalone values
- Struct walking (nested values, sequences, mappings, absent values)
- Custom rules, aliases and struct-level hooks
- Error structure and configuration errors
- End-to-end scenarios covering typical request validation
"""
