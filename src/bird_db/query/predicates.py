"""
Structured predicates over bird records.

Filters are built as small immutable predicate trees and serialized to
JSONata text only when a query is about to run. Serialization escapes every
caller-supplied piece:

- literals are emitted as JSON literals,
- regex metacharacters and the ``/`` delimiter are backslash-escaped,
- field names are always backtick-quoted and may not contain a backtick.

so no input value can change the structure of the generated expression.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Union

from bird_db.errors import ValidationError

MAX_FIELD_LENGTH = 128

WILDCARD = "*"


def quote_field(field: str) -> str:
    """
    Quote a field name for use in a path expression.

    Raises:
        ValidationError: If the name is empty, too long, or contains a backtick.
    """
    if not isinstance(field, str) or not field:
        raise ValidationError("Field name must be a non-empty string")
    if len(field) > MAX_FIELD_LENGTH:
        raise ValidationError(
            f"Field name is longer than {MAX_FIELD_LENGTH} characters", details=field
        )
    if "`" in field:
        raise ValidationError("Field name may not contain a backtick", details=field)
    return f"`{field}`"


def literal(value: Any) -> str:
    """Render a scalar as a JSONata literal."""
    if value is None or isinstance(value, (str, bool, int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError("Non-finite numbers are not valid filter values")
        return json.dumps(value)
    raise ValidationError(
        f"Unsupported filter value type: {type(value).__name__}", details=repr(value)
    )


# Characters special in JavaScript and Python regexes, plus the literal delimiter
_REGEX_META = re.compile(r"([\\^$.|?*+()\[\]{}/])")


def escape_regex(text: str) -> str:
    """Backslash-escape regex metacharacters and the ``/`` delimiter."""
    return _REGEX_META.sub(r"\\\1", text)


def regex_literal(pattern: str, flags: str = "i") -> str:
    """Wrap an escaped pattern in regex literal delimiters."""
    return f"/{pattern}/{flags}"


def wildcard_to_regex(pattern: str) -> str:
    """Convert a ``*`` wildcard pattern into an escaped, unanchored regex."""
    return ".*".join(escape_regex(part) for part in pattern.split(WILDCARD))


def _string_match(field: str, regex: str) -> str:
    if not regex:
        # Empty pattern matches any present string
        return TypeIs(field, "string").to_expression()
    return f"$contains($string({quote_field(field)}), {regex_literal(regex)})"


@dataclass(frozen=True)
class Equals:
    """Field equals a literal value."""

    field: str
    value: Any

    def to_expression(self) -> str:
        return f"{quote_field(self.field)} = {literal(self.value)}"


@dataclass(frozen=True)
class Contains:
    """Case-insensitive, unanchored substring match."""

    field: str
    term: str

    def to_expression(self) -> str:
        return _string_match(self.field, escape_regex(self.term))


@dataclass(frozen=True)
class Matches:
    """Case-insensitive, unanchored wildcard match (``*`` = any run of characters)."""

    field: str
    pattern: str

    def to_expression(self) -> str:
        return _string_match(self.field, wildcard_to_regex(self.pattern))


@dataclass(frozen=True)
class InSet:
    """Field value is one of the given literals."""

    field: str
    values: tuple

    def to_expression(self) -> str:
        items = ", ".join(literal(v) for v in self.values)
        return f"{quote_field(self.field)} in [{items}]"


@dataclass(frozen=True)
class NonEmpty:
    """Field is present, not null and not the empty string."""

    field: str

    def to_expression(self) -> str:
        name = quote_field(self.field)
        return f'({name} != "" and {name} != null)'


@dataclass(frozen=True)
class TypeIs:
    """Field holds a value of the given JSON type (string, number, boolean, ...)."""

    field: str
    type_name: str

    def to_expression(self) -> str:
        return f"$type({quote_field(self.field)}) = {literal(self.type_name)}"


@dataclass(frozen=True)
class Not:
    predicate: "Predicate"

    def to_expression(self) -> str:
        return f"$not({self.predicate.to_expression()})"


@dataclass(frozen=True)
class All:
    """Logical AND; an empty conjunction matches every record."""

    predicates: tuple

    def to_expression(self) -> str:
        if not self.predicates:
            return "true"
        if len(self.predicates) == 1:
            return self.predicates[0].to_expression()
        return " and ".join(f"({p.to_expression()})" for p in self.predicates)


@dataclass(frozen=True)
class AnyOf:
    """Logical OR; an empty disjunction matches nothing."""

    predicates: tuple

    def to_expression(self) -> str:
        if not self.predicates:
            return "false"
        if len(self.predicates) == 1:
            return self.predicates[0].to_expression()
        return " or ".join(f"({p.to_expression()})" for p in self.predicates)


Predicate = Union[Equals, Contains, Matches, InSet, NonEmpty, TypeIs, Not, All, AnyOf]


def filter_expression(predicate: Predicate) -> str:
    """Expression selecting the records of the root array that satisfy ``predicate``."""
    return f"$[{predicate.to_expression()}]"


def count_expression(predicate: Predicate | None = None) -> str:
    if predicate is None:
        return "$count($)"
    return f"$count({filter_expression(predicate)})"


def distinct_values_expression(field: str) -> str:
    """Distinct non-empty values of ``field`` across the dataset."""
    return f'$distinct({quote_field(field)}[$ != "" and $ != null])'
