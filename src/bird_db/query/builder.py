"""
Query expression builder.

Translates filter intents (name search, taxonomy, conservation status, ...)
into predicates and JSONata expressions. Validation of caller input happens
here, before any expression text exists.
"""

from typing import Any

from bird_db.errors import ValidationError
from bird_db.query.predicates import (
    WILDCARD,
    All,
    AnyOf,
    Contains,
    Equals,
    InSet,
    Matches,
    NonEmpty,
    Not,
    Predicate,
    TypeIs,
    filter_expression,
    literal,
    quote_field,
)
from bird_db.records import (
    AUTHORITY,
    EXTINCT,
    FAMILY,
    IUCN_CATEGORY,
    NAME_FIELDS,
    RANGE,
    SCIENTIFIC_NAME,
    SEQUENCE,
    SPECIES_RANK,
    TAXON_RANK,
    TAXONOMY_LEVELS,
)


def name_search(term: str, exact: bool = False) -> Predicate:
    """Match ``term`` against every name variant (exact or case-insensitive substring)."""
    if exact:
        return AnyOf(tuple(Equals(field, term) for field in NAME_FIELDS))
    return AnyOf(tuple(Contains(field, term) for field in NAME_FIELDS))


def taxonomy(level: str, value: str) -> Predicate:
    """
    Filter on one taxonomic level.

    Raises:
        ValidationError: If ``level`` is not one of TAXONOMY_LEVELS.
    """
    if level not in TAXONOMY_LEVELS:
        raise ValidationError(
            f"Invalid taxonomic level. Use one of: {', '.join(TAXONOMY_LEVELS)}",
            details=level,
        )
    return Equals(level, value)


def iucn_category(category: str) -> Predicate:
    return Equals(IUCN_CATEGORY, category)


def extinct() -> Predicate:
    return NonEmpty(EXTINCT)


def geographic_range(region: str) -> Predicate:
    return Contains(RANGE, region)


def authority(name: str) -> Predicate:
    return Contains(AUTHORITY, name)


def rank(value: str = SPECIES_RANK) -> Predicate:
    return Equals(TAXON_RANK, value)


def sequence_in(ids) -> Predicate:
    return InSet(SEQUENCE, tuple(ids))


def scientific_name(name: str) -> Predicate:
    return Equals(SCIENTIFIC_NAME, name)


def family_siblings(family: str, exclude_name: str) -> Predicate:
    """Records of ``family`` other than the one named ``exclude_name``."""
    return All((Equals(FAMILY, family), Not(Equals(SCIENTIFIC_NAME, exclude_name))))


def custom_filters(filters: dict[str, Any]) -> Predicate:
    """
    Build a conjunction from a field -> value mapping.

    Per entry:
      - list values become a membership test,
      - strings containing ``*`` become a case-insensitive wildcard match,
      - anything else is an exact equality.

    An empty mapping yields a predicate matching every record.

    Raises:
        ValidationError: For invalid field names or unsupported value types.
    """
    if not isinstance(filters, dict):
        raise ValidationError('"filters" must be an object')

    conditions = []
    for field, value in filters.items():
        if isinstance(value, list):
            condition = InSet(field, tuple(value))
        elif isinstance(value, str) and WILDCARD in value:
            condition = Matches(field, value)
        else:
            condition = Equals(field, value)
        # Serialize eagerly so bad names and values fail as validation errors
        condition.to_expression()
        conditions.append(condition)
    return All(tuple(conditions))


def group_counts(field: str) -> str:
    """
    Expression grouping records by ``field``.

    Yields an object keyed by each distinct non-empty string value, mapping to
    ``[record count, species count]``.
    """
    name = quote_field(field)
    species = f"{quote_field(TAXON_RANK)}[$ = {literal(SPECIES_RANK)}]"
    grouped = All((NonEmpty(field), TypeIs(field, "string")))
    return f"{filter_expression(grouped)}{{{name}: [$count({name}), $count({species})]}}"
