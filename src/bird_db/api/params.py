"""
Explicit parsing of numeric and boolean request parameters.

Query-string values arrive as text; anything that is not a whole number in
range is rejected with a ValidationError instead of being coerced.
"""

from bird_db.errors import ValidationError


def parse_int(
    name: str,
    raw: int | str | None,
    default: int,
    minimum: int = 1,
    maximum: int | None = None,
) -> int:
    """
    Parse an integer parameter.

    Args:
        name: Parameter name (for error messages)
        raw: Raw value; None or an empty string means "use the default"
        default: Value used when the parameter is absent
        minimum: Smallest accepted value; smaller values are rejected
        maximum: Larger values are clamped to this cap

    Raises:
        ValidationError: On non-integer input or values below ``minimum``.
    """
    if raw is None or raw == "":
        value = default
    elif isinstance(raw, bool):
        raise ValidationError(f'Parameter "{name}" must be an integer', details=raw)
    elif isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        try:
            value = int(text, 10)
        except ValueError:
            raise ValidationError(
                f'Parameter "{name}" must be an integer', details=raw
            ) from None

    if value < minimum:
        raise ValidationError(
            f'Parameter "{name}" must be at least {minimum}', details=value
        )
    if maximum is not None and value > maximum:
        value = maximum
    return value


def parse_bool(raw: str | None) -> bool:
    """Only the literal ``true`` (any case) enables a flag."""
    return raw is not None and raw.strip().lower() == "true"


def require(name: str, raw: str | None) -> str:
    """Return a required, non-blank query parameter."""
    if raw is None or not raw.strip():
        raise ValidationError(f'Query parameter "{name}" is required')
    return raw
