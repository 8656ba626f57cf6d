"""
JSONata expression evaluator.

Thin adapter over jsonata-python; the expression language itself is not
implemented here.
"""

import logging
from typing import Any

import jsonata

from bird_db.errors import EvaluatorError

logger = logging.getLogger(__name__)

_JSON_SCALARS = (str, int, float, bool, type(None))


def is_json_value(value: Any) -> bool:
    """True if ``value`` is built only from JSON types (no functions or engine objects)."""
    stack = [value]
    while stack:
        item = stack.pop()
        if isinstance(item, _JSON_SCALARS):
            continue
        if isinstance(item, dict):
            if not all(isinstance(k, str) for k in item):
                return False
            stack.extend(item.values())
        elif isinstance(item, (list, tuple)):
            stack.extend(item)
        else:
            return False
    return True


class QueryEvaluator:
    """Evaluates JSONata expressions against in-memory data."""

    def evaluate(self, expression: str, data: Any) -> Any:
        """
        Evaluate ``expression`` against ``data``.

        Args:
            expression: JSONata expression text
            data: Input document (the record list)

        Returns:
            The evaluation result; None when the expression yields nothing.

        Raises:
            EvaluatorError: If the expression fails to parse or evaluate, or
                yields something other than JSON data (e.g. a function).
        """
        try:
            compiled = jsonata.Jsonata(expression)
            result = compiled.evaluate(data)
        except Exception as e:
            logger.debug(f"Query execution error for {expression!r}: {e}")
            raise EvaluatorError("Query execution failed", details=str(e)) from e

        if not is_json_value(result):
            logger.debug(f"Non-JSON result of type {type(result).__name__} for {expression!r}")
            raise EvaluatorError(
                "Query execution failed",
                details="Expression result is not JSON-serializable",
            )
        return result
