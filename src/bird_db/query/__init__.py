"""
Query layer.

Builds escaped JSONata expressions, evaluates them against the dataset, and
normalizes and paginates the results.
"""

from .engine import BirdQueryEngine
from .evaluator import QueryEvaluator
from .results import Page, Pagination, normalize_records, paginate
from .runner import QueryRunner

__all__ = [
    "BirdQueryEngine",
    "QueryEvaluator",
    "QueryRunner",
    "Page",
    "Pagination",
    "normalize_records",
    "paginate",
]
