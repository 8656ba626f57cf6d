"""
Bird query engine.

Runs the builder's expressions against the loaded dataset and shapes the
results for the derived read operations (search, filters, random sampling,
bird reports, statistics, grouping).
"""

import logging
import random
from typing import Any

from bird_db.errors import NotFoundError, ValidationError
from bird_db.query import builder
from bird_db.query.evaluator import QueryEvaluator
from bird_db.query.predicates import (
    Predicate,
    count_expression,
    distinct_values_expression,
    filter_expression,
)
from bird_db.query.results import normalize_records
from bird_db.records import (
    BIRDLIFE_URL,
    BIRDS_OF_THE_WORLD_URL,
    FAMILY,
    IUCN_CATEGORY,
    NOT_ASSESSED,
    ORDER,
    ORIGINAL_DESCRIPTION_URL,
    Record,
    has_value,
)
from bird_db.storage import DatasetStore

logger = logging.getLogger(__name__)


class BirdQueryEngine:
    """
    Query operations over an in-memory bird dataset.

    The engine holds no mutable state besides its random generator; all
    methods are safe to call from several worker threads at once.
    """

    def __init__(
        self,
        store: DatasetStore,
        evaluator: QueryEvaluator | None = None,
        rng: random.Random | None = None,
        related_limit: int = 5,
    ):
        """
        Initialize the engine.

        Args:
            store: Loaded DatasetStore
            evaluator: Expression evaluator (default: JSONata)
            rng: Random source for sampling (default: a fresh Random)
            related_limit: Maximum related records in a bird report
        """
        self.store = store
        self.evaluator = evaluator or QueryEvaluator()
        self.rng = rng or random.Random()
        self.related_limit = related_limit

    @property
    def ready(self) -> bool:
        return self.store.loaded

    def execute(self, expression: str) -> Any:
        """Evaluate a raw expression against the dataset."""
        return self.evaluator.evaluate(expression, self.store.records)

    def select(self, predicate: Predicate) -> list[Record]:
        """Return every record matching ``predicate``, always as a list."""
        return normalize_records(self.execute(filter_expression(predicate)))

    def dataset_stats(self) -> dict[str, Any]:
        """Compute counts of records, orders, families, species and extinct taxa."""
        species = builder.rank()
        return {
            "totalRecords": self.execute(count_expression()),
            "totalOrders": self.execute(
                f"$count({distinct_values_expression(ORDER)})"
            ),
            "totalFamilies": self.execute(
                f"$count({distinct_values_expression(FAMILY)})"
            ),
            "totalSpecies": self.execute(count_expression(species)),
            "extinctSpecies": self.execute(count_expression(builder.extinct())),
            "iucnCategories": normalize_records(
                self.execute(distinct_values_expression(IUCN_CATEGORY))
            ),
        }

    def search_by_name(self, term: str, exact: bool = False) -> list[Record]:
        """Search scientific and common names, exactly or by case-insensitive substring."""
        return self.select(builder.name_search(term, exact))

    def by_taxonomy(self, level: str, value: str) -> list[Record]:
        return self.select(builder.taxonomy(level, value))

    def by_iucn_category(self, category: str) -> list[Record]:
        return self.select(builder.iucn_category(category))

    def extinct_species(self) -> list[Record]:
        return self.select(builder.extinct())

    def by_range(self, region: str) -> list[Record]:
        return self.select(builder.geographic_range(region))

    def by_authority(self, authority: str) -> list[Record]:
        return self.select(builder.authority(authority))

    def unique_values(self, field: str) -> list:
        """Distinct non-empty values of ``field``."""
        return normalize_records(self.execute(distinct_values_expression(field)))

    def custom_query(self, filters: dict[str, Any]) -> list[Record]:
        """Conjunction of per-field filters; an empty mapping returns every record."""
        return self.select(builder.custom_filters(filters))

    def random_sample(self, count: int = 10) -> list[Record]:
        """
        Draw ``count`` distinct records uniformly at random.

        Sequence identifiers are sampled without replacement, so the result
        holds exactly ``min(count, available)`` records (in dataset order).

        Raises:
            ValidationError: If ``count`` is negative.
        """
        if count < 0:
            raise ValidationError("Sample count must not be negative", details=count)

        ids = self.store.sequence_ids
        chosen = self.rng.sample(ids, min(count, len(ids)))
        logger.debug(f"Sampled {len(chosen)} of {len(ids)} sequence ids")
        if not chosen:
            return []
        return self.select(builder.sequence_in(chosen))

    def bird_report(self, scientific_name: str) -> dict[str, Any]:
        """
        Build a detailed report for one bird.

        Raises:
            NotFoundError: If no record has this exact scientific name.
        """
        matches = self.select(builder.scientific_name(scientific_name))
        if not matches:
            raise NotFoundError(
                "Bird not found", details=f"Bird not found: {scientific_name}"
            )
        bird = matches[0]

        family = bird.get(FAMILY)
        related: list[Record] = []
        if has_value(family):
            related = self.select(builder.family_siblings(family, scientific_name))
            related = related[: self.related_limit]

        category = bird.get(IUCN_CATEGORY)
        return {
            "bird": bird,
            "relatedInFamily": related,
            "conservationStatus": category if has_value(category) else NOT_ASSESSED,
            "hasUrls": {
                "birdLife": has_value(bird.get(BIRDLIFE_URL)),
                "birdsOfTheWorld": has_value(bird.get(BIRDS_OF_THE_WORLD_URL)),
                "originalDescription": has_value(bird.get(ORIGINAL_DESCRIPTION_URL)),
            },
        }

    def group_by(self, field: str) -> list[dict[str, Any]]:
        """
        Group records by a field.

        Returns:
            One entry per distinct non-empty value, in order of first
            appearance: ``{"name", "count", "speciesCount"}``.
        """
        grouped = self.execute(builder.group_counts(field))
        if not grouped:
            return []
        return [
            {"name": name, "count": counts[0], "speciesCount": counts[1]}
            for name, counts in grouped.items()
        ]
