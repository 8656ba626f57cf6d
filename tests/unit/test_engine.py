"""
Tests for the bird query engine.

These run real JSONata evaluation against the sample dataset.
"""

import random

import pytest

from bird_db.errors import EvaluatorError, NotFoundError, ValidationError
from bird_db.query import BirdQueryEngine
from bird_db.query.results import paginate
from bird_db.storage import DatasetStore


def names(records):
    return [r["Scientific_name"] for r in records]


class TestSearch:
    """Tests for name search."""

    def test_exact_match_returns_singleton(self, engine):
        results = engine.search_by_name("Aquila chrysaetos", exact=True)

        assert names(results) == ["Aquila chrysaetos"]

    def test_exact_match_on_common_name(self, engine):
        results = engine.search_by_name("Tawny Owl", exact=True)

        assert names(results) == ["Strix aluco"]

    def test_partial_match_is_case_insensitive(self, engine):
        results = engine.search_by_name("eagle")

        assert names(results) == ["Aquila chrysaetos", "Aquila nipalensis"]

    def test_partial_match_on_scientific_name(self, engine):
        results = engine.search_by_name("AQUILA")

        assert len(results) == 3

    def test_no_match_returns_empty_list(self, engine):
        assert engine.search_by_name("penguin") == []

    def test_regex_metacharacters_are_literal(self, engine):
        """'.*' must not behave as a wildcard."""
        assert engine.search_by_name(".*") == []

    def test_quote_injection_does_not_match_everything(self, engine):
        assert engine.search_by_name('" or true or "', exact=True) == []
        assert engine.search_by_name('/i or true or /') == []


class TestFilters:
    """Tests for the single-field filters."""

    def test_by_iucn_category(self, engine):
        assert names(engine.by_iucn_category("EN")) == ["Aquila nipalensis"]

    def test_by_taxonomy_family(self, engine):
        results = engine.by_taxonomy("Family", "Strigidae")

        assert names(results) == ["Strix aluco", "Ninox novaeseelandiae"]

    def test_by_taxonomy_rank(self, engine):
        assert names(engine.by_taxonomy("Taxon_rank", "subspecies")) == [
            "Aquila chrysaetos canadensis"
        ]

    def test_by_taxonomy_rejects_unknown_level(self, engine):
        with pytest.raises(ValidationError):
            engine.by_taxonomy("Genus", "Aquila")

    def test_extinct_species(self, engine):
        assert names(engine.extinct_species()) == ["Raphus cucullatus"]

    def test_by_range(self, engine):
        assert names(engine.by_range("new zealand")) == ["Ninox novaeseelandiae"]

    def test_by_authority(self, engine):
        results = engine.by_authority("linnaeus")

        assert names(results) == [
            "Aquila chrysaetos",
            "Aquila chrysaetos canadensis",
            "Raphus cucullatus",
            "Strix aluco",
        ]

    def test_authority_with_parenthesis(self, engine):
        assert names(engine.by_authority("(Gmelin")) == ["Ninox novaeseelandiae"]

    def test_unique_values(self, engine):
        assert engine.unique_values("Order") == [
            "Accipitriformes",
            "Columbiformes",
            "Strigiformes",
        ]

    def test_unique_values_skips_empty(self, engine):
        assert engine.unique_values("IUCN_Red_List_Category") == ["LC", "EN", "EX"]

    def test_unique_values_single_value_is_list(self):
        engine = BirdQueryEngine(DatasetStore.from_records([{"Order": "Strigiformes"}]))

        assert engine.unique_values("Order") == ["Strigiformes"]

    def test_unique_values_unknown_field(self, engine):
        assert engine.unique_values("Wingspan") == []


class TestCustomQuery:
    """Tests for custom multi-field filters."""

    def test_empty_filters_return_everything(self, engine, records):
        results = engine.custom_query({})

        assert len(results) == len(records)

    def test_conjunction(self, engine):
        results = engine.custom_query({"Family": "Accipitridae", "Taxon_rank": "species"})

        assert names(results) == ["Aquila chrysaetos", "Aquila nipalensis"]

    def test_membership(self, engine):
        results = engine.custom_query({"IUCN_Red_List_Category": ["EN", "EX"]})

        assert names(results) == ["Aquila nipalensis", "Raphus cucullatus"]

    def test_wildcard(self, engine):
        results = engine.custom_query({"Scientific_name": "aquila*canadensis"})

        assert names(results) == ["Aquila chrysaetos canadensis"]

    def test_numeric_equality(self, engine):
        assert names(engine.custom_query({"Sequence": 4})) == ["Raphus cucullatus"]


class TestRandomSample:
    """Tests for random sampling."""

    def test_exact_count_of_distinct_members(self, engine, records):
        results = engine.random_sample(3)

        assert len(results) == 3
        assert len({r["Sequence"] for r in results}) == 3
        assert all(r in records for r in results)

    def test_count_above_size_returns_everything(self, engine, records):
        results = engine.random_sample(50)

        assert len(results) == len(records)

    def test_zero_count(self, engine):
        assert engine.random_sample(0) == []

    def test_negative_count_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.random_sample(-1)

    def test_seeded_rng_is_reproducible(self, store):
        first = BirdQueryEngine(store, rng=random.Random(7)).random_sample(2)
        second = BirdQueryEngine(store, rng=random.Random(7)).random_sample(2)

        assert first == second


class TestBirdReport:
    """Tests for bird reports."""

    def test_report_for_known_bird(self, engine):
        report = engine.bird_report("Aquila chrysaetos")

        assert report["bird"]["Scientific_name"] == "Aquila chrysaetos"
        related = report["relatedInFamily"]
        assert "Aquila chrysaetos" not in names(related)
        assert len(related) <= 5
        assert all(r["Family"] == "Accipitridae" for r in related)
        assert names(related) == ["Aquila nipalensis", "Aquila chrysaetos canadensis"]
        assert report["conservationStatus"] == "LC"
        assert report["hasUrls"] == {
            "birdLife": True,
            "birdsOfTheWorld": False,
            "originalDescription": False,
        }

    def test_unassessed_status(self, engine):
        report = engine.bird_report("Aquila chrysaetos canadensis")

        assert report["conservationStatus"] == "Not assessed"

    def test_related_limit(self):
        family = [
            {"Scientific_name": f"Bird {i}", "Family": "Testidae", "Sequence": i}
            for i in range(1, 10)
        ]
        engine = BirdQueryEngine(DatasetStore.from_records(family), related_limit=5)

        related = engine.bird_report("Bird 1")["relatedInFamily"]

        assert names(related) == ["Bird 2", "Bird 3", "Bird 4", "Bird 5", "Bird 6"]

    def test_no_family_means_no_related(self):
        engine = BirdQueryEngine(
            DatasetStore.from_records(
                [{"Scientific_name": "Incertae sedis"}, {"Scientific_name": "Other"}]
            )
        )

        assert engine.bird_report("Incertae sedis")["relatedInFamily"] == []

    def test_unknown_bird(self, engine):
        with pytest.raises(NotFoundError):
            engine.bird_report("Aquila imaginaria")


class TestStatsAndGroups:
    def test_dataset_stats(self, engine):
        stats = engine.dataset_stats()

        assert stats["totalRecords"] == 6
        assert stats["totalOrders"] == 3
        assert stats["totalFamilies"] == 3
        assert stats["totalSpecies"] == 5
        assert stats["extinctSpecies"] == 1
        assert sorted(stats["iucnCategories"]) == ["EN", "EX", "LC"]

    def test_group_by(self, engine):
        groups = {g["name"]: g for g in engine.group_by("Family")}

        assert groups["Accipitridae"]["count"] == 3
        assert groups["Accipitridae"]["speciesCount"] == 2
        assert groups["Strigidae"]["count"] == 2
        assert groups["Columbidae"]["speciesCount"] == 1

    def test_group_by_missing_field(self, engine):
        assert engine.group_by("Wingspan") == []


class TestRawExecution:
    def test_scalar_result(self, engine):
        assert engine.execute('$count($[Order = "Strigiformes"])') == 2

    def test_syntax_error(self, engine):
        with pytest.raises(EvaluatorError):
            engine.execute("$[Order = ")

    @pytest.mark.parametrize("expression", ["$count", "function($x){$x}"])
    def test_function_result_is_rejected(self, engine, expression):
        with pytest.raises(EvaluatorError) as exc_info:
            engine.execute(expression)

        assert exc_info.value.details == "Expression result is not JSON-serializable"


def test_end_to_end_example():
    """Two-record example: IUCN and family filters with pagination."""
    store = DatasetStore.from_records(
        [
            {
                "Scientific_name": "Aquila chrysaetos",
                "Family": "Accipitridae",
                "IUCN_Red_List_Category": "LC",
                "Sequence": 1,
            },
            {
                "Scientific_name": "Aquila nipalensis",
                "Family": "Accipitridae",
                "IUCN_Red_List_Category": "EN",
                "Sequence": 2,
            },
        ]
    )
    engine = BirdQueryEngine(store)

    assert engine.by_iucn_category("EN") == [store.records[1]]

    family = engine.by_taxonomy("Family", "Accipitridae")
    page = paginate(family, page=1, limit=50)
    assert len(page.results) == 2
    assert page.pagination.total_items == 2
    assert page.pagination.total_pages == 1
    assert page.pagination.has_next is False
