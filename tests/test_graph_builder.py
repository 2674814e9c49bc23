"""
Tests for the relationship graph builder.
"""

import pytest

from anime_grouping.anime_grouping.catalog import InMemoryCatalog
from anime_grouping.anime_grouping.constants import SEED_PATTERNS
from anime_grouping.anime_grouping.graph_builder import RelationshipGraphBuilder, identify_franchise_root
from anime_grouping.anime_grouping.logging import NotFoundError
from anime_grouping.anime_grouping.models import SeasonInfo
from conftest import make_record


def _chain(*titles):
    """Records 1..n linked by sequel edges in order."""
    catalog = InMemoryCatalog([make_record(i, t) for i, t in enumerate(titles, 1)])
    for i in range(1, len(titles)):
        catalog.add_relation(str(i), str(i + 1), "Sequel")
    return catalog


class TestBuildGraph:
    """Series walks over sequel/prequel/side-story/alternative edges."""

    def test_series_x_from_first_season(self, series_x_catalog, store):
        walk = RelationshipGraphBuilder(series_x_catalog, store).walk("1")
        by_id = {s.anime_id: s for s in walk.seasons}
        assert set(by_id) == {"1", "2"}
        assert by_id["1"].season_number == 1
        assert by_id["1"].season_name == "Season 1"
        assert by_id["2"].season_number == 2
        assert by_id["1"].confidence == pytest.approx(0.95)
        assert by_id["2"].confidence == pytest.approx(0.9)
        assert all(s.source == "graph" for s in walk.seasons)
        assert set(walk.patterns_used) == {("relationship_type", "Sequel"), ("title_pattern", "season_pattern")}

    def test_series_x_from_second_season(self, series_x_catalog, store):
        walk = RelationshipGraphBuilder(series_x_catalog, store).walk("2")
        assert {s.anime_id: s.season_number for s in walk.seasons} == {"1": 1, "2": 2}
        assert ("relationship_type", "Prequel") in walk.patterns_used

    def test_confidence_follows_store(self, series_x_catalog, store):
        store.record_failure("relationship_type", "Prequel")
        seasons = RelationshipGraphBuilder(series_x_catalog, store).build_graph("2")
        assert {s.anime_id: s.confidence for s in seasons}["1"] == pytest.approx(0.1)

    def test_no_relations_is_empty(self, mixed_catalog, store):
        assert RelationshipGraphBuilder(mixed_catalog, store).build_graph("5") == []

    def test_adaptation_not_followed(self, mixed_catalog, store):
        seasons = RelationshipGraphBuilder(mixed_catalog, store).build_graph("1")
        assert sorted(s.anime_id for s in seasons) == ["1", "2"]

    def test_unknown_anchor(self, mixed_catalog, store):
        with pytest.raises(NotFoundError) as exc:
            RelationshipGraphBuilder(mixed_catalog, store).build_graph("404")
        assert exc.value.anime_id == "404"

    def test_depth_cap(self, store):
        catalog = _chain("A", "B", "C", "D", "E")
        seasons = RelationshipGraphBuilder(catalog, store, max_depth=3).build_graph("1")
        assert sorted(s.anime_id for s in seasons) == ["1", "2", "3", "4"]

    def test_cycle_terminates(self, store):
        catalog = _chain("A", "B", "C")
        catalog.add_relation("3", "1", "Sequel")
        seasons = RelationshipGraphBuilder(catalog, store).build_graph("1")
        assert sorted(s.anime_id for s in seasons) == ["1", "2", "3"]

    def test_dangling_edge_skipped(self, series_x_catalog, store):
        series_x_catalog.add_relation("1", "99", "Sequel")
        seasons = RelationshipGraphBuilder(series_x_catalog, store).build_graph("1")
        assert sorted(s.anime_id for s in seasons) == ["1", "2"]

    def test_reads_do_not_write(self, series_x_catalog, store):
        RelationshipGraphBuilder(series_x_catalog, store).walk("1")
        assert len(store.repository) == 0


class TestSeasonInference:
    """Unnumbered entries borrow numbers from numbered neighbours."""

    def test_fixpoint_over_chain(self, store):
        catalog = _chain("Zeta", "Zeta", "Zeta Season 3")
        seasons = RelationshipGraphBuilder(catalog, store).build_graph("1")
        assert {s.anime_id: s.season_number for s in seasons} == {"1": 1, "2": 2, "3": 3}

    def test_movie_not_numbered(self, store):
        catalog = InMemoryCatalog([
            make_record(1, "Foo Season 2"),
            make_record(2, "Foo", type="Movie"),
        ])
        catalog.add_relation("1", "2", "Sequel")
        numbers = {s.anime_id: s.season_number for s in RelationshipGraphBuilder(catalog, store).build_graph("1")}
        assert numbers == {"1": 2, "2": None}

    def test_different_series_not_numbered(self, store):
        catalog = InMemoryCatalog([
            make_record(1, "Foo Season 2"),
            make_record(2, "Bar"),
        ])
        catalog.add_relation("1", "2", "Sequel")
        numbers = {s.anime_id: s.season_number for s in RelationshipGraphBuilder(catalog, store).build_graph("1")}
        assert numbers["2"] is None

    def test_never_below_one(self, store):
        catalog = InMemoryCatalog([
            make_record(1, "Foo"),
            make_record(2, "Foo Season 1"),
        ])
        catalog.add_relation("2", "1", "Prequel")
        numbers = {s.anime_id: s.season_number for s in RelationshipGraphBuilder(catalog, store).build_graph("1")}
        assert numbers == {"1": None, "2": 1}


class TestFranchise:
    """Franchise walks follow every relation type."""

    def test_franchise_includes_adaptations(self, mixed_catalog, store):
        seasons = RelationshipGraphBuilder(mixed_catalog, store).build_franchise_graph("1")
        by_id = {s.anime_id: s for s in seasons}
        assert set(by_id) == {"1", "2", "8"}
        assert by_id["1"].confidence == pytest.approx(0.95)
        assert by_id["8"].confidence == pytest.approx(0.9)

    def test_franchise_confidence_from_seed(self, mixed_catalog, store):
        store.seed_patterns(SEED_PATTERNS)
        seasons = RelationshipGraphBuilder(mixed_catalog, store).build_franchise_graph("6")
        assert {s.anime_id: s.confidence for s in seasons}["7"] == pytest.approx(0.85)

    def test_franchise_depth_override(self, store):
        catalog = _chain("A", "B", "C", "D")
        seasons = RelationshipGraphBuilder(catalog, store).build_franchise_graph("1", max_depth=1)
        assert sorted(s.anime_id for s in seasons) == ["1", "2"]

    def test_lone_entry(self, mixed_catalog, store):
        assert RelationshipGraphBuilder(mixed_catalog, store).build_franchise_graph("5") == []

    def test_root_is_earliest(self, mixed_catalog, store):
        seasons = RelationshipGraphBuilder(mixed_catalog, store).build_franchise_graph("2")
        assert identify_franchise_root(seasons).anime_id == "8"

    def test_root_falls_back_to_year_then_id(self):
        entries = [
            SeasonInfo(anime_id="3", title="C", year=2001),
            SeasonInfo(anime_id="2", title="B"),
            SeasonInfo(anime_id="1", title="A", year=2001),
        ]
        assert identify_franchise_root(entries).anime_id == "1"
        assert identify_franchise_root([]) is None
