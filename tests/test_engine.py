"""
End-to-end tests for the series grouping engine.
"""

import pytest

from anime_grouping.anime_grouping.catalog import InMemoryCatalog
from anime_grouping.anime_grouping.constants import SEED_PATTERNS
from anime_grouping.anime_grouping.logging import NotFoundError, ValidationError
from conftest import make_record


@pytest.fixture
def series_y_catalog():
    """Two seasons with no relation edges at all."""
    return InMemoryCatalog([
        make_record(10, "Series Y", year=2018),
        make_record(11, "Series Y 2", year=2020),
    ])


class TestGroupSeries:
    """Single-anchor grouping."""

    @pytest.mark.parametrize("parallel", [True, False])
    def test_series_x_from_either_season(self, engine_factory, series_x_catalog, parallel):
        engine = engine_factory(series_x_catalog, parallel=parallel)
        for anchor in ("1", "2"):
            group = engine.group_series(anchor)
            assert group.anime_ids == ["1", "2"]
            assert [s.season_number for s in group.seasons] == [1, 2]
            assert group.series_name == "Series X"
            assert group.anchor_id == anchor
            assert group.total_episodes == 24

        group = engine.group_series("2")
        assert set(group.patterns_used) == {("relationship_type", "Prequel"), ("title_pattern", "season_pattern")}

    def test_title_fallback_when_no_edges(self, engine_factory, series_y_catalog):
        group = engine_factory(series_y_catalog).group_series("11")
        assert group.anime_ids == ["11", "10"]
        assert all(s.source == "title" for s in group.seasons)
        assert group.patterns_used == [("title_pattern", "series_name_match:seriesy")]

    def test_subtitled_sibling_not_grouped(self, engine_factory, mixed_catalog):
        group = engine_factory(mixed_catalog).group_series("20")
        assert group.anime_ids == ["20"]
        assert group.is_singleton

    def test_lone_anime_is_singleton(self, engine_factory, mixed_catalog):
        group = engine_factory(mixed_catalog).group_series("5")
        assert group.anime_ids == ["5"]
        assert group.seasons[0].source == "title"

    def test_graph_results_skip_titles(self, engine_factory, series_x_catalog):
        series_x_catalog.add(make_record(3, "Series X Season 3"))
        group = engine_factory(series_x_catalog).group_series("1")
        assert group.anime_ids == ["1", "2"]

    def test_unknown_anchor(self, engine_factory, mixed_catalog):
        with pytest.raises(NotFoundError):
            engine_factory(mixed_catalog).group_series("404")

    @pytest.mark.parametrize("parallel", [True, False])
    def test_unknown_anchor_parallel_setting(self, engine_factory, mixed_catalog, parallel):
        with pytest.raises(NotFoundError):
            engine_factory(mixed_catalog, parallel=parallel).group_series("nope")

    def test_grouping_does_not_write(self, engine_factory, series_x_catalog, store):
        engine_factory(series_x_catalog).group_series("1")
        assert len(store.repository) == 0


class TestFeedbackScenarios:
    """Corrections change later groupings."""

    def test_split_removes_title_matches(self, engine_factory, series_y_catalog, store):
        engine = engine_factory(series_y_catalog)
        assert engine.group_series("10").anime_ids == ["11", "10"]

        engine.submit_feedback("10", "series", "split")

        assert store.get_confidence("title_pattern", "series_name_match:seriesy") == pytest.approx(0.1)
        assert engine.group_series("10").anime_ids == ["10"]
        assert len(engine.feedback_loop.log) == 1

    def test_confirm_raises_confidence(self, engine_factory, series_x_catalog, store):
        engine = engine_factory(series_x_catalog)
        engine.submit_feedback("2", "series", "confirm")
        assert store.get_pattern("relationship_type", "Prequel").success_count == 1
        assert store.get_confidence("relationship_type", "Prequel") == pytest.approx(0.95)
        assert store.get_pattern("title_pattern", "season_pattern").success_count == 1

    def test_explicit_patterns(self, engine_factory, series_x_catalog, store):
        engine = engine_factory(series_x_catalog)
        engine.submit_feedback("1", "franchise", "merge", patterns=[("studio_match", "same_studio")])
        assert store.get_pattern("studio_match", "same_studio").failure_count == 1
        assert store.get_pattern("relationship_type", "Sequel") is None

    def test_franchise_feedback_without_patterns(self, engine_factory, series_x_catalog, store):
        engine = engine_factory(series_x_catalog)
        engine.submit_feedback("1", "franchise", "split")
        assert len(store.repository) == 0
        assert len(engine.feedback_loop.log) == 1

    def test_feedback_uses_engine_clock(self, engine_factory, series_x_catalog, clock):
        engine = engine_factory(series_x_catalog)
        fb = engine.submit_feedback("1", "series", "confirm", confidence="high")
        assert fb.created_at == clock.now
        assert fb.confidence == "high"

    def test_invalid_feedback(self, engine_factory, series_x_catalog):
        engine = engine_factory(series_x_catalog)
        with pytest.raises(ValidationError):
            engine.submit_feedback("1", "series", "undo")
        with pytest.raises(NotFoundError):
            engine.submit_feedback("404", "series", "confirm")
        assert len(engine.feedback_loop.log) == 0


class TestAnimeGrouping:
    """Series plus franchise view."""

    def test_franchise_around_series(self, engine_factory, mixed_catalog):
        result = engine_factory(mixed_catalog).get_anime_grouping("1")
        assert result.series.anime_ids == ["1", "2"]
        assert [s.anime_id for s in result.franchise] == ["8"]
        assert result.franchise_root.anime_id == "8"

    def test_no_franchise(self, engine_factory, mixed_catalog):
        result = engine_factory(mixed_catalog).get_anime_grouping("5")
        assert result.series.anime_ids == ["5"]
        assert result.franchise == []
        assert result.franchise_root is None


class TestGroupAnimeList:
    """Batch grouping in three passes."""

    def test_mixed_catalog(self, engine_factory, mixed_catalog):
        ids = ["1", "2", "8", "3", "4", "5", "6", "7", "20", "21"]
        groups = engine_factory(mixed_catalog).group_anime_list(ids)
        assert [(g.group_type, g.group_id) for g in groups] == [
            ("franchise", "8"),
            ("series", "Beta"),
            ("franchise", "6"),
        ]
        alpha, beta, delta = groups
        assert alpha.anime_ids == ["1", "2", "8"]
        assert alpha.confidence == pytest.approx(0.85)
        assert alpha.metadata["franchise_root_id"] == "8"
        assert beta.anime_ids == ["3", "4"]
        assert beta.confidence == pytest.approx(0.9)
        assert beta.source == "title_pattern"
        assert delta.anime_ids == ["6", "7"]

    def test_series_group_from_relations(self, engine_factory, series_x_catalog):
        groups = engine_factory(series_x_catalog).group_anime_list(["2", "1"])
        assert len(groups) == 1
        group = groups[0]
        assert group.group_type == "series"
        assert group.source == "database"
        assert group.group_id == "Series X"
        assert sorted(group.anime_ids) == ["1", "2"]
        assert group.confidence == pytest.approx(0.9)

    def test_franchise_confidence_from_store(self, engine_factory, mixed_catalog, store):
        store.seed_patterns(SEED_PATTERNS)
        store.record_failure("relationship_type", "franchise")
        groups = engine_factory(mixed_catalog).group_anime_list(["6", "7"])
        assert groups[0].confidence == pytest.approx(store.get_confidence("relationship_type", "franchise"))

    def test_far_apart_titles_are_fuzzy(self, engine_factory):
        catalog = InMemoryCatalog([
            make_record(1, "Omega", year=2000, studio="One"),
            make_record(2, "Omega 2", year=2015, studio="One"),
        ])
        groups = engine_factory(catalog).group_anime_list(["1", "2"])
        assert groups[0].source == "fuzzy_match"
        assert groups[0].confidence == pytest.approx(0.6)

    def test_low_confidence_title_group_dropped(self, engine_factory, store):
        catalog = InMemoryCatalog([make_record(1, "Omega"), make_record(2, "Omega 2")])
        store.record_failure("title_pattern", "series_name_match:omega")
        assert engine_factory(catalog).group_anime_list(["1", "2"]) == []

    def test_unknown_ids_skipped(self, engine_factory, mixed_catalog, caplog):
        assert engine_factory(mixed_catalog).group_anime_list(["404", "5"]) == []
        assert "Skipping unknown anime id 404" in caplog.text
