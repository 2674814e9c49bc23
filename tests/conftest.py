"""
Shared fixtures: small in-memory catalogs and a controllable clock.
"""

from datetime import date, datetime, timedelta

import pytest

from anime_grouping.anime_grouping.catalog import InMemoryCatalog
from anime_grouping.anime_grouping.config import AnimeGroupingConfig, GroupingConfig
from anime_grouping.anime_grouping.engine import SeriesGroupingEngine
from anime_grouping.anime_grouping.feedback import InMemoryFeedbackLog
from anime_grouping.anime_grouping.models import AnimeRecord
from anime_grouping.anime_grouping.pattern_store import PatternConfidenceStore


def make_record(anime_id, title, title_english=None, year=None, start=None, **kwargs):
    """AnimeRecord with sensible defaults; start is an ISO date string."""
    return AnimeRecord(
        id=str(anime_id),
        title=title,
        title_english=title_english,
        year=year,
        start_date=date.fromisoformat(start) if start else None,
        type=kwargs.pop("type", "TV"),
        **kwargs,
    )


class FakeClock:
    """Callable clock that tests move forward by hand."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return PatternConfidenceStore(clock=clock)


@pytest.fixture
def config():
    return AnimeGroupingConfig(grouping=GroupingConfig())


@pytest.fixture
def series_x_catalog():
    """'Series X' and its second season, linked by a prequel edge only."""
    catalog = InMemoryCatalog([
        make_record(1, "Series X", year=2015, start="2015-04-01", episode_count=12),
        make_record(2, "Series X Season 2", year=2017, start="2017-04-01", episode_count=12),
    ])
    catalog.add_relation("2", "1", "Prequel")
    return catalog


@pytest.fixture
def mixed_catalog():
    """
    1-2: Alpha, linked by a sequel edge (plus an adaptation 8).
    3-4: Beta, no edges, same studio, close years.
    5:   Gamma, alone.
    6-7: Delta and an adaptation of it.
    20-21: Fullmetal Alchemist and Brotherhood, no edge.
    """
    catalog = InMemoryCatalog([
        make_record(1, "Alpha", year=2010, start="2010-01-05"),
        make_record(2, "Alpha Season 2", year=2012, start="2012-01-05"),
        make_record(8, "Alpha: Side Chronicles", year=2008, start="2008-07-01", type="OVA"),
        make_record(3, "Beta", year=2010, studio="Studio B"),
        make_record(4, "Beta 2", year=2012, studio="Studio B"),
        make_record(5, "Gamma", year=2011),
        make_record(6, "Delta", year=2014, start="2014-10-01"),
        make_record(7, "Delta Origins", year=2016, start="2016-10-01", type="Movie"),
        make_record(20, "Fullmetal Alchemist", year=2003),
        make_record(21, "Fullmetal Alchemist: Brotherhood", year=2009),
    ])
    catalog.add_relation("1", "2", "Sequel")
    catalog.add_relation("1", "8", "Adaptation")
    catalog.add_relation("6", "7", "Adaptation")
    return catalog


@pytest.fixture
def engine_factory(store, config):
    def build(catalog, **overrides):
        cfg = config.model_copy(deep=True)
        for key, value in overrides.items():
            setattr(cfg.grouping, key, value)
        return SeriesGroupingEngine(catalog, store, InMemoryFeedbackLog(), cfg)
    return build
