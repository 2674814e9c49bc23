"""
Tests for catalog repositories.
"""

import json
from datetime import date

import pytest

from anime_grouping.anime_grouping.catalog import InMemoryCatalog, JsonCatalogRepository
from anime_grouping.anime_grouping.logging import ConfigError, RepositoryUnavailableError
from anime_grouping.anime_grouping.models import AnimeRecord, RelationType
from conftest import make_record


class TestInMemoryCatalog:
    """Record lookup, relation edges and title search."""

    def test_edges_stored_from_both_ends(self, series_x_catalog):
        assert [(r.target_id, r.relation_type) for r in series_x_catalog.get_relations("2")] == [("1", RelationType.PREQUEL)]
        assert [(r.target_id, r.relation_type) for r in series_x_catalog.get_relations("1")] == [("2", RelationType.SEQUEL)]

    def test_symmetric_types_keep_their_type(self, mixed_catalog):
        assert mixed_catalog.get_relations("8")[0].relation_type is RelationType.ADAPTATION

    def test_self_edge_ignored(self, series_x_catalog):
        series_x_catalog.add_relation("1", "1", RelationType.SEQUEL)
        assert len(series_x_catalog.get_relations("1")) == 1

    def test_one_edge_per_target(self, series_x_catalog):
        series_x_catalog.add_relation("2", "1", "Side story")
        assert len(series_x_catalog.get_relations("2")) == 1

    def test_unknown_label(self):
        catalog = InMemoryCatalog([make_record(1, "A"), make_record(2, "B")])
        catalog.add_relation("1", "2", "Character")
        assert catalog.get_relations("1")[0].relation_type is RelationType.OTHER

    def test_duplicate_id_replaced(self, caplog):
        catalog = InMemoryCatalog([make_record(1, "Old"), make_record(1, "New")])
        assert catalog.get("1").title == "New"
        assert len(catalog) == 1
        assert "Duplicate anime id 1" in caplog.text

    def test_search_titles(self, mixed_catalog):
        found = mixed_catalog.search_titles("fullmetal")
        assert [r.id for r in found] == ["20", "21"]
        assert mixed_catalog.search_titles("fullmetal", limit=1)[0].id == "20"
        assert mixed_catalog.search_titles("  ") == []

    def test_search_english_title(self):
        catalog = InMemoryCatalog([make_record(1, "Shingeki no Kyojin", "Attack on Titan")])
        assert [r.id for r in catalog.search_titles("attack on")] == ["1"]

    def test_missing_record(self, mixed_catalog):
        assert mixed_catalog.get("404") is None
        assert mixed_catalog.get_relations("404") == []


class TestJsonCatalogRepository:
    """Loading a catalog file."""

    def write(self, tmp_path, data):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(data), "utf-8")
        return path

    def test_load_with_embedded_relations(self, tmp_path):
        path = self.write(tmp_path, {"anime": [
            {"id": 1, "title": "Series X", "year": 2015, "start_date": "2015-04-01T00:00:00Z",
             "relations": [{"targetId": "2", "relationType": "Sequel"}]},
            {"id": "2", "title": "Series X Season 2", "unknown_field": True},
        ]})
        catalog = JsonCatalogRepository(path)
        assert len(catalog) == 2
        assert catalog.get("1").start_date == date(2015, 4, 1)
        assert catalog.get_relations("2")[0].relation_type is RelationType.PREQUEL

    def test_load_bare_list(self, tmp_path):
        record = make_record(5, "Gamma", year=2011, start="2011-01-01")
        path = self.write(tmp_path, [record.to_dict()])
        assert JsonCatalogRepository(path).get("5") == record

    def test_missing_file(self, tmp_path):
        with pytest.raises(RepositoryUnavailableError):
            JsonCatalogRepository(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("[{", "utf-8")
        with pytest.raises(ConfigError):
            JsonCatalogRepository(path)

    def test_not_a_list(self, tmp_path):
        with pytest.raises(ConfigError):
            JsonCatalogRepository(self.write(tmp_path, {"anime": {"id": 1}}))

    def test_record_without_id(self, tmp_path):
        with pytest.raises(ConfigError):
            JsonCatalogRepository(self.write(tmp_path, [{"title": "No id"}]))

    def test_relation_without_target(self, tmp_path):
        with pytest.raises(ConfigError):
            JsonCatalogRepository(self.write(tmp_path, [{"id": 1, "title": "A", "relations": [{"relation_type": "Sequel"}]}]))


class TestAnimeRecord:
    def test_is_movie(self):
        assert make_record(1, "A", type="Movie").is_movie
        assert not make_record(1, "A").is_movie

    def test_from_dict_stringifies_id(self):
        assert AnimeRecord.from_dict({"id": 7, "title": "A"}).id == "7"
