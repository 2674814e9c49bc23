"""
Tests for title parsing: season markers, trailing numerals, normalization.
"""

import pytest

from anime_grouping.anime_grouping.title_parser import (
    clean_title,
    group_by_series_name,
    normalize_series_name,
    parse_title,
    series_keys,
    split_subtitle,
)
from anime_grouping.anime_grouping.logging import ValidationError
from conftest import make_record


class TestSeasonMarkers:
    """Explicit season/part markers."""

    @pytest.mark.parametrize("name,n", [
        ("Attack on Titan", 2),
        ("My Hero Academia", 5),
        ("Spy x Family", 1),
        ("The Rising of the Shield Hero", 3),
    ])
    def test_season_n(self, name, n):
        """'<Name> Season <N>' parses to N and Name."""
        d = parse_title(f"{name} Season {n}")
        assert d.season_number == n
        assert d.series_name == name
        assert d.season_name == f"Season {n}"
        assert d.marker == "season_pattern"

    @pytest.mark.parametrize("name,n,suffix", [
        ("Mob Psycho 100", 2, "nd"),
        ("Tokyo Ghoul", 3, "rd"),
        ("Food Wars", 4, "th"),
        ("Overlord", 1, "st"),
    ])
    def test_nth_season(self, name, n, suffix):
        """'<Name> <N>nd Season' parses to N and Name."""
        d = parse_title(f"{name} {n}{suffix} Season")
        assert d.season_number == n
        assert d.series_name == name

    def test_ordinal_word_season(self):
        d = parse_title("Natsume's Book of Friends Second Season")
        assert d.season_number == 2
        assert d.series_name == "Natsume's Book of Friends"

    def test_roman_season(self):
        d = parse_title("Log Horizon Season III")
        assert d.season_number == 3
        assert d.series_name == "Log Horizon"
        assert d.marker == "roman_numeral_pattern"

    def test_part_marker(self):
        d = parse_title("Vinland Saga Part 2")
        assert d.season_number == 2
        assert d.season_name == "Part 2"
        assert d.series_name == "Vinland Saga"

    def test_part_roman(self):
        d = parse_title("Hunter Part III")
        assert d.season_number == 3
        assert d.series_name == "Hunter"

    def test_cour_marker(self):
        d = parse_title("Jujutsu Kaisen 2nd Cour")
        assert d.season_number == 2
        assert d.season_name == "Cour 2"
        assert d.marker == "cour_pattern"

    def test_part_folded_into_season(self):
        """A part marker following the season marker ends up in the season name."""
        d = parse_title("Attack on Titan Season 3 Part 2")
        assert d.season_number == 3
        assert d.season_name == "Season 3 Part 2"
        assert d.series_name == "Attack on Titan"

    def test_season_beats_part(self):
        d = parse_title("Sword Art Online Part 2 Season 4")
        assert d.season_number == 4
        assert d.series_name == "Sword Art Online"
        assert d.season_name == "Season 4"

    def test_numeral_before_marker_is_not_kept(self):
        """The marker gives the season; a bare numeral in front of it belongs to no name."""
        d = parse_title("Series 2 Season 3")
        assert d.series_name == "Series"
        assert d.season_number == 3
        assert d.series_key == "series"
        assert d.marker == "season_pattern"

    def test_number_label_before_marker_kept(self):
        d = parse_title("Kaiju No. 8 Season 2")
        assert d.series_name == "Kaiju No. 8"
        assert d.season_number == 2

    def test_final_season(self):
        d = parse_title("Attack on Titan: The Final Season")
        assert d.series_name == "Attack on Titan"
        assert d.season_number is None
        assert d.season_name == "Final Season"
        assert d.marker == "final_season_pattern"

    def test_final_season_with_part(self):
        d = parse_title("Attack on Titan: The Final Season Part 2")
        assert d.series_name == "Attack on Titan"
        assert d.season_name == "Final Season Part 2"

    def test_marker_with_trailing_subtitle(self):
        """Subtitle after the marker is not part of the series name."""
        d = parse_title("Re:Zero Season 2: The Sanctuary")
        assert d.series_name == "Re:Zero"
        assert d.season_number == 2

    def test_rightmost_marker_wins(self):
        d = parse_title("Season 1 Recap - Season 2")
        assert d.season_number == 2

    def test_leading_marker(self):
        d = parse_title("2nd Season: Kaguya")
        assert d.season_number == 2
        assert d.series_name == "Kaguya"


class TestTrailingNumerals:
    """Numerals appended to the main title."""

    def test_trailing_number(self):
        d = parse_title("Series 2")
        assert d.series_name == "Series"
        assert d.season_number == 2
        assert d.marker == "trailing_number_pattern"

    def test_trailing_roman(self):
        d = parse_title("Overlord II")
        assert d.series_name == "Overlord"
        assert d.season_number == 2

    def test_trailing_roman_before_subtitle(self):
        d = parse_title("Overlord III: The Undead King")
        assert d.series_name == "Overlord"
        assert d.season_number == 3

    def test_number_inside_subtitle_ignored(self):
        """'Title: Movie 2' is a subtitled one-shot, not a second season."""
        d = parse_title("Detective Conan: Movie 2")
        assert d.season_number is None
        assert d.series_name == "Detective Conan: Movie 2"

    @pytest.mark.parametrize("title", ["Kaiju No. 8", "Mob Psycho 100", "Steins;Gate 0 2019", "86", "Gundam X"])
    def test_not_a_season(self, title):
        assert parse_title(title).season_number is None

    def test_out_of_range_numeral(self):
        assert parse_title("Area 51").season_number is None


class TestNoMarker:
    """Titles without any season signal."""

    def test_full_cleaned_title(self):
        d = parse_title("Fullmetal Alchemist: Brotherhood")
        assert d.series_name == "Fullmetal Alchemist: Brotherhood"
        assert d.season_number is None
        assert d.season_name is None
        assert d.marker is None

    @pytest.mark.parametrize("title", [
        "Attack on Titan Season 2",
        "Mob Psycho 100 2nd Season",
        "Overlord II",
        "Series 2",
        "Vinland Saga Part 2",
        "Series 2 Season 3",
        "Sword Art Online Part 2 Season 4",
        "Overlord II Season 4",
    ])
    def test_idempotent(self, title):
        """Parsing an extracted series name again yields the same name and no number."""
        name = parse_title(title).series_name
        again = parse_title(name)
        assert again.series_name == name
        assert again.season_number is None

    def test_tags_stripped(self):
        d = parse_title("Attack on Titan (TV) [2017] Season 2")
        assert d.series_name == "Attack on Titan"
        assert d.season_number == 2

    def test_empty_title_raises(self):
        with pytest.raises(ValidationError):
            parse_title("")
        with pytest.raises(ValidationError):
            parse_title("   ", None)

    def test_english_title_preferred(self):
        d = parse_title("Shingeki no Kyojin Season 2", "Attack on Titan Season 2")
        assert d.series_name == "Attack on Titan"

    def test_native_title_when_no_english(self):
        d = parse_title("Shingeki no Kyojin Season 2", None)
        assert d.series_name == "Shingeki no Kyojin"

    def test_non_latin_numerals_unrecognised(self):
        d = parse_title("進撃の巨人 第二期")
        assert d.season_number is None
        assert d.series_key

    def test_deterministic(self):
        assert parse_title("Overlord II") == parse_title("Overlord II")


class TestNormalization:
    """Comparison keys and helpers."""

    def test_articles_case_and_punctuation(self):
        assert normalize_series_name("The Melancholy of Haruhi Suzumiya") == \
            normalize_series_name("melancholy of haruhi suzumiya!")

    def test_display_casing_kept(self):
        d = parse_title("The Rising of the Shield Hero Season 2")
        assert d.series_name == "The Rising of the Shield Hero"
        assert d.series_key == "risingofshieldhero"

    def test_subtitle_changes_key(self):
        assert normalize_series_name("Fullmetal Alchemist") != normalize_series_name("Fullmetal Alchemist: Brotherhood")

    def test_love_live_variants_differ(self):
        assert parse_title("Love Live!").series_key != parse_title("Love Live! Sunshine!!").series_key

    def test_split_subtitle(self):
        assert split_subtitle("Main: Sub") == ("Main", "Sub")
        assert split_subtitle("Main - Sub") == ("Main", "Sub")
        assert split_subtitle("Re:Zero") == ("Re:Zero", None)

    def test_clean_title(self):
        assert clean_title("  Naruto   (TV)  ") == "Naruto"
        assert clean_title("[Only Tags]") == "[Only Tags]"

    def test_series_keys_include_native(self):
        record = make_record(1, "Shingeki no Kyojin", "Attack on Titan")
        assert series_keys(record) == ["attackontitan", "shingekinokyojin"]

    def test_group_by_series_name(self):
        records = [
            make_record(1, "Beta"),
            make_record(2, "Beta 2"),
            make_record(3, "Gamma"),
            make_record(4, "The Beta Season 3"),
        ]
        groups = group_by_series_name(records)
        assert [r.id for r in groups["beta"]] == ["1", "2", "4"]
        assert [r.id for r in groups["gamma"]] == ["3"]
