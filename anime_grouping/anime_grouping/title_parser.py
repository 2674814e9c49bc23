"""
Title parsing: free-text anime titles -> structured season descriptors.

Pure functions only. The same input always yields the same descriptor.
"""

import re
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from .models import AnimeRecord, SeasonDescriptor
from .logging import ValidationError
from .constants import (
    ARTICLES,
    MAX_TRAILING_SEASON_NUMERAL,
    ORDINAL_WORDS,
    ROMAN_NUMERALS,
)

logger = logging.getLogger(__name__)

# --- REGEX DEFINITIONS ---

# Tags: (TV), [2019], {Uncensored}
TAG_PATTERN = re.compile(r"\[.*?\]|\(.*?\)|\{.*?\}")

# Subtitle separators. A colon must be followed by whitespace so that
# names like "Re:Zero" stay intact; a hyphen must be spaced on both sides.
SUBTITLE_SEPARATOR = re.compile(r":\s+|\s+-\s+|\s*[–—]\s*")

# Separators and punctuation left dangling after a marker is cut out
DANGLING_PATTERN = re.compile(r"[\s:\-–—,.;~]+$")
LEADING_DANGLING_PATTERN = re.compile(r"^[\s:\-–—,.;~]+")
# "Attack on Titan: The Final Season" leaves "The" behind the cut
TRAILING_ARTICLE_PATTERN = re.compile(r"\s+(?:" + "|".join(ARTICLES) + r")$", re.IGNORECASE)

_ROMAN_ALTERNATION = "|".join(sorted(ROMAN_NUMERALS, key=len, reverse=True))
# Bare trailing numerals are ambiguous beyond IX ("Gundam X")
_TRAILING_ROMAN_ALTERNATION = "|".join(
    sorted((r for r, n in ROMAN_NUMERALS.items() if 2 <= n <= 9), key=len, reverse=True)
)
_ORDINAL_ALTERNATION = "|".join(ORDINAL_WORDS)

# 1. Season markers: (regex, marker name)
SEASON_MARKERS = [
    (re.compile(r"\bSeason\s*(?P<num>\d{1,2})\b", re.IGNORECASE), "season_pattern"),
    (re.compile(r"\b(?P<num>\d{1,2})(?:st|nd|rd|th)\s+Season\b", re.IGNORECASE), "season_pattern"),
    (re.compile(rf"\b(?P<word>{_ORDINAL_ALTERNATION})\s+Season\b", re.IGNORECASE), "season_pattern"),
    (re.compile(rf"\bSeason\s+(?-i:(?P<roman>{_ROMAN_ALTERNATION}))\b", re.IGNORECASE), "roman_numeral_pattern"),
    (re.compile(r"\bFinal\s+Season\b", re.IGNORECASE), "final_season_pattern"),
]

# 2. Part / cour markers
PART_MARKERS = [
    (re.compile(r"\bPart\s*(?P<num>\d{1,2})\b", re.IGNORECASE), "part_pattern"),
    (re.compile(r"\b(?P<num>\d{1,2})(?:st|nd|rd|th)\s+Part\b", re.IGNORECASE), "part_pattern"),
    (re.compile(rf"\bPart\s+(?-i:(?P<roman>{_ROMAN_ALTERNATION}))\b", re.IGNORECASE), "part_pattern"),
    (re.compile(r"\bCour\s*(?P<num>\d{1,2})\b", re.IGNORECASE), "cour_pattern"),
    (re.compile(r"\b(?P<num>\d{1,2})(?:st|nd|rd|th)\s+Cour\b", re.IGNORECASE), "cour_pattern"),
]

# 3. Trailing roman numeral on the main title ("Overlord II", "Title: II")
TRAILING_ROMAN_PATTERN = re.compile(rf"^(?P<name>.*?\S)[\s:]+(?P<roman>{_TRAILING_ROMAN_ALTERNATION})$")

# 4. Trailing numeral on the main title ("Series 2")
TRAILING_NUMBER_PATTERN = re.compile(r"^(?P<name>.*\S)\s+(?P<num>\d{1,2})$")

# "Kaiju No. 8", "Number 9": the digit belongs to the name
NUMBER_LABEL_PATTERN = re.compile(r"(?:\bNo\.?|\bNumber|#)$", re.IGNORECASE)

# Articles stripped for comparison only
ARTICLE_PATTERN = re.compile(r"\b(?:" + "|".join(ARTICLES) + r")\b", re.IGNORECASE)


def clean_title(title: str) -> str:
    """Strips bracketed tags and collapses whitespace."""
    if not title:
        return ""
    cleaned = TAG_PATTERN.sub(" ", title)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    # A title made only of tags keeps its raw text
    return cleaned or re.sub(r"\s+", " ", title).strip()


def normalize_series_name(name: str) -> str:
    """
    Aggressive normalization for series-name comparison.
    Strips tags, articles, punctuation and whitespace, then case-folds.
    Non-Latin letters are kept so that native titles still produce a key.
    """
    if not name:
        return ""
    key = TAG_PATTERN.sub(" ", name)
    key = ARTICLE_PATTERN.sub(" ", key)
    key = key.replace("&", " and ")
    key = re.sub(r"[\W_]+", "", key)
    if not key:
        # Name made only of articles/punctuation: fall back to the folded text
        key = re.sub(r"\s+", " ", name).strip()
    return key.casefold()


def split_subtitle(title: str) -> Tuple[str, Optional[str]]:
    """Splits 'Main: Subtitle' into ('Main', 'Subtitle'). No separator -> (title, None)."""
    match = SUBTITLE_SEPARATOR.search(title)
    if not match or match.start() == 0:
        return title, None
    main = title[:match.start()].strip()
    rest = title[match.end():].strip()
    return main, (rest or None)


def _marker_number(match: re.Match) -> Optional[int]:
    groups = match.groupdict()
    if groups.get("num"):
        return int(groups["num"])
    if groups.get("word"):
        return ORDINAL_WORDS[groups["word"].lower()]
    if groups.get("roman"):
        return ROMAN_NUMERALS[groups["roman"]]
    return None


def _find_markers(text: str, markers) -> List[Tuple[re.Match, str]]:
    hits = []
    for regex, marker in markers:
        for match in regex.finditer(text):
            hits.append((match, marker))
    return hits


def _strip_dangling(text: str) -> str:
    return DANGLING_PATTERN.sub("", text).strip()


def _descriptor(name: str, number: Optional[int], season_name: Optional[str], marker: Optional[str]) -> SeasonDescriptor:
    return SeasonDescriptor(
        series_name=name,
        season_number=number,
        season_name=season_name,
        series_key=normalize_series_name(name),
        marker=marker,
    )


def _from_marker(cleaned: str, match: re.Match, marker: str, kind: str, part_hits) -> SeasonDescriptor:
    number = _marker_number(match)
    prefix = _strip_dangling(cleaned[:match.start()])
    prefix = _strip_dangling(TRAILING_ARTICLE_PATTERN.sub("", prefix))
    if not prefix:
        # Marker leads the title ("2nd Season: Name"); use what follows it
        remainder = LEADING_DANGLING_PATTERN.sub("", cleaned[match.end():])
        prefix = _strip_dangling(split_subtitle(remainder)[0]) or cleaned

    if marker == "final_season_pattern":
        season_name = "Final Season"
    elif kind == "season":
        season_name = f"Season {number}"
    elif marker == "cour_pattern":
        season_name = f"Cour {number}"
    else:
        season_name = f"Part {number}"

    # "Season 3 Part 2": fold the part that follows the chosen season marker
    if kind == "season":
        trailing_parts = [(m, mk) for m, mk in part_hits if m.start() >= match.end()]
        if trailing_parts:
            part_match, part_marker = min(trailing_parts, key=lambda h: h[0].start())
            part_label = "Cour" if part_marker == "cour_pattern" else "Part"
            season_name = f"{season_name} {part_label} {_marker_number(part_match)}"

    return _descriptor(prefix, number, season_name, marker)


def parse_title(title: str, title_english: Optional[str] = None) -> SeasonDescriptor:
    """
    Extracts the series name and season info from an anime title.

    The English title is preferred when present. Recognition order:
    1. explicit season/part markers (rightmost of the strongest kind),
    2. a trailing numeral or roman numeral on the main title (not in a subtitle),
    3. nothing: season_number is None and the whole cleaned title is the name.

    Raises:
        ValidationError: If both titles are empty.
    """
    working = (title_english or "").strip() or (title or "").strip()
    if not working:
        raise ValidationError("Cannot parse an empty title")

    cleaned = clean_title(working)
    descriptor = _parse_cleaned(cleaned)
    if descriptor.marker is None or descriptor.series_name == cleaned:
        return descriptor

    # "Series 2 Season 3": a numeral left on the name would parse as a season again
    base = parse_title(descriptor.series_name).series_name
    if base == descriptor.series_name:
        return descriptor
    return _descriptor(base, descriptor.season_number, descriptor.season_name, descriptor.marker)


def _parse_cleaned(cleaned: str) -> SeasonDescriptor:
    season_hits = _find_markers(cleaned, SEASON_MARKERS)
    part_hits = _find_markers(cleaned, PART_MARKERS)

    if season_hits:
        match, marker = max(season_hits, key=lambda h: h[0].start())
        return _from_marker(cleaned, match, marker, "season", part_hits)

    if part_hits:
        match, marker = max(part_hits, key=lambda h: h[0].start())
        return _from_marker(cleaned, match, marker, "part", part_hits)

    main, _subtitle = split_subtitle(cleaned)

    # Roman numerals: full title first ("Title: II"), then the main part ("Title II: Sub")
    for candidate in (cleaned, main):
        roman = TRAILING_ROMAN_PATTERN.match(candidate)
        if roman:
            name = _strip_dangling(split_subtitle(roman.group("name"))[0]) or roman.group("name")
            number = ROMAN_NUMERALS[roman.group("roman")]
            return _descriptor(name, number, f"Season {number}", "roman_numeral_pattern")

    # Trailing numeral only on the main part: "Title: Movie 2" is a one-shot
    trailing = TRAILING_NUMBER_PATTERN.match(main)
    if trailing:
        number = int(trailing.group("num"))
        name = _strip_dangling(trailing.group("name"))
        if 1 <= number <= MAX_TRAILING_SEASON_NUMERAL and name and not NUMBER_LABEL_PATTERN.search(name):
            return _descriptor(name, number, f"Season {number}", "trailing_number_pattern")

    return _descriptor(cleaned, None, None, None)


def parse_record(record: AnimeRecord) -> SeasonDescriptor:
    return parse_title(record.title, record.title_english)


def series_keys(record: AnimeRecord) -> List[str]:
    """
    Comparison keys for a record: one from the preferred (English) title and,
    when it differs, one from the native title.
    """
    keys = [parse_record(record).series_key]
    if record.title_english and record.title:
        native = parse_title(record.title).series_key
        if native not in keys:
            keys.append(native)
    return keys


def group_by_series_name(records: Iterable[AnimeRecord]) -> Dict[str, List[AnimeRecord]]:
    """
    Groups records by normalized series name.
    Keys are series keys; insertion order follows the input order.
    """
    groups: Dict[str, List[AnimeRecord]] = defaultdict(list)
    for record in records:
        try:
            key = parse_record(record).series_key
        except ValidationError:
            logger.debug(f"Skipping record {record.id} with empty title")
            continue
        groups[key].append(record)
    return dict(groups)
