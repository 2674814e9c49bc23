"""
Constants used throughout the anime grouping engine.
"""

# Confidence bounds
CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 0.95
DEFAULT_CONFIDENCE = 0.5  # Unknown pattern types
HIGH_CONFIDENCE_THRESHOLD = 0.7

# Update rule: lifetime performance vs. prior confidence
PERFORMANCE_WEIGHT = 0.9
INERTIA_WEIGHT = 0.1

# Prior belief per signal type (no data yet)
INITIAL_CONFIDENCE = {
    "relationship_type": 0.9,
    "title_pattern": 0.7,
    "studio_match": 0.6,
    "year_proximity": 0.5,
    "fuzzy_match": 0.5,
}

# Pattern key prefix used by the fallback matcher
TITLE_PATTERN_PREFIX = "series_name_match"

# Graph traversal
DEFAULT_MAX_DEPTH = 3
DEFAULT_FRANCHISE_MAX_DEPTH = 5

# Fallback matcher
DEFAULT_CANDIDATE_LIMIT = 50

# Merger
MIN_TITLE_CONFIDENCE = 0.5
DEFAULT_TIE_BREAK_ORDER = ["source", "confidence", "start_date"]

# Decay
DEFAULT_DECAY_THRESHOLD_DAYS = 90
DECAY_HORIZON_DAYS = 300
DECAY_MIN_FACTOR = 0.5
DECAY_ELIGIBLE_ABOVE = 0.2
MIN_REDECAY_HOURS = 20
DECAY_INTERVAL_SECONDS = 24 * 60 * 60

# Statistics
RECENT_FEEDBACK_DAYS = 7
DEFAULT_TOP_PATTERNS = 20

# Batch grouping adjustments
YEAR_PROXIMITY_CLOSE = 3      # Seasons usually air within a few years
YEAR_PROXIMITY_FAR = 10
YEAR_PROXIMITY_BONUS = 0.1
YEAR_PROXIMITY_PENALTY = 0.2
STUDIO_MATCH_BONUS = 0.1
DATABASE_SERIES_CONFIDENCE = 0.9
DATABASE_FRANCHISE_CONFIDENCE = 0.85

# Title parsing
MAX_TRAILING_SEASON_NUMERAL = 20
YEAR_RANGE_MIN = 1900
YEAR_RANGE_MAX = 2150
ARTICLES = ("The", "A", "An")
MOVIE_TYPES = {"movie", "film"}

ORDINAL_WORDS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
}

ROMAN_NUMERALS = {
    "I": 1, "II": 2, "III": 3, "IV": 4, "V": 5,
    "VI": 6, "VII": 7, "VIII": 8, "IX": 9, "X": 10,
    "XI": 11, "XII": 12, "XIII": 13, "XIV": 14, "XV": 15,
    "XVI": 16, "XVII": 17, "XVIII": 18, "XIX": 19, "XX": 20,
}

# Feedback
VALID_GROUP_TYPES = {"series", "franchise", "ungrouped"}
VALID_FEEDBACK_CONFIDENCE = {"low", "medium", "high"}
DEFAULT_FEEDBACK_CONFIDENCE = "medium"  # User corrections

# Storage defaults
CATALOG_FILENAME = "anime_catalog.json"
PATTERNS_FILENAME = "grouping_patterns.json"
FEEDBACK_FILENAME = "grouping_feedback.jsonl"
SCHEDULER_LOCK_FILENAME = ".decay_scheduler.lock"
LOG_FILENAME = "anime_grouping.log"

# Initial patterns loaded by the `seed` command
SEED_PATTERNS = [
    # Database relationships (highest confidence)
    {"pattern_type": "relationship_type", "pattern": "Sequel", "confidence": 0.9,
     "description": "Direct sequel relationship from the catalog"},
    {"pattern_type": "relationship_type", "pattern": "Prequel", "confidence": 0.9,
     "description": "Direct prequel relationship from the catalog"},
    {"pattern_type": "relationship_type", "pattern": "franchise", "confidence": 0.85,
     "description": "Franchise grouping using all relationship types"},
    # Title patterns
    {"pattern_type": "title_pattern", "pattern": "season_pattern", "confidence": 0.8,
     "description": "Season N, Part N, Cour N patterns"},
    {"pattern_type": "title_pattern", "pattern": "final_season_pattern", "confidence": 0.85,
     "description": "Final Season patterns"},
    {"pattern_type": "title_pattern", "pattern": "roman_numeral_pattern", "confidence": 0.75,
     "description": "II, III, IV, V roman numeral patterns"},
    {"pattern_type": "title_pattern", "pattern": "part_pattern", "confidence": 0.8,
     "description": "Part N patterns"},
    {"pattern_type": "title_pattern", "pattern": "cour_pattern", "confidence": 0.75,
     "description": "Cour N patterns"},
    # Studio / year / fuzzy
    {"pattern_type": "studio_match", "pattern": "same_studio", "confidence": 0.6,
     "description": "Anime from the same studio with similar titles"},
    {"pattern_type": "year_proximity", "pattern": "within_3_years", "confidence": 0.6,
     "description": "Anime released within 3 years of each other"},
    {"pattern_type": "fuzzy_match", "pattern": "word_overlap_high", "confidence": 0.65,
     "description": "High word overlap between titles"},
]
