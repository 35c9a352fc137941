"""Tests for route matching signals."""

import pytest

from cragsync.models.route_match import MatchType
from cragsync.pipeline.matching import (
    determine_match_type,
    haversine_km,
    levenshtein_distance,
    location_names_match,
    match_confidence,
    name_similarity,
    normalize_route_name,
    score_pair,
)


class TestNormalizeRouteName:
    """Tests for normalize_route_name."""

    def test_strips_leading_article_and_punctuation(self):
        assert normalize_route_name("The Nose!") == "nose"
        assert normalize_route_name("A Dream of Wild Turkeys") == "dream of wild turkeys"
        assert normalize_route_name("An Ode") == "ode"

    def test_only_one_leading_article_is_removed(self):
        assert normalize_route_name("The The") == "the"

    def test_article_inside_name_is_kept(self):
        assert normalize_route_name("Over The Top") == "over the top"

    def test_collapses_whitespace(self):
        assert normalize_route_name("  Hidden    Arch  ") == "hidden arch"

    def test_drops_grade_punctuation(self):
        assert normalize_route_name("Crack (5.10a)") == "crack 510a"


class TestNameSimilarity:
    """Tests for levenshtein-based similarity."""

    def test_levenshtein_basics(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_identical_after_normalization_is_exact(self):
        assert name_similarity("The Nose", "nose") == 1.0

    def test_one_edit(self):
        # "mandala" vs "mandela": 1 substitution over 7 chars
        assert name_similarity("Mandala", "Mandela") == pytest.approx(1 - 1 / 7)

    def test_empty_names_score_zero(self):
        assert name_similarity("", "") == 0.0

    def test_names_that_normalize_to_nothing_score_zero(self):
        """Should not treat two unreadable names as an exact match."""
        assert name_similarity("!!!", "???") == 0.0
        assert name_similarity("Бастион", "Крепость") == 0.0
        assert determine_match_type(0.0, True, None) != MatchType.EXACT_NAME
        assert name_similarity("!!!", "the ") == 0.0

    def test_similarity_is_bounded(self):
        for a, b in [("a", "zzzzzz"), ("Midnight Lightning", "Thriller"), ("x", "")]:
            assert 0.0 <= name_similarity(a, b) <= 1.0


class TestLocationNamesMatch:
    def test_substring_either_way(self):
        assert location_names_match("Leavenworth", "Leavenworth, WA")
        assert location_names_match("Icicle Creek Canyon, Leavenworth", "leavenworth")

    def test_blank_never_matches(self):
        assert not location_names_match("", "Leavenworth")
        assert not location_names_match("Leavenworth", None)
        assert not location_names_match("   ", "Leavenworth")

    def test_unrelated(self):
        assert not location_names_match("Squamish", "Leavenworth")


class TestConfidence:
    """Tests for the weighted score and its bounds."""

    def test_haversine_known_distance(self):
        # Leavenworth to Index, WA is roughly 70 km
        assert haversine_km(47.5962, -120.6615, 47.8207, -121.5551) == pytest.approx(71.0, abs=5)
        assert haversine_km(47.0, -120.0, 47.0, -120.0) == 0.0

    def test_perfect_signals_cap_at_one(self):
        assert match_confidence(1.0, True, 0.0) == 1.0

    def test_name_only(self):
        assert match_confidence(0.8, False, None) == pytest.approx(0.56)

    def test_proximity_bonus_scales_with_distance(self):
        assert match_confidence(0.0, False, 2.5) == pytest.approx(0.05)
        assert match_confidence(0.0, False, 5.0) == 0.0
        assert match_confidence(0.0, False, 12.0) == 0.0

    def test_identical_names_same_place_scores_high(self):
        signals = score_pair(
            "The Nose",
            "Nose",
            kaya_location_name="Leavenworth",
            mp_area_name="Leavenworth",
            kaya_coords=(47.5962, -120.6615),
            mp_coords=(47.5962, -120.6615),
        )
        assert signals.confidence >= 0.95
        assert signals.match_type == MatchType.EXACT_NAME

    def test_nothing_in_common_scores_name_share_only(self):
        signals = score_pair(
            "Midnight Lightning",
            "Thriller",
            kaya_location_name="Yosemite",
            mp_area_name="Squamish",
            kaya_coords=(37.74, -119.60),
            mp_coords=(49.70, -123.15),
        )
        assert signals.confidence <= 0.7 * signals.name_similarity + 1e-9
        assert signals.match_type == MatchType.LOW_CONFIDENCE

    def test_missing_coordinates_give_no_distance(self):
        signals = score_pair("Nose", "Nose", kaya_coords=None, mp_coords=(47.0, -120.0))
        assert signals.location_distance_km is None


class TestDetermineMatchType:
    """Tests for the match type cascade."""

    @pytest.mark.parametrize(
        ("similarity", "location_match", "distance", "expected"),
        [
            (1.0, False, None, MatchType.EXACT_NAME),
            (0.92, True, None, MatchType.FUZZY_NAME_LOCATION),
            (0.92, False, None, MatchType.FUZZY_NAME),
            (0.86, True, 0.2, MatchType.FUZZY_NAME),
            (0.5, True, 0.5, MatchType.LOCATION_GPS_PROXIMITY),
            (0.5, False, 0.5, MatchType.LOW_CONFIDENCE),
            (0.5, True, 3.0, MatchType.LOCATION_NAME),
            (0.5, True, None, MatchType.LOCATION_NAME),
            (0.3, False, None, MatchType.LOW_CONFIDENCE),
        ],
    )
    def test_cascade(self, similarity, location_match, distance, expected):
        assert determine_match_type(similarity, location_match, distance) == expected
