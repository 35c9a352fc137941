"""Similarity signals for linking Kaya climbs to Mountain Project routes.

The two datasets share no identifiers, so a pairing is scored from three
signals: name similarity (edit distance over normalized names), whether the
location labels overlap, and GPS distance when both sides have coordinates.

    confidence = 0.7 * name_similarity
               + 0.2 * location_name_match
               + 0.1 * (1 - distance_km / 5)   # only within 5 km
"""

import math
import re
from dataclasses import dataclass

from cragsync.models.route_match import MatchType

NAME_WEIGHT = 0.7
LOCATION_NAME_WEIGHT = 0.2
PROXIMITY_WEIGHT = 0.1
PROXIMITY_RADIUS_KM = 5.0
EARTH_RADIUS_KM = 6371.0

_LEADING_ARTICLE = re.compile(r"^(the|a|an)\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9 ]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class MatchSignals:
    """Component signals and the derived score for one pairing."""

    name_similarity: float
    location_name_match: bool
    location_distance_km: float | None
    confidence: float
    match_type: MatchType


def normalize_route_name(name: str) -> str:
    """Lowercase, drop one leading article and punctuation, collapse spaces.

    >>> normalize_route_name("The Nose!")
    'nose'
    """
    normalized = _WHITESPACE.sub(" ", name.lower()).strip()
    normalized = _LEADING_ARTICLE.sub("", normalized)
    normalized = _NON_ALNUM.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def name_similarity(name_a: str, name_b: str) -> float:
    """Similarity in [0, 1].

    Identical normalized names score exactly 1.0, except when normalization
    leaves nothing (all punctuation or non-Latin script): those score 0.0.
    """
    a = normalize_route_name(name_a)
    b = normalize_route_name(name_b)
    if a == b and a:
        return 1.0

    max_len = max(len(a), len(b))
    if max_len == 0:
        return 0.0
    return 1.0 - levenshtein_distance(a, b) / max_len


def location_names_match(kaya_location: str | None, mp_area: str | None) -> bool:
    """Case-insensitive containment either way; blank names never match."""
    if not kaya_location or not mp_area:
        return False
    a = kaya_location.strip().lower()
    b = mp_area.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def match_confidence(
    similarity: float,
    location_match: bool,
    distance_km: float | None,
) -> float:
    """Weighted score, capped at 1.0."""
    score = NAME_WEIGHT * similarity
    if location_match:
        score += LOCATION_NAME_WEIGHT
    if distance_km is not None and distance_km < PROXIMITY_RADIUS_KM:
        score += PROXIMITY_WEIGHT * (1 - distance_km / PROXIMITY_RADIUS_KM)
    return min(score, 1.0)


def determine_match_type(
    similarity: float,
    location_match: bool,
    distance_km: float | None,
) -> MatchType:
    """Label a pairing by its strongest signals."""
    if similarity == 1.0:
        return MatchType.EXACT_NAME
    if similarity >= 0.9 and location_match:
        return MatchType.FUZZY_NAME_LOCATION
    if similarity >= 0.85:
        return MatchType.FUZZY_NAME
    if location_match and distance_km is not None and distance_km < 1.0:
        return MatchType.LOCATION_GPS_PROXIMITY
    if location_match:
        return MatchType.LOCATION_NAME
    return MatchType.LOW_CONFIDENCE


def score_pair(
    kaya_name: str,
    mp_name: str,
    kaya_location_name: str | None = None,
    mp_area_name: str | None = None,
    kaya_coords: tuple[float, float] | None = None,
    mp_coords: tuple[float, float] | None = None,
) -> MatchSignals:
    """Compute every signal for one Kaya climb / MP route pairing."""
    similarity = name_similarity(kaya_name, mp_name)
    location_match = location_names_match(kaya_location_name, mp_area_name)

    distance_km: float | None = None
    if kaya_coords is not None and mp_coords is not None:
        distance_km = haversine_km(*kaya_coords, *mp_coords)

    return MatchSignals(
        name_similarity=similarity,
        location_name_match=location_match,
        location_distance_km=distance_km,
        confidence=match_confidence(similarity, location_match, distance_km),
        match_type=determine_match_type(similarity, location_match, distance_km),
    )
