from cragsync.pipeline.matcher import MatchNotFoundError, MatchRunResult, ProposedMatch, RouteMatcher
from cragsync.pipeline.matching import (
    MatchSignals,
    determine_match_type,
    haversine_km,
    location_names_match,
    match_confidence,
    name_similarity,
    normalize_route_name,
    score_pair,
)
from cragsync.pipeline.priority import (
    PriorityRecomputeResult,
    RouteMetrics,
    assign_priority,
    get_location_routes_due,
    get_priority_distribution,
    get_routes_due,
    mark_routes_synced,
    recompute_priorities,
)

__all__ = [
    "RouteMatcher",
    "MatchRunResult",
    "ProposedMatch",
    "MatchNotFoundError",
    "MatchSignals",
    "normalize_route_name",
    "name_similarity",
    "location_names_match",
    "haversine_km",
    "match_confidence",
    "determine_match_type",
    "score_pair",
    "RouteMetrics",
    "PriorityRecomputeResult",
    "assign_priority",
    "recompute_priorities",
    "get_routes_due",
    "get_location_routes_due",
    "mark_routes_synced",
    "get_priority_distribution",
]
