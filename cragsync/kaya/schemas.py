"""Kaya GraphQL payloads, limited to the fields the sync consumes."""

from pydantic import BaseModel, ConfigDict


class KayaModel(BaseModel):
    """Base for Kaya payloads; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


class Named(KayaModel):
    """Nested {name} object (climb type, destination, area, gym, ...)."""

    name: str


class LocationType(KayaModel):
    id: str
    name: str


class ParentLocation(KayaModel):
    id: str
    slug: str
    name: str
    latitude: str | None = None
    longitude: str | None = None
    description: str | None = None
    location_type: LocationType | None = None


class WebLocation(KayaModel):
    """Destination or area. Coordinates arrive as strings."""

    id: str
    slug: str
    name: str
    latitude: str | None = None
    longitude: str | None = None
    photo_url: str | None = None
    description: str | None = None
    location_type: LocationType | None = None
    parent_location: ParentLocation | None = None
    is_gb_moderated_bouldering: bool = False
    is_gb_moderated_routes: bool = False
    has_maps_disabled: bool = False
    description_bouldering: str | None = None
    description_routes: str | None = None
    access_description_bouldering: str | None = None
    access_description_routes: str | None = None
    climb_count: int = 0
    boulder_count: int = 0
    route_count: int = 0
    ascent_count: int = 0
    is_access_sensitive: bool = False
    is_closed: bool = False
    closed_date: str | None = None
    climb_type_id: str | None = None


class Grade(KayaModel):
    id: str
    name: str
    climb_type_id: str | None = None
    ordering: int | None = None


class WebClimb(KayaModel):
    slug: str
    name: str
    rating: float | None = None
    ascent_count: int = 0
    grade: Grade | None = None
    climb_type: Named | None = None
    color: Named | None = None
    gym: Named | None = None
    board: Named | None = None
    destination: Named | None = None
    area: Named | None = None
    is_gb_moderated: bool = False
    is_access_sensitive: bool = False
    is_closed: bool = False
    is_offensive: bool = False


class WebUser(KayaModel):
    id: str
    username: str
    fname: str | None = None
    lname: str | None = None
    photo_url: str | None = None
    is_private: bool = False
    bio: str | None = None
    height: float | None = None
    ape_index: float | None = None
    limit_grade_bouldering: Grade | None = None
    limit_grade_routes: Grade | None = None
    is_premium: bool = False


class Media(KayaModel):
    photo_url: str | None = None
    thumb_url: str | None = None
    video_url: str | None = None


class WebAscent(KayaModel):
    """A tick, with the user and climb embedded."""

    id: str
    user: WebUser | None = None
    climb: WebClimb | None = None
    date: str
    comment: str | None = None
    rating: int | None = None
    stiffness: int | None = None
    grade: Grade | None = None
    photo: Media | None = None
    video: Media | None = None
