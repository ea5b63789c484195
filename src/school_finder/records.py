from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class MapMarker:
    id: str
    lat: float
    lng: float
    label: str = ""

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class SchoolRecord:
    """One school, merged from either upstream layer.

    Every field is best-effort; ``nces_id`` is the preferred identity and
    ``object_id`` is only meaningful within the layer that assigned it.
    """

    nces_id: Optional[str] = None
    lea_id: Optional[str] = None
    name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    state_fips: Optional[str] = None
    county_code: Optional[str] = None
    county_name: Optional[str] = None
    locale: Optional[str] = None
    object_id: Optional[int] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def address(self) -> str:
        state_zip = f"{self.state or ''} {self.zip or ''}".strip()
        parts = [self.street, self.city, state_zip]
        return ", ".join(p for p in parts if p)

    def matches(self, other: "SchoolRecord") -> bool:
        """True when ``other`` refers to the same school for selection purposes."""
        if self.nces_id and other.nces_id:
            return self.nces_id == other.nces_id
        return self.name == other.name and self.city == other.city

    def marker(self) -> Optional[MapMarker]:
        if not self.has_location:
            return None
        if self.nces_id:
            marker_id = self.nces_id
        elif self.object_id is not None:
            marker_id = str(self.object_id)
        else:
            marker_id = "school"
        return MapMarker(
            id=marker_id,
            lat=float(self.latitude),
            lng=float(self.longitude),
            label=self.name or "School",
        )

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class DistrictRecord:
    lea_id: Optional[str] = None
    name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    zip4: Optional[str] = None
    state_code: Optional[str] = None
    state_fips: Optional[str] = None
    county_code: Optional[str] = None
    county_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    object_id: Optional[int] = None

    @property
    def label(self) -> str:
        return f"{self.name or ''} ({self.state_code or self.state or ''})"

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class MapView:
    center_lat: float
    center_lng: float
    zoom: int = 14
    markers: List[MapMarker] = field(default_factory=list)
    api_key_configured: bool = False

    def to_dict(self):
        return {
            "center": {"lat": self.center_lat, "lng": self.center_lng},
            "zoom": self.zoom,
            "markers": [m.to_dict() for m in self.markers],
            "api_key_configured": self.api_key_configured,
        }
