from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from school_finder.records import DistrictRecord, MapView, SchoolRecord


class DistrictOut(BaseModel):
    lea_id: Optional[str] = None
    name: Optional[str] = None
    label: str = ""
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

    @classmethod
    def from_record(cls, record: DistrictRecord) -> "DistrictOut":
        return cls(label=record.label, **record.to_dict())


class SchoolOut(BaseModel):
    """Canonical school shape.

    All fields are nullable; an absent upstream value is represented as null.
    """

    nces_id: Optional[str] = None
    lea_id: Optional[str] = None
    name: Optional[str] = None
    address: str = ""
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

    @classmethod
    def from_record(cls, record: SchoolRecord) -> "SchoolOut":
        return cls(address=record.address, **record.to_dict())


class PointOut(BaseModel):
    lat: float
    lng: float


class MarkerOut(BaseModel):
    id: str
    lat: float
    lng: float
    label: str = ""


class MapViewOut(BaseModel):
    center: PointOut
    zoom: int = 14
    markers: List[MarkerOut] = Field(default_factory=list)
    api_key_configured: bool = False

    @classmethod
    def from_view(cls, view: MapView) -> "MapViewOut":
        return cls(
            center=PointOut(lat=view.center_lat, lng=view.center_lng),
            zoom=view.zoom,
            markers=[MarkerOut(**m.to_dict()) for m in view.markers],
            api_key_configured=view.api_key_configured,
        )


class DistrictSearchResponse(BaseModel):
    query: str
    count: int
    results: List[DistrictOut] = Field(default_factory=list)


class SchoolSearchResponse(BaseModel):
    query: str
    district_id: Optional[str] = None
    count: int
    results: List[SchoolOut] = Field(default_factory=list)
