"""Map raw feature-service attributes onto the canonical school/district shapes.

Each canonical field has an ordered list of source keys; the first present,
non-empty value wins. Adding support for a new upstream schema means adding
keys to these tables, not code.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from school_finder.records import DistrictRecord, SchoolRecord


_WHITESPACE_RE = re.compile(r"\s+")

Coercer = Callable[[Any], Any]


def clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    cleaned = _WHITESPACE_RE.sub(" ", str(value)).strip()
    return cleaned or None


def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            s = str(value).strip()
            if not s:
                return None
            number = float(s)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def as_int(value: Any) -> Optional[int]:
    number = as_float(value)
    if number is None:
        return None
    return int(number)


SCHOOL_FIELDS: Dict[str, Tuple[Sequence[str], Coercer]] = {
    "name": (("NAME", "SCH_NAME", "SCHOOL_NAME", "SchoolName", "NAME_"), clean_text),
    "street": (("STREET", "MAIL_STREET", "LSTREET1", "ADDRESS", "LSTREET"), clean_text),
    "city": (("CITY", "MAIL_CITY", "LCITY", "TOWN"), clean_text),
    "state": (("STATE", "ST", "MAIL_STATE", "LSTATE"), clean_text),
    "zip": (("ZIP", "MAIL_ZIP", "LZIP", "POSTAL", "ZIP_CODE"), clean_text),
    "nces_id": (("NCESSCH", "SCHID", "NCES_ID", "NCES"), clean_text),
    "lea_id": (("LEAID", "LEA_ID", "LEA"), clean_text),
    "object_id": (("OBJECTID", "OBJECT_ID"), as_int),
    "latitude": (("LAT", "Y", "lat", "latitude"), as_float),
    "longitude": (("LON", "X", "lon", "longitude"), as_float),
    "state_fips": (("OPSTFIPS", "STFIP"), clean_text),
    "county_code": (("CNTY", "COUNTY"), clean_text),
    "county_name": (("NMCNTY", "COUNTYNAME"), clean_text),
    "locale": (("LOCALE",), clean_text),
}

DISTRICT_FIELDS: Dict[str, Tuple[Sequence[str], Coercer]] = {
    "object_id": (("OBJECTID", "OBJECT_ID"), as_int),
    "lea_id": (("LEAID", "LEA_ID", "LEA"), clean_text),
    "name": (("DISTRICT", "LEA_NAME", "LEANM"), clean_text),
    "street": (("LSTREE", "LSTREET", "STREET"), clean_text),
    "city": (("LCITY", "CITY"), clean_text),
    "state": (("LSTATE", "STATE", "ST"), clean_text),
    "zip": (("LZIP", "ZIP"), clean_text),
    "zip4": (("LZIP4",), clean_text),
    "state_code": (("LSTATE", "ST", "STATE", "STATE_CODE"), clean_text),
    "latitude": (("LAT1516", "LAT", "latitude"), as_float),
    "longitude": (("LON1516", "LON", "longitude"), as_float),
    "state_fips": (("STFIP15", "STFIP"), clean_text),
    "county_code": (("CNTY15", "CNTY"), clean_text),
    "county_name": (("NMCNTY15", "NMCNTY"), clean_text),
}


def first_present(attrs: Mapping[str, Any], keys: Sequence[str], coerce: Coercer = clean_text):
    for key in keys:
        value = coerce(attrs.get(key))
        if value is not None:
            return value
    return None


def _resolve(attrs: Any, table: Dict[str, Tuple[Sequence[str], Coercer]]) -> Dict[str, Any]:
    if not isinstance(attrs, Mapping):
        attrs = {}
    return {name: first_present(attrs, keys, coerce) for name, (keys, coerce) in table.items()}


def _geometry_point(geometry: Any) -> Tuple[Optional[float], Optional[float]]:
    if not isinstance(geometry, Mapping):
        return None, None
    return as_float(geometry.get("y")), as_float(geometry.get("x"))


def split_feature(feature: Any) -> Tuple[Mapping[str, Any], Any]:
    """Return (attributes, geometry) for a wrapped feature or a bare attribute map."""
    if not isinstance(feature, Mapping):
        return {}, None
    attrs = feature.get("attributes")
    if isinstance(attrs, Mapping):
        return attrs, feature.get("geometry")
    return feature, feature.get("geometry")


def normalize_school(raw: Any, geometry: Any = None) -> SchoolRecord:
    values = _resolve(raw, SCHOOL_FIELDS)
    if values["latitude"] is None or values["longitude"] is None:
        geo_lat, geo_lng = _geometry_point(geometry)
        if geo_lat is not None:
            values["latitude"] = geo_lat
        if geo_lng is not None:
            values["longitude"] = geo_lng
    return SchoolRecord(**values)


def normalize_district(raw: Any) -> DistrictRecord:
    values = _resolve(raw, DISTRICT_FIELDS)
    if values["name"] is None:
        values["name"] = f"District {values['lea_id'] or 'Unknown'}"
    return DistrictRecord(**values)


def normalize_school_feature(feature: Any) -> SchoolRecord:
    attrs, geometry = split_feature(feature)
    return normalize_school(attrs, geometry)


def normalize_district_feature(feature: Any) -> DistrictRecord:
    attrs, _ = split_feature(feature)
    return normalize_district(attrs)
