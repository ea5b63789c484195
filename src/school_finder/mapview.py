from typing import Optional

from school_finder.records import MapView, SchoolRecord


DEFAULT_ZOOM = 14


def build_map_view(
    school: Optional[SchoolRecord],
    *,
    api_key: Optional[str] = None,
    zoom: int = DEFAULT_ZOOM,
) -> Optional[MapView]:
    """Center point and marker for the map widget, or None without coordinates.

    A missing API key only marks the view as not renderable by the widget.
    """
    if school is None:
        return None
    marker = school.marker()
    if marker is None:
        return None
    return MapView(
        center_lat=marker.lat,
        center_lng=marker.lng,
        zoom=zoom,
        markers=[marker],
        api_key_configured=bool(api_key),
    )
