from school_finder.mapview import build_map_view
from school_finder.records import DistrictRecord, SchoolRecord


def test_school_address_skips_missing_parts():
    school = SchoolRecord(street="1 Main St", state="UT", zip="84401")
    assert school.address == "1 Main St, UT 84401"
    assert SchoolRecord().address == ""


def test_district_label():
    assert DistrictRecord(name="Ogden", state_code="UT").label == "Ogden (UT)"
    assert DistrictRecord(name="Ogden", state="Utah").label == "Ogden (Utah)"


def test_selection_match_prefers_nces_id():
    a = SchoolRecord(nces_id="5", name="Hope", city="Ogden")
    assert a.matches(SchoolRecord(nces_id="5", name="Hope Academy"))
    assert not a.matches(SchoolRecord(nces_id="6", name="Hope", city="Ogden"))
    assert a.matches(SchoolRecord(name="Hope", city="Ogden"))


def test_marker_id_fallbacks():
    located = dict(latitude=1.0, longitude=2.0)
    assert SchoolRecord(object_id=7, **located).marker().id == "7"
    marker = SchoolRecord(**located).marker()
    assert (marker.id, marker.label) == ("school", "School")
    assert SchoolRecord(nces_id="1", latitude=1.0).marker() is None


def test_map_view_requires_coordinates():
    assert build_map_view(None) is None
    assert build_map_view(SchoolRecord(nces_id="1")) is None
    view = build_map_view(SchoolRecord(nces_id="1", name="A", latitude=1.0, longitude=2.0))
    assert view.to_dict() == {
        "center": {"lat": 1.0, "lng": 2.0},
        "zoom": 14,
        "markers": [{"id": "1", "lat": 1.0, "lng": 2.0, "label": "A"}],
        "api_key_configured": False,
    }
