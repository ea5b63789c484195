from urllib.parse import parse_qs, urlparse

from school_finder.arcgis import (
    build_name_filter,
    build_query_params,
    build_query_url,
    build_school_where,
    extract_features,
)


def test_name_filter_is_case_insensitive_substring():
    assert build_name_filter("  Lincoln ") == "UPPER(NAME) LIKE UPPER('%Lincoln%')"


def test_quotes_are_escaped():
    assert build_name_filter("O'Brien") == "UPPER(NAME) LIKE UPPER('%O''Brien%')"
    where = build_school_where("", "49' OR '1'='1")
    assert where == "1=1 AND LEAID = '49'' OR ''1''=''1'"


def test_school_where_combines_text_and_district():
    assert build_school_where("Li", "4900420") == (
        "UPPER(NAME) LIKE UPPER('%Li%') AND LEAID = '4900420'"
    )
    assert build_school_where("L", "4900420") == "1=1 AND LEAID = '4900420'"
    assert build_school_where("", None) == "1=1"


def test_query_params_and_url():
    params = build_query_params("1=1", 100)
    assert params == {
        "where": "1=1",
        "outFields": "*",
        "outSR": "4326",
        "f": "json",
        "resultRecordCount": 100,
    }
    url = build_query_url("https://example.test/FeatureServer/0/", "NAME = 'a b'", 500)
    parsed = urlparse(url)
    assert parsed.path == "/FeatureServer/0/query"
    assert " " not in url
    assert parse_qs(parsed.query)["where"] == ["NAME = 'a b'"]
    assert parse_qs(parsed.query)["resultRecordCount"] == ["500"]


def test_extract_features_tolerates_bad_envelopes():
    assert extract_features(None) == []
    assert extract_features({"features": "nope"}) == []
    assert extract_features({"features": [{"attributes": {}}, 3]}) == [{"attributes": {}}]
