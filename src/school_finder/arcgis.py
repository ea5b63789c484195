from typing import Any, Dict, List, Optional
from urllib.parse import urlencode


MATCH_ALL = "1=1"


def escape_sql_string(value: str) -> str:
    return (value or "").replace("'", "''")


def build_name_filter(text: str, name_field: str = "NAME") -> str:
    escaped = escape_sql_string(text.strip())
    return f"UPPER({name_field}) LIKE UPPER('%{escaped}%')"


def build_school_where(
    text: str,
    district_id: Optional[str] = None,
    min_length: int = 2,
    district_field: str = "LEAID",
) -> str:
    cleaned = (text or "").strip()
    if len(cleaned) >= min_length:
        where = build_name_filter(cleaned)
    else:
        where = MATCH_ALL
    if district_id:
        where += f" AND {district_field} = '{escape_sql_string(district_id)}'"
    return where


def build_query_params(
    where: str,
    limit: int,
    out_fields: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "where": where,
        "outFields": ",".join(out_fields or ["*"]),
        "outSR": "4326",
        "f": "json",
        "resultRecordCount": limit,
    }


def build_query_url(
    layer_url: str,
    where: str,
    limit: int,
    out_fields: Optional[List[str]] = None,
) -> str:
    params = build_query_params(where, limit, out_fields)
    return f"{layer_url.rstrip('/')}/query?{urlencode(params)}"


def extract_features(payload: Any) -> List[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    features = payload.get("features")
    if not isinstance(features, list):
        return []
    return [f for f in features if isinstance(f, dict)]
