from typing import Iterable, List, Optional, Set, Tuple

from school_finder.records import SchoolRecord


FallbackKey = Tuple[Optional[str], Optional[str], Optional[str]]


def fallback_key(school: SchoolRecord) -> FallbackKey:
    return (school.name, school.city, school.state)


def dedupe_schools(schools: Iterable[SchoolRecord]) -> List[SchoolRecord]:
    """Drop repeated schools, keeping the first one seen.

    Two schools are the same when they share an NCES id. When either one has
    no id, they are the same when name, city and state all match exactly.
    """
    kept: List[SchoolRecord] = []
    kept_ids: Set[str] = set()
    kept_keys: Set[FallbackKey] = set()
    kept_keys_without_id: Set[FallbackKey] = set()
    for school in schools:
        key = fallback_key(school)
        if school.nces_id:
            if school.nces_id in kept_ids or key in kept_keys_without_id:
                continue
            kept_ids.add(school.nces_id)
        else:
            if key in kept_keys:
                continue
            kept_keys_without_id.add(key)
        kept_keys.add(key)
        kept.append(school)
    return kept
