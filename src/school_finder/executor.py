from __future__ import annotations

import asyncio
import logging
import unicodedata
from typing import Any, Dict, List, Optional, Tuple

from school_finder.arcgis import build_name_filter, build_school_where
from school_finder.identity import dedupe_schools
from school_finder.normalize import (
    DISTRICT_FIELDS,
    first_present,
    normalize_district_feature,
    normalize_school_feature,
    split_feature,
)
from school_finder.records import DistrictRecord, SchoolRecord
from school_finder.settings import Settings
from school_finder.sources import ArcGISFeatureSource, FeatureSource, RetryConfig


logger = logging.getLogger(__name__)

DISTRICT_RECORD_CAP = 500
SCHOOL_RECORD_CAP = 100

SourceLog = List[Dict[str, Any]]


def has_failures(source_log: SourceLog) -> bool:
    return any(entry.get("status") == "failed" for entry in source_log)


def district_sort_key(district: DistrictRecord) -> Tuple[str, str, str]:
    """Accent- and case-insensitive name order, exact name as the tiebreak."""
    name = district.name or ""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), name.casefold(), name)


class QueryExecutor:
    """Runs one logical search against the private and public layers.

    Both layers are queried concurrently. A layer that fails contributes no
    features; the search itself never fails. Cancelling the awaiting task
    cancels both requests.
    """

    def __init__(
        self,
        private: FeatureSource,
        public: FeatureSource,
        *,
        district_cap: int = DISTRICT_RECORD_CAP,
        school_cap: int = SCHOOL_RECORD_CAP,
        min_query_length: int = 2,
    ):
        self.private = private
        self.public = public
        self.district_cap = district_cap
        self.school_cap = school_cap
        self.min_query_length = min_query_length
        self.last_source_log: List[Dict[str, Any]] = []

    @classmethod
    def from_settings(cls, settings: Settings, client=None) -> "QueryExecutor":
        retry = RetryConfig(retries=settings.http_retries)

        def _source(name, url):
            return ArcGISFeatureSource(
                name,
                url,
                client=client,
                timeout=settings.http_timeout_s,
                retry_config=retry,
                user_agent=settings.user_agent,
            )

        return cls(
            _source("private", settings.private_layer_url),
            _source("public", settings.public_layer_url),
            district_cap=settings.district_record_cap,
            school_cap=settings.school_record_cap,
            min_query_length=settings.min_query_length,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.private.aclose()
        await self.public.aclose()

    async def _query_source(
        self, source: FeatureSource, where: str, limit: int
    ) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        entry: Dict[str, Any] = {"source": source.name, "limit": limit}
        try:
            features = await source.query(where, limit)
        except asyncio.CancelledError:
            logger.debug("%s query cancelled", source.name)
            raise
        except Exception as exc:
            logger.warning("%s source failed, using no features: %s", source.name, exc)
            entry.update({"status": "failed", "features": 0, "error": str(exc)})
            return [], entry
        entry.update({"status": "success", "features": len(features)})
        return features, entry

    async def _query_both(
        self, where: str, limit: int, source_log: Optional[SourceLog] = None
    ) -> List[Dict[str, Any]]:
        (private_features, private_entry), (public_features, public_entry) = (
            await asyncio.gather(
                self._query_source(self.private, where, limit),
                self._query_source(self.public, where, limit),
            )
        )
        self.last_source_log = [private_entry, public_entry]
        if source_log is not None:
            source_log.extend(self.last_source_log)
        return private_features + public_features

    async def search_districts(
        self, text: str, source_log: Optional[SourceLog] = None
    ) -> List[DistrictRecord]:
        query = (text or "").strip()
        if len(query) < self.min_query_length:
            return []
        features = await self._query_both(
            build_name_filter(query), self.district_cap, source_log
        )

        districts: Dict[str, DistrictRecord] = {}
        lea_keys, lea_coerce = DISTRICT_FIELDS["lea_id"]
        for feature in features:
            attrs, _ = split_feature(feature)
            lea_id = first_present(attrs, lea_keys, lea_coerce)
            if lea_id and lea_id not in districts:
                districts[lea_id] = normalize_district_feature(feature)

        results = sorted(districts.values(), key=district_sort_key)
        if not results:
            logger.info("no districts matched %r", query)
        return results

    async def search_schools(
        self,
        text: str,
        district_id: Optional[str] = None,
        source_log: Optional[SourceLog] = None,
    ) -> List[SchoolRecord]:
        if len((text or "").strip()) < self.min_query_length and not district_id:
            return []
        where = build_school_where(text, district_id, min_length=self.min_query_length)
        features = await self._query_both(where, self.school_cap, source_log)
        schools = dedupe_schools(normalize_school_feature(f) for f in features)
        if not schools:
            logger.info("no schools matched %r (district=%s)", (text or "").strip(), district_id)
        return schools
