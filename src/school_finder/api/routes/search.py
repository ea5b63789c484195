from typing import Awaitable, Callable, Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query

from school_finder.api.schemas import (
    DistrictOut,
    DistrictSearchResponse,
    MapViewOut,
    SchoolOut,
    SchoolSearchResponse,
)
from school_finder.cache import ResultCache
from school_finder.controller import QueryKey, SearchField
from school_finder.executor import QueryExecutor, has_failures
from school_finder.mapview import build_map_view
from school_finder.settings import get_settings


router = APIRouter(tags=["search"])

_RESULT_CACHE: Optional[ResultCache] = None


def get_result_cache() -> ResultCache:
    global _RESULT_CACHE
    if _RESULT_CACHE is None:
        settings = get_settings()
        _RESULT_CACHE = ResultCache(
            max_entries=settings.cache_max_entries, enabled=settings.cache_enabled
        )
    return _RESULT_CACHE


def reset_result_cache() -> None:
    """Test helper to drop the process-wide cache."""

    global _RESULT_CACHE
    _RESULT_CACHE = None


async def get_executor():
    executor = QueryExecutor.from_settings(get_settings())
    try:
        yield executor
    finally:
        await executor.aclose()


async def _cached(
    cache: ResultCache, key: QueryKey, run: Callable[[list], Awaitable[Sequence]]
) -> Sequence:
    cached = cache.get(key)
    if cached is not None:
        return cached
    source_log: list = []
    records = tuple(await run(source_log))
    if not has_failures(source_log):
        cache.put(key, records)
    return records


async def _school_results(executor, cache, q, district_id):
    key = QueryKey.build(SearchField.SCHOOL, q, district_id)
    return key, await _cached(
        cache,
        key,
        lambda log: executor.search_schools(key.text, key.district_id, log),
    )


@router.get("/districts", response_model=DistrictSearchResponse)
async def search_districts(
    q: str = Query("", max_length=200),
    executor: QueryExecutor = Depends(get_executor),
    cache: ResultCache = Depends(get_result_cache),
):
    key = QueryKey.build(SearchField.DISTRICT, q)
    records = await _cached(
        cache, key, lambda log: executor.search_districts(key.text, log)
    )
    return DistrictSearchResponse(
        query=key.text,
        count=len(records),
        results=[DistrictOut.from_record(r) for r in records],
    )


@router.get("/schools", response_model=SchoolSearchResponse)
async def search_schools(
    q: str = Query("", max_length=200),
    district_id: Optional[str] = Query(None, max_length=32),
    executor: QueryExecutor = Depends(get_executor),
    cache: ResultCache = Depends(get_result_cache),
):
    key, records = await _school_results(executor, cache, q, district_id)
    return SchoolSearchResponse(
        query=key.text,
        district_id=key.district_id,
        count=len(records),
        results=[SchoolOut.from_record(r) for r in records],
    )


@router.get("/map", response_model=MapViewOut)
async def school_map(
    nces_id: str = Query(..., min_length=1, max_length=32),
    q: str = Query("", max_length=200),
    district_id: Optional[str] = Query(None, max_length=32),
    executor: QueryExecutor = Depends(get_executor),
    cache: ResultCache = Depends(get_result_cache),
):
    _, records = await _school_results(executor, cache, q, district_id)
    school = next((s for s in records if s.nces_id == nces_id), None)
    if school is None:
        raise HTTPException(status_code=404, detail="school not found")
    view = build_map_view(school, api_key=get_settings().maps_api_key)
    if view is None:
        raise HTTPException(status_code=404, detail="school has no coordinates")
    return MapViewOut.from_view(view)
