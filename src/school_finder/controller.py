"""Debounced district -> school search session.

All state lives on one event loop. Each field (district, school) has its own
debounce timer, its own in-flight query task and its own generation counter;
a query result is applied only while its generation is still current, so a
superseded response never reaches visible state even if it arrives.

The input and selection methods are synchronous but must be called from a
running event loop, since they schedule timers and query tasks on it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence, Tuple

from school_finder.cache import ResultCache
from school_finder.executor import QueryExecutor, has_failures
from school_finder.mapview import build_map_view
from school_finder.records import DistrictRecord, MapView, SchoolRecord
from school_finder.settings import Settings


logger = logging.getLogger(__name__)


class SearchField(str, Enum):
    DISTRICT = "district"
    SCHOOL = "school"


class FieldStatus(str, Enum):
    IDLE = "idle"
    TYPING = "typing"
    QUERYING = "querying"


class ResultsState(str, Enum):
    NOT_SEARCHED = "not_searched"
    LOADING = "loading"
    EMPTY = "empty"
    HAS_RESULTS = "has_results"


@dataclass(frozen=True)
class QueryKey:
    field: SearchField
    text: str
    district_id: Optional[str] = None

    @classmethod
    def build(
        cls, field: SearchField, text: str, district_id: Optional[str] = None
    ) -> "QueryKey":
        return cls(field, (text or "").strip(), district_id or None)


@dataclass
class FieldState:
    raw_text: str = ""
    debounced_text: str = ""
    results: Tuple = ()
    searched: bool = False
    degraded: bool = False
    generation: int = 0
    active_key: Optional[QueryKey] = None
    timer: Optional[asyncio.Task] = None
    task: Optional[asyncio.Task] = None

    @property
    def typing(self) -> bool:
        return self.timer is not None and not self.timer.done()

    @property
    def querying(self) -> bool:
        return self.task is not None and not self.task.done()


@dataclass
class SearchSession:
    cache: ResultCache
    district: FieldState = field(default_factory=FieldState)
    school: FieldState = field(default_factory=FieldState)
    selected_district: Optional[DistrictRecord] = None
    selected_school: Optional[SchoolRecord] = None

    def field_state(self, which: SearchField) -> FieldState:
        if which is SearchField.DISTRICT:
            return self.district
        return self.school


class SearchController:
    def __init__(
        self,
        executor: QueryExecutor,
        *,
        debounce_s: float = 0.7,
        min_query_length: int = 2,
        cache: Optional[ResultCache] = None,
        maps_api_key: Optional[str] = None,
        on_change: Optional[Callable[[SearchField], None]] = None,
        owns_executor: bool = False,
    ):
        self.executor = executor
        self.debounce_s = debounce_s
        self.min_query_length = min_query_length
        self.maps_api_key = maps_api_key
        self.on_change = on_change
        self._owns_executor = owns_executor
        self.session = SearchSession(cache=cache if cache is not None else ResultCache())

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "SearchController":
        executor = QueryExecutor.from_settings(settings)
        cache = ResultCache(
            max_entries=settings.cache_max_entries, enabled=settings.cache_enabled
        )
        return cls(
            executor,
            debounce_s=settings.debounce_s,
            min_query_length=settings.min_query_length,
            cache=cache,
            maps_api_key=settings.maps_api_key,
            owns_executor=True,
            **kwargs,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    # -- read-only views -------------------------------------------------

    @property
    def cache(self) -> ResultCache:
        return self.session.cache

    @property
    def districts(self) -> Tuple[DistrictRecord, ...]:
        return self.session.district.results

    @property
    def schools(self) -> Tuple[SchoolRecord, ...]:
        return self.session.school.results

    @property
    def selected_district(self) -> Optional[DistrictRecord]:
        return self.session.selected_district

    @property
    def selected_school(self) -> Optional[SchoolRecord]:
        return self.session.selected_school

    @property
    def district_filter(self) -> Optional[str]:
        selected = self.session.selected_district
        return selected.lea_id if selected is not None else None

    def status(self, which: SearchField) -> FieldStatus:
        state = self.session.field_state(which)
        if state.typing:
            return FieldStatus.TYPING
        if state.querying:
            return FieldStatus.QUERYING
        return FieldStatus.IDLE

    def results_state(self, which: SearchField) -> ResultsState:
        """Distinguishes "no results found" from "not searched yet"."""
        state = self.session.field_state(which)
        if state.querying:
            return ResultsState.LOADING
        if not state.searched:
            return ResultsState.NOT_SEARCHED
        if not state.results:
            return ResultsState.EMPTY
        return ResultsState.HAS_RESULTS

    def map_view(self) -> Optional[MapView]:
        return build_map_view(self.session.selected_school, api_key=self.maps_api_key)

    # -- input -----------------------------------------------------------

    def set_district_text(self, text: str) -> None:
        self._type(SearchField.DISTRICT, text)

    def set_school_text(self, text: str) -> None:
        self._type(SearchField.SCHOOL, text)
        self._set_selected_school(None)

    def _type(self, which: SearchField, text: str) -> None:
        state = self.session.field_state(which)
        state.raw_text = text or ""
        if state.timer is not None:
            state.timer.cancel()
        loop = asyncio.get_running_loop()
        state.timer = loop.create_task(self._debounce(which, state.raw_text))
        self._notify(which)

    async def _debounce(self, which: SearchField, text: str) -> None:
        await asyncio.sleep(self.debounce_s)
        state = self.session.field_state(which)
        if state.timer is asyncio.current_task():
            state.timer = None
        if text == state.debounced_text and state.searched and not state.degraded:
            self._notify(which)
            return
        state.debounced_text = text
        if which is SearchField.DISTRICT:
            self._refresh_districts()
        else:
            self._refresh_schools()

    # -- selection -------------------------------------------------------

    def select_district(self, lea_id: Optional[str]) -> Optional[DistrictRecord]:
        """Select a district from the current results; unknown ids clear it.

        Always clears the school selection and forces a fresh school query
        under the new filter.
        """
        previous = self.district_filter
        match = None
        if lea_id:
            match = next((d for d in self.districts if d.lea_id == lea_id), None)
        self._set_selected_district(match)
        self._set_selected_school(None)

        text = self.session.school.debounced_text
        self.cache.invalidate(QueryKey.build(SearchField.SCHOOL, text, self.district_filter))
        if previous != self.district_filter:
            self.cache.invalidate(QueryKey.build(SearchField.SCHOOL, text, previous))
        self._refresh_schools()
        return match

    def select_school(self, school: Optional[SchoolRecord]) -> None:
        self._set_selected_school(school)

    def select_school_by_id(self, nces_id: Optional[str]) -> Optional[SchoolRecord]:
        match = None
        if nces_id:
            match = next((s for s in self.schools if s.nces_id == nces_id), None)
        self._set_selected_school(match)
        return match

    def refresh_schools(self) -> None:
        """Re-issue the current school query, bypassing the cache."""
        key = QueryKey.build(
            SearchField.SCHOOL, self.session.school.debounced_text, self.district_filter
        )
        self.cache.invalidate(key)
        self._refresh_schools()

    def _set_selected_district(self, district: Optional[DistrictRecord]) -> None:
        if self.session.selected_district is not district:
            self.session.selected_district = district
            self._notify(SearchField.DISTRICT)

    def _set_selected_school(self, school: Optional[SchoolRecord]) -> None:
        if self.session.selected_school is not school:
            self.session.selected_school = school
            self._notify(SearchField.SCHOOL)

    # -- query pipelines -------------------------------------------------

    def _refresh_districts(self) -> None:
        state = self.session.district
        query = state.debounced_text.strip()
        if len(query) < self.min_query_length:
            self._reset_field(SearchField.DISTRICT)
            had_filter = self.district_filter is not None
            self._set_selected_district(None)
            self._set_selected_school(None)
            if had_filter:
                self._refresh_schools()
            return
        key = QueryKey.build(SearchField.DISTRICT, query)
        self._issue(
            SearchField.DISTRICT,
            key,
            lambda log: self.executor.search_districts(query, log),
        )

    def _refresh_schools(self) -> None:
        state = self.session.school
        query = state.debounced_text.strip()
        district_id = self.district_filter
        if len(query) < self.min_query_length and not district_id:
            self._reset_field(SearchField.SCHOOL)
            self._set_selected_school(None)
            return
        key = QueryKey.build(SearchField.SCHOOL, query, district_id)
        self._issue(
            SearchField.SCHOOL,
            key,
            lambda log: self.executor.search_schools(query, district_id, log),
        )

    def _cancel_query(self, state: FieldState) -> None:
        state.generation += 1
        if state.task is not None and not state.task.done():
            state.task.cancel()
        state.task = None

    def _reset_field(self, which: SearchField) -> None:
        state = self.session.field_state(which)
        self._cancel_query(state)
        state.results = ()
        state.searched = False
        state.degraded = False
        state.active_key = None
        self._notify(which)

    def _issue(
        self,
        which: SearchField,
        key: QueryKey,
        run: Callable[[list], Awaitable[Sequence]],
    ) -> None:
        state = self.session.field_state(which)
        self._cancel_query(state)
        state.active_key = key
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("serving %s results for %r from cache", which.value, key.text)
            self._apply_results(which, cached)
            return
        generation = state.generation
        loop = asyncio.get_running_loop()
        state.task = loop.create_task(self._execute(which, key, generation, run))
        self._notify(which)

    async def _execute(
        self,
        which: SearchField,
        key: QueryKey,
        generation: int,
        run: Callable[[list], Awaitable[Sequence]],
    ) -> None:
        state = self.session.field_state(which)
        source_log: list = []
        try:
            records = tuple(await run(source_log))
        except asyncio.CancelledError:
            logger.debug("%s query %r cancelled", which.value, key.text)
            raise
        except Exception:
            logger.exception("%s query %r failed", which.value, key.text)
            records = ()
            source_log.append({"status": "failed"})

        if state.generation != generation:
            logger.debug("discarding superseded %s result for %r", which.value, key.text)
            return
        state.task = None
        degraded = has_failures(source_log)
        if not degraded:
            self.cache.put(key, records)
        self._apply_results(which, records, degraded=degraded)

    def _apply_results(
        self, which: SearchField, records: Tuple, degraded: bool = False
    ) -> None:
        state = self.session.field_state(which)
        state.results = records
        state.searched = True
        state.degraded = degraded
        if which is SearchField.SCHOOL:
            selected = self.session.selected_school
            if selected is not None and not any(s.matches(selected) for s in records):
                logger.debug("selected school no longer in results; clearing selection")
                self._set_selected_school(None)
        self._notify(which)

    def _notify(self, which: SearchField) -> None:
        if self.on_change is not None:
            self.on_change(which)

    # -- lifecycle -------------------------------------------------------

    def _pending(self):
        pending = []
        for state in (self.session.district, self.session.school):
            for task in (state.timer, state.task):
                if task is not None and not task.done():
                    pending.append(task)
        return pending

    async def settle(self) -> None:
        """Wait until no debounce timer or query is outstanding."""
        while True:
            pending = self._pending()
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        pending = self._pending()
        for state in (self.session.district, self.session.school):
            if state.timer is not None:
                state.timer.cancel()
                state.timer = None
            self._cancel_query(state)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._owns_executor:
            await self.executor.aclose()
