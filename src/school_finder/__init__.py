"""Package initializer for `school_finder`."""

from .controller import SearchController
from .executor import QueryExecutor
from .records import DistrictRecord, SchoolRecord

__all__ = ["DistrictRecord", "QueryExecutor", "SchoolRecord", "SearchController"]
