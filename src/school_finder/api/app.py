import logging

from fastapi import FastAPI

from school_finder.api.routes.search import router as search_router
from school_finder.settings import get_settings


def health():
    return {"status": "ok"}


app = FastAPI(title="school_finder")
app.include_router(search_router, prefix="/api")


@app.get("/health")
def health_route():
    return health()


@app.on_event("startup")
def _report_map_key():
    if not get_settings().maps_api_key:
        logger = logging.getLogger("school_finder.startup")
        logger.warning("MAPS_API_KEY not set; map views will not be renderable")
