import logging
import os
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from scrapers.deep_link import search_query_from_uri
from scrapers.hikari_scraper import HikariScraper

logging.basicConfig(
    level=os.environ.get("HIKARI_LOG_LEVEL", "WARNING").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)

app = FastAPI(
    title="Hikari Stream API",
    description="API for browsing Hikari and resolving playable episode streams",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Dictionary to store anime scrapers by name
anime_scrapers = {
    "hikari": HikariScraper(),
}


class AnimeResponse(BaseModel):
    page: int
    source: str
    query: Optional[str] = None
    hasNextPage: bool
    results: List[Dict[str, Any]]
    executionTimeMs: int


class QualitySetting(BaseModel):
    quality: str


def get_scraper(source: str) -> HikariScraper:
    if source not in anime_scrapers:
        raise HTTPException(status_code=400, detail=f"Invalid source. Available sources: {', '.join(anime_scrapers.keys())}")
    return anime_scrapers[source]


def page_response(page_data: Dict[str, Any], source: str, page: int, start_time: float, query: Optional[str] = None) -> Dict[str, Any]:
    return {
        "page": page,
        "source": source,
        "query": query,
        "hasNextPage": page_data.get("has_next_page", False),
        "results": page_data.get("results", []),
        "executionTimeMs": int((time.time() - start_time) * 1000),
    }


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Hikari Stream API",
        "documentation": "/docs",
        "version": "1.0.0"
    }


@app.get("/api/anime/search", response_model=AnimeResponse)
def search_anime(
    q: str = Query("", description="Search query (empty browses the catalog)"),
    source: str = Query("hikari", description="Source to search (hikari)"),
    page: int = Query(1, description="Page number", ge=1),
):
    start_time = time.time()
    scraper = get_scraper(source)

    try:
        results = scraper.search_anime(q, page)
        return page_response(results, source, page, start_time, query=q)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error searching anime: {str(e)}")


@app.get("/api/anime/popular", response_model=AnimeResponse)
def get_popular_anime(
    source: str = Query("hikari", description="Source to fetch from (hikari)"),
    page: int = Query(1, description="Page number", ge=1),
):
    start_time = time.time()
    scraper = get_scraper(source)

    try:
        results = scraper.get_popular_anime(page)
        return page_response(results, source, page, start_time)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching popular anime: {str(e)}")


@app.get("/api/anime/latest", response_model=AnimeResponse)
def get_latest_anime(
    source: str = Query("hikari", description="Source to fetch from (hikari)"),
    page: int = Query(1, description="Page number", ge=1),
):
    start_time = time.time()
    scraper = get_scraper(source)

    try:
        results = scraper.get_latest_anime(page)
        return page_response(results, source, page, start_time)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching latest anime: {str(e)}")


@app.get("/api/anime/details")
def get_anime_details(
    source: str = Query("hikari", description="Source to fetch from (hikari)"),
    id: str = Query(..., description="URL/path of the anime")
):
    """
    Get detailed information about an anime including episodes

    - **source**: Source name (hikari)
    - **id**: URL or path of the anime
    """
    start_time = time.time()
    scraper = get_scraper(source)

    try:
        details = scraper.get_anime_details(id)
        details["episodes"] = scraper.get_episodes(details)
        details["executionTimeMs"] = int((time.time() - start_time) * 1000)
        return details
    except ValueError as e:
        raise HTTPException(status_code=404, detail=f"Anime not found: {str(e)}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting anime details: {str(e)}")


@app.get("/api/anime/get-episode")
def get_anime_episode(
    source: str = Query("hikari", description="Source to fetch from (hikari)"),
    id: str = Query(..., description="URL of the anime episode")
):
    """
    Get ranked streaming links for a specific anime episode

    An empty stream list means nothing could be resolved; the response never fails for that reason.
    """
    start_time = time.time()
    scraper = get_scraper(source)

    videos = scraper.get_video_streams(id)
    return {
        "source": source,
        "episode_id": id,
        "preferredQuality": scraper._get_preference(scraper.PREF_QUALITY_KEY, scraper.PREF_QUALITY_DEFAULT),
        "streams": [video.to_dict() for video in videos],
        "executionTimeMs": int((time.time() - start_time) * 1000),
    }


@app.get("/api/settings/quality")
async def get_quality(source: str = Query("hikari", description="Source (hikari)")):
    scraper = get_scraper(source)
    return {
        "source": source,
        "quality": scraper._get_preference(scraper.PREF_QUALITY_KEY, scraper.PREF_QUALITY_DEFAULT),
        "options": scraper.QUALITY_VALUES,
    }


@app.put("/api/settings/quality")
async def set_quality(setting: QualitySetting, source: str = Query("hikari", description="Source (hikari)")):
    scraper = get_scraper(source)
    try:
        quality = scraper.set_preferred_quality(setting.quality)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"source": source, "quality": quality}


@app.get("/api/deeplink")
async def resolve_deep_link(uri: str = Query(..., description="Shared site link, e.g. https://host/<type>/<slug>")):
    query = search_query_from_uri(uri)
    if query is None:
        raise HTTPException(status_code=400, detail=f"Could not parse uri: {uri}")
    return {"query": query, "search": f"/api/anime/search?q={quote_plus(query)}"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=5000, reload=True)
