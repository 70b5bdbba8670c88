# (v1.0.0) - Paged Search + Author/Year Stats
import os
import re
import sys
import time
import httpx
from pathlib import Path
from fastapi import FastAPI, Request, Depends, Response, status
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from typing import AsyncIterator, List, Optional
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from loguru import logger
from google_books import DEFAULT_TIMEOUT, GoogleBooksClient, UpstreamStatusError
from models import (
    DisplayItem,
    ErrorResponse,
    HealthResponse,
    SearchRecord,
    SearchResponse,
    ServiceHealth,
    VolumesPage,
)
from stats import compute_stats

VERSION = "1.0.0"

# --------------------------------------------------------------------
# 1. Configuration & Setup
# --------------------------------------------------------------------

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logger.remove()
logger.add(
    sys.stderr,
    serialize=True,
    enqueue=True,
    level=LOG_LEVEL,
    format="{time} {level} {message}",
)

GOOGLE_BOOKS_TIMEOUT = float(os.getenv("GOOGLE_BOOKS_TIMEOUT", DEFAULT_TIMEOUT))
SEARCH_RATE_LIMIT = os.getenv("SEARCH_RATE_LIMIT", "60/minute")
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")

RESULTS_PER_PAGE = 10
UNKNOWN_AUTHOR = "Unknown author"
UNTITLED = "Untitled"
MISSING_QUERY = "Missing search query (q)"

limiter = Limiter(key_func=get_remote_address, storage_uri=RATE_LIMIT_STORAGE_URI)

app = FastAPI(
    title="Book Search Stats API",
    description="Paged Google Books search with most-common-author and publication-year stats.",
    version=VERSION,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def get_books_client() -> AsyncIterator[GoogleBooksClient]:
    # No key -> unauthenticated requests
    api_key = os.getenv("GOOGLE_BOOKS_API_KEY") or None
    async with GoogleBooksClient(api_key=api_key, timeout=GOOGLE_BOOKS_TIMEOUT) as client:
        yield client


# --------------------------------------------------------------------
# 2. Errors
# --------------------------------------------------------------------

class QueryValidationError(Exception):
    pass

async def _query_validation_handler(request: Request, exc: QueryValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

async def _upstream_status_handler(request: Request, exc: UpstreamStatusError) -> JSONResponse:
    logger.error(f"Upstream error on {request.url.path}: {exc.status_code}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": str(exc), "details": exc.body},
    )

app.add_exception_handler(QueryValidationError, _query_validation_handler)
app.add_exception_handler(UpstreamStatusError, _upstream_status_handler)


# --------------------------------------------------------------------
# 3. Helper Functions
# --------------------------------------------------------------------

def clean_query(q: Optional[str]) -> str:
    query = (q or "").strip()
    if not query: raise QueryValidationError(MISSING_QUERY)
    return query

def parse_page(raw: Optional[str]) -> int:
    """Leading integer of the raw value, clamped to 1. Junk falls back to page 1."""
    match = re.match(r"\s*([+-]?\d+)", raw or "")
    page = int(match.group(1)) if match else 1
    return max(1, page)

def page_offset(page: int) -> int:
    return (page - 1) * RESULTS_PER_PAGE

def format_authors(authors: List[str]) -> str:
    if not authors: return UNKNOWN_AUTHOR
    return ", ".join(authors)

def format_label(record: SearchRecord) -> str:
    info = record.volumeInfo
    return f"{format_authors(info.authors)} - {info.title or UNTITLED}"

def elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


# --- MAPPERS ---

def to_display_item(record: SearchRecord) -> DisplayItem:
    info = record.volumeInfo
    return DisplayItem(
        id=record.id,
        label=format_label(record),
        authors=list(info.authors),
        title=info.title or UNTITLED,
        description=info.description,
        publishedDate=info.publishedDate,
    )


# --------------------------------------------------------------------
# 4. API Service Helpers
# --------------------------------------------------------------------

async def fetch_display_page(client: GoogleBooksClient, query: str, page: int) -> VolumesPage:
    return await client.fetch_volumes(query, RESULTS_PER_PAGE, page_offset(page))

async def check_google_health(client: GoogleBooksClient) -> ServiceHealth:
    try:
        await client.fetch_volumes("a", 1, 0)
        return ServiceHealth(name="google_books", status="ok")
    except (UpstreamStatusError, httpx.HTTPError, ValueError) as e:
        return ServiceHealth(name="google_books", status="error", detail=str(e))


# --------------------------------------------------------------------
# 5. API Endpoints
# --------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def get_health(response: Response, client: GoogleBooksClient = Depends(get_books_client)):
    results = [await check_google_health(client)]
    if any(res.status == "error" for res in results):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="error", services=results)
    return HealthResponse(status="ok", services=results)

@app.get("/")
async def read_root(): return {"message": f"Book Search Stats API v{VERSION} is running!"}

@app.get(
    "/search",
    response_model=SearchResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["Books"],
)
@limiter.limit(SEARCH_RATE_LIMIT)
async def search_books(
    request: Request,
    q: Optional[str] = None,
    page: Optional[str] = None,
    client: GoogleBooksClient = Depends(get_books_client),
):
    started = time.perf_counter()
    query = clean_query(q)
    page_number = parse_page(page)

    try:
        data = await fetch_display_page(client, query, page_number)
        items = [to_display_item(record) for record in data.items]
        logger.info(f"Search q={query!r} page={page_number}: {len(items)} items, {data.totalItems} total")

        # Stats always cover the first STATS_CAP matches, not the neighbourhood of `page`
        stats = await compute_stats(client, query, data.totalItems)
    except UpstreamStatusError:
        raise
    except Exception as e:
        logger.exception(f"Search failed for q={query!r}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Search failed", "responseTimeMs": elapsed_ms(started)},
        )

    return SearchResponse(
        items=items,
        totalItems=data.totalItems,
        mostCommonAuthor=stats.mostCommonAuthor,
        earliestPublicationYear=stats.earliestYear,
        latestPublicationYear=stats.latestYear,
        responseTimeMs=elapsed_ms(started),
    )
