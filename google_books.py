import httpx
from typing import Optional
from loguru import logger
from models import VolumesPage

# --- CONFIGURATION ---
GOOGLE_BOOKS_API_URL = "https://www.googleapis.com/books/v1/volumes"
DEFAULT_TIMEOUT = 20.0


class UpstreamStatusError(Exception):
    """Google Books answered with a non-2xx status. Keeps the raw body for diagnostics."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Google Books API error: {status_code}")
        self.status_code = status_code
        self.body = body


class ChunkFetchError(Exception):
    """A statistics chunk could not be fetched (bad status, transport failure or junk body)."""

    def __init__(self, start_index: int, reason: str):
        super().__init__(f"Chunk at startIndex={start_index} failed: {reason}")
        self.start_index = start_index
        self.reason = reason


class GoogleBooksClient:
    """
    Thin async client for the Google Books volumes search endpoint.
    The API key is optional; without it requests go out unauthenticated.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: str = GOOGLE_BOOKS_API_URL,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "GoogleBooksClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _params(self, query: str, max_results: int, start_index: int) -> dict:
        params = {"q": query, "maxResults": max_results, "startIndex": start_index}
        if self.api_key: params["key"] = self.api_key
        return params

    async def fetch_volumes(self, query: str, max_results: int, start_index: int) -> VolumesPage:
        resp = await self._client.get(self.base_url, params=self._params(query, max_results, start_index))
        if not resp.is_success:
            logger.warning(f"Google Books returned {resp.status_code} for q={query!r} startIndex={start_index}")
            raise UpstreamStatusError(resp.status_code, resp.text)
        return VolumesPage.model_validate(resp.json())

    async def fetch_chunk(self, query: str, max_results: int, start_index: int) -> VolumesPage:
        """
        Same request as fetch_volumes, but every failure is normalized to ChunkFetchError
        so the stats loop has a single thing to catch.
        """
        try:
            return await self.fetch_volumes(query, max_results, start_index)
        # pydantic's ValidationError and JSONDecodeError are both ValueErrors
        except (UpstreamStatusError, httpx.HTTPError, ValueError) as e:
            raise ChunkFetchError(start_index, str(e) or type(e).__name__) from e
