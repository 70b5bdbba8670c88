"""In-memory stand-in for the Google Books volumes endpoint, served through httpx.MockTransport."""

from typing import Any, Dict, List, Optional, Tuple

import httpx

from google_books import GoogleBooksClient


def make_volume(
    index: int,
    authors: Optional[List[str]] = None,
    published: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    info: Dict[str, Any] = {}
    if title is not None:
        info["title"] = title
    if authors is not None:
        info["authors"] = authors
    if published is not None:
        info["publishedDate"] = published
    if description is not None:
        info["description"] = description
    return {"kind": "books#volume", "id": f"vol-{index}", "volumeInfo": info}


class FakeGoogleBooks:
    """Pages a static list of volumes by startIndex/maxResults and records every request."""

    def __init__(self, volumes: Optional[List[Dict[str, Any]]] = None, total_items: Optional[int] = None):
        self.volumes = volumes or []
        self.total_items = total_items
        self.requests: List[httpx.Request] = []
        self._failures: Dict[Tuple[int, int], Any] = {}

    def fail(self, start_index: int, max_results: int, status_code: int = 500, body: str = "", exc: Optional[Exception] = None) -> None:
        self._failures[(start_index, max_results)] = exc if exc is not None else (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        start = int(request.url.params["startIndex"])
        size = int(request.url.params["maxResults"])

        failure = self._failures.get((start, size))
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            status_code, body = failure
            return httpx.Response(status_code, text=body)

        total = len(self.volumes) if self.total_items is None else self.total_items
        payload: Dict[str, Any] = {"kind": "books#volumes", "totalItems": total}
        items = self.volumes[start:start + size]
        if items:
            payload["items"] = items
        return httpx.Response(200, json=payload)

    def client(self, api_key: Optional[str] = None) -> GoogleBooksClient:
        return GoogleBooksClient(api_key=api_key, transport=httpx.MockTransport(self.handler))

    def calls(self, max_results: Optional[int] = None) -> List[int]:
        """startIndex of each request, optionally only those asking for `max_results` records."""
        return [
            int(r.url.params["startIndex"])
            for r in self.requests
            if max_results is None or int(r.url.params["maxResults"]) == max_results
        ]
