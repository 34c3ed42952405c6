"""Brave Search web search provider with offset pagination."""

from __future__ import annotations

from typing import Any

from durapack.capabilities.websearch import SearchMetadata, SearchParams, SearchResult
from durapack.config import BRAVE_API_KEY_ENV, get_config_key
from durapack.providers.http import HttpClient

SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
DEFAULT_COUNT = 10
MAX_OFFSET = 9


def search_query(params: SearchParams, page: int) -> dict[str, Any]:
    query = params.query
    for domain in params.include_domains:
        query += f" site:{domain}"
    for domain in params.exclude_domains:
        query += f" -site:{domain}"
    request: dict[str, Any] = {
        "q": query,
        "count": params.max_results or DEFAULT_COUNT,
        "offset": page,
    }
    if params.safe_search:
        request["safesearch"] = params.safe_search
    if params.language:
        request["search_lang"] = params.language
    if params.region:
        request["country"] = params.region
    return request


def parse_results(body: dict[str, Any]) -> list[SearchResult]:
    results: list[SearchResult] = []
    for item in (body.get("web") or {}).get("results") or []:
        meta_url = item.get("meta_url") or {}
        results.append(
            SearchResult(
                title=item.get("title", ""),
                url=item["url"],
                snippet=item.get("description", ""),
                display_url=meta_url.get("hostname"),
                source=meta_url.get("netloc"),
                date_published=item.get("page_age") or item.get("age"),
            )
        )
    return results


class BraveSearchSession:
    """Pages through Brave results; ``page`` is the offset of the next request."""

    def __init__(self, client: "BraveWebSearch", params: SearchParams, page: int = 0, finished: bool = False) -> None:
        self.client = client
        self.params = params
        self.page = page
        self.finished = finished
        self.metadata: SearchMetadata | None = None

    def next_page(self) -> list[SearchResult]:
        if self.finished:
            return []
        body = self.client.request(self.params, self.page)
        results = parse_results(body)
        more = bool((body.get("query") or {}).get("more_results_available"))
        self.metadata = SearchMetadata(
            query=self.params.query,
            current_page=self.page,
            next_page_token=str(self.page + 1) if more and self.page < MAX_OFFSET else None,
        )
        self.page += 1
        self.finished = not more or self.page > MAX_OFFSET
        return results

    def get_metadata(self) -> SearchMetadata | None:
        return self.metadata


class BraveWebSearch:
    name = "brave"
    required_config = (BRAVE_API_KEY_ENV,)

    def __init__(self, *, http: HttpClient | None = None, url: str = SEARCH_URL) -> None:
        self.http = http or HttpClient()
        self.url = url

    def request(self, params: SearchParams, page: int) -> dict[str, Any]:
        return self.http.get_json(
            self.url,
            headers={
                "Accept": "application/json",
                "X-Subscription-Token": get_config_key(BRAVE_API_KEY_ENV),
            },
            params=search_query(params, page),
            details="Brave search request failed",
        )

    def start_session(self, params: SearchParams) -> BraveSearchSession:
        return BraveSearchSession(self, params)

    def search_once(self, params: SearchParams) -> tuple[list[SearchResult], SearchMetadata | None]:
        session = self.start_session(params)
        results = session.next_page()
        return results, session.get_metadata()

    def session_to_state(self, session: BraveSearchSession) -> dict[str, Any]:
        return {"page": session.page, "finished": session.finished}

    def session_from_state(self, state: dict[str, Any], params: SearchParams) -> BraveSearchSession:
        session = BraveSearchSession(
            self,
            params,
            page=int(state.get("page", 0)),
            finished=bool(state.get("finished", False)),
        )
        if session.page > 0:
            session.metadata = SearchMetadata(query=params.query, current_page=session.page - 1)
        return session
