"""Web search capability with durable paginated sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from durapack.config import require_config
from durapack.durability import durable_call
from durapack.log import init_logging
from durapack.streaming.chunks import Pollable, ReadyPollable
from durapack.streaming.session import DurableSession

NAMESPACE = "durakit.websearch"


@dataclass(slots=True)
class SearchParams:
    query: str
    max_results: int | None = None
    safe_search: str | None = None
    language: str | None = None
    region: str | None = None
    include_domains: list[str] = field(default_factory=list)
    exclude_domains: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "max_results": self.max_results,
            "safe_search": self.safe_search,
            "language": self.language,
            "region": self.region,
            "include_domains": list(self.include_domains),
            "exclude_domains": list(self.exclude_domains),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SearchParams":
        return cls(
            query=raw["query"],
            max_results=raw.get("max_results"),
            safe_search=raw.get("safe_search"),
            language=raw.get("language"),
            region=raw.get("region"),
            include_domains=list(raw.get("include_domains") or []),
            exclude_domains=list(raw.get("exclude_domains") or []),
        )


@dataclass(slots=True)
class SearchResult:
    title: str
    url: str
    snippet: str
    display_url: str | None = None
    source: str | None = None
    score: float | None = None
    date_published: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "display_url": self.display_url,
            "source": self.source,
            "score": self.score,
            "date_published": self.date_published,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SearchResult":
        return cls(
            title=raw.get("title", ""),
            url=raw["url"],
            snippet=raw.get("snippet", ""),
            display_url=raw.get("display_url"),
            source=raw.get("source"),
            score=raw.get("score"),
            date_published=raw.get("date_published"),
        )


@dataclass(slots=True)
class SearchMetadata:
    query: str
    total_results: int | None = None
    search_time_ms: float | None = None
    current_page: int = 0
    next_page_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "total_results": self.total_results,
            "search_time_ms": self.search_time_ms,
            "current_page": self.current_page,
            "next_page_token": self.next_page_token,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SearchMetadata":
        return cls(
            query=raw["query"],
            total_results=raw.get("total_results"),
            search_time_ms=raw.get("search_time_ms"),
            current_page=int(raw.get("current_page", 0)),
            next_page_token=raw.get("next_page_token"),
        )


class ProviderSearchSession(Protocol):
    def next_page(self) -> list[SearchResult]:
        ...

    def get_metadata(self) -> SearchMetadata | None:
        ...


class WebSearchProvider(Protocol):
    name: str
    required_config: tuple[str, ...]

    def start_session(self, params: SearchParams) -> ProviderSearchSession:
        ...

    def search_once(self, params: SearchParams) -> tuple[list[SearchResult], SearchMetadata | None]:
        ...

    def session_to_state(self, session: ProviderSearchSession) -> dict[str, Any]:
        """Replay state: enough to continue paging without re-running earlier pages."""
        ...

    def session_from_state(self, state: dict[str, Any], params: SearchParams) -> ProviderSearchSession:
        ...


class SearchSessionDriver:
    """Live side of a durable search session; pages never end the session."""

    def __init__(self, provider: WebSearchProvider, params: SearchParams) -> None:
        self.provider = provider
        self.params = params
        self.session: ProviderSearchSession | None = None

    def open(self) -> None:
        self.session = self.provider.start_session(self.params)

    def _open_session(self) -> ProviderSearchSession:
        if self.session is None:
            raise RuntimeError("search session used before it was opened")
        return self.session

    def pull(self) -> list[SearchResult]:
        return self._open_session().next_page()

    def snapshot(self) -> dict[str, Any]:
        return self.provider.session_to_state(self._open_session())

    def restore(self, state: dict[str, Any], history: list[list[SearchResult]]) -> None:
        self.session = self.provider.session_from_state(state, self.params)

    def is_final(self, value: list[SearchResult]) -> bool:
        return False

    def terminal_value(self) -> list[SearchResult]:
        return []

    def encode_value(self, value: list[SearchResult]) -> Any:
        return [result.to_dict() for result in value]

    def decode_value(self, raw: Any) -> list[SearchResult]:
        return [SearchResult.from_dict(item) for item in raw]

    def subscribe(self) -> Pollable:
        return ReadyPollable()

    def close(self) -> None:
        self.session = None


class DurableSearchSession:
    def __init__(self, session: DurableSession[list[SearchResult]], driver: SearchSessionDriver) -> None:
        self._session = session
        self._driver = driver

    def next_page(self) -> list[SearchResult]:
        return self._session.step()

    def get_metadata(self) -> SearchMetadata | None:
        """Best-effort peek; during replay it is rebuilt from the replay state."""
        if self._session.is_live and self._driver.session is not None:
            return self._driver.session.get_metadata()
        restored = self._driver.provider.session_from_state(
            self._session.replay_state, self._driver.params
        )
        return restored.get_metadata()

    def close(self) -> None:
        self._session.close()


def _encode_search_output(value: tuple[list[SearchResult], SearchMetadata | None]) -> Any:
    results, metadata = value
    return {
        "results": [result.to_dict() for result in results],
        "metadata": None if metadata is None else metadata.to_dict(),
    }


def _decode_search_output(raw: Any) -> tuple[list[SearchResult], SearchMetadata | None]:
    metadata = raw.get("metadata")
    return (
        [SearchResult.from_dict(item) for item in raw.get("results", [])],
        None if metadata is None else SearchMetadata.from_dict(metadata),
    )


@dataclass(frozen=True, slots=True)
class _SearchOutputCodec:
    def encode(self, value: tuple[list[SearchResult], SearchMetadata | None]) -> Any:
        return _encode_search_output(value)

    def decode(self, raw: Any) -> tuple[list[SearchResult], SearchMetadata | None]:
        return _decode_search_output(raw)


class DurableWebSearch:
    def __init__(self, provider: WebSearchProvider) -> None:
        self.provider = provider

    def _check_config(self) -> None:
        require_config(self.provider.required_config)

    def start_search(self, params: SearchParams) -> DurableSearchSession:
        init_logging()
        driver = SearchSessionDriver(self.provider, params)
        session = DurableSession.start(
            driver,
            {"params": params.to_dict()},
            namespace=NAMESPACE,
            start_name="start_search",
            step_name="next_page",
            live_preflight=self._check_config,
        )
        return DurableSearchSession(session, driver)

    def search_once(self, params: SearchParams) -> tuple[list[SearchResult], SearchMetadata | None]:
        return durable_call(
            NAMESPACE,
            "search_once",
            "read_remote",
            {"params": params.to_dict()},
            lambda: self.provider.search_once(params),
            codec=_SearchOutputCodec(),
            live_preflight=self._check_config,
        )
