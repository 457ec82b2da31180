import logging
from dataclasses import dataclass, field
from enum import Enum

from config import Settings, settings as default_settings
from scraper.errors import ExtractionError, TransportError
from scraper.extractor import dig, extract_best_seller_ids, extract_state, looks_blocked
from scraper.models import Item
from scraper.normalizer import parse_results
from scraper.ratelimit import RateLimitPolicy
from scraper.transport import Transport

log = logging.getLogger(__name__)


class PageState(Enum):
    START = "start"
    FETCHING_FIRST_PAGE = "fetching_first_page"
    ACCUMULATING = "accumulating"
    FETCHING_NEXT_PAGE = "fetching_next_page"
    DONE = "done"


@dataclass
class RegionResult:
    state: str | None
    url: str
    items: list[Item]
    total: int
    offset: int
    results_limit: int | None
    capped: bool
    pages_fetched: int


def next_page_url(page: dict) -> str | None:
    if dig(page, "pagination", "next_page", "show") is True:
        url = dig(page, "pagination", "next_page", "url")
        return url if isinstance(url, str) and url else None
    return None


@dataclass
class Paginator:
    """Collects unique listing items for one region filter, following next-page links.

    The first page is mandatory: a transport failure or a page without results
    raises. Later pages only end the walk early.
    """

    transport: Transport
    url: str
    limit: int
    timeout_ms: int
    policy: RateLimitPolicy
    region: str | None = None
    settings: Settings = field(default_factory=lambda: default_settings)

    def __post_init__(self) -> None:
        self.phase = PageState.START
        self.items: list[Item] = []
        self.pages_fetched = 0
        self._seen_ids: set[str] = set()
        self._next_url: str | None = None

    def _accumulate(self, page: dict) -> int:
        added = 0
        for item in parse_results(page, extract_best_seller_ids(page), self.settings):
            if item.id:
                if item.id in self._seen_ids:
                    continue
                self._seen_ids.add(item.id)
            self.items.append(item)
            added += 1
        self._next_url = next_page_url(page)
        return added

    def _should_continue(self) -> bool:
        return (
            len(self.items) < self.limit
            and self._next_url is not None
            and self.pages_fetched < self.settings.max_pages
        )

    async def _fetch_first(self) -> dict:
        self.phase = PageState.FETCHING_FIRST_PAGE
        html = await self.transport.fetch(self.url, self.timeout_ms)
        page = extract_state(html)
        if page is None:
            hint = " (the response looks like an anti-bot challenge)" if looks_blocked(html) else ""
            raise ExtractionError(
                f"Could not extract search results. The page structure may have changed{hint}.",
                url=self.url,
            )
        return page

    async def _fetch_next(self) -> dict | None:
        self.phase = PageState.FETCHING_NEXT_PAGE
        url = self._next_url
        try:
            html = await self.transport.fetch(url, self.timeout_ms)
        except TransportError as e:
            log.warning(f"[{self.region or '-'}] page {self.pages_fetched + 1} failed: {e}")
            return None
        page = extract_state(html)
        if page is None:
            log.info(f"[{self.region or '-'}] page {self.pages_fetched + 1} had no results")
        return page

    async def run(self) -> RegionResult:
        first = await self._fetch_first()
        self.pages_fetched = 1
        self.phase = PageState.ACCUMULATING
        self._accumulate(first)
        log.info(
            f"[{self.region or '-'}] page 1 parsed: {len(first['results'])} results -> "
            f"{len(self.items)} valid items"
        )

        while self._should_continue():
            await self.policy.page_pause()
            page = await self._fetch_next()
            if page is None:
                break
            self.phase = PageState.ACCUMULATING
            added = self._accumulate(page)
            if added == 0:
                log.info(f"[{self.region or '-'}] no new items on page {self.pages_fetched + 1}, stopping")
                break
            self.pages_fetched += 1
            log.debug(
                f"[{self.region or '-'}] page {self.pages_fetched}: {added} new, total={len(self.items)}"
            )

        self.phase = PageState.DONE
        capped = len(self.items) >= self.limit or (
            self._next_url is not None and self.pages_fetched >= self.settings.max_pages
        )
        pagination = first.get("pagination") if isinstance(first.get("pagination"), dict) else {}
        results_limit = pagination.get("results_limit") or None
        return RegionResult(
            state=self.region,
            url=self.url,
            items=self.items,
            total=results_limit or len(self.items),
            offset=pagination.get("offset") or 0,
            results_limit=results_limit,
            capped=capped,
            pages_fetched=self.pages_fetched,
        )
