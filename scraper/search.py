"""Public search operations: option validation, region fan-out, finishing steps."""

import logging
from dataclasses import dataclass

from config import Settings, settings as default_settings
from scraper.aggregator import RegionAggregator
from scraper.categories import CATEGORIES, Category, CategoryTable
from scraper.enricher import DetailEnricher
from scraper.errors import ExtractionError, ValidationError
from scraper.extractor import extract_state, looks_blocked
from scraper.filter import filter_items, finalize, matches, tokenize
from scraper.models import (
    Condition,
    Item,
    PaginationDescriptor,
    QueryDescriptor,
    SearchOptions,
    SearchResult,
    SortOrder,
)
from scraper.paginator import Paginator, RegionResult
from scraper.ratelimit import RateLimitPolicy
from scraper.regions import parse_states
from scraper.transport import Transport
from scraper.urls import build_url

log = logging.getLogger(__name__)

CONDITIONS = {c.value for c in Condition}
SORT_ORDERS = {s.value for s in SortOrder}


@dataclass
class ResolvedOptions:
    limit: int
    condition: str | None
    timeout_ms: int
    sort: str | None
    concurrency: int
    states: list[str]
    category: Category | None
    strict: bool
    policy: RateLimitPolicy


def resolve_options(
    options: SearchOptions,
    categories: CategoryTable,
    settings: Settings,
) -> ResolvedOptions:
    """Validate and fill defaults. Never touches the network."""
    limit = settings.default_limit if options.limit is None else options.limit
    if limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit}")
    if options.condition and options.condition not in CONDITIONS:
        raise ValidationError(f'Unknown condition "{options.condition}". Use "new" or "used".')
    if options.sort and options.sort not in SORT_ORDERS:
        raise ValidationError(
            f'Unknown sort "{options.sort}". Use one of: {", ".join(sorted(SORT_ORDERS))}.'
        )

    category = categories.resolve(options.category) if options.category else None
    if options.condition and category:
        raise ValidationError("condition and category cannot be used together. Remove one of them.")

    return ResolvedOptions(
        limit=limit,
        condition=options.condition or None,
        timeout_ms=options.timeout_ms or settings.default_timeout_ms,
        sort=options.sort or None,
        concurrency=options.concurrency or settings.default_concurrency,
        states=parse_states(options.states),
        category=category,
        strict=options.strict,
        policy=RateLimitPolicy.from_settings(settings, enabled=not options.no_rate_limit),
    )


def _url_for(query: str, opts: ResolvedOptions, state: str | None, settings: Settings) -> str:
    return build_url(
        query,
        domain=settings.marketplace_domain,
        condition=opts.condition,
        sort=opts.sort,
        state=state,
        category_path=opts.category.path if opts.category else None,
    )


async def _paginate(
    query: str,
    opts: ResolvedOptions,
    state: str | None,
    limit: int,
    transport: Transport,
    settings: Settings,
) -> RegionResult:
    url = _url_for(query, opts, state, settings)
    log.info(f"[{state or '-'}] first URL: {url}")
    paginator = Paginator(
        transport=transport,
        url=url,
        limit=limit,
        timeout_ms=opts.timeout_ms,
        policy=opts.policy,
        region=state,
        settings=settings,
    )
    return await paginator.run()


async def _finish(
    items: list[Item],
    query: str,
    opts: ResolvedOptions,
    enricher: DetailEnricher,
) -> list[Item]:
    """Strict filtering, sorting, truncation and detail enrichment.

    In strict mode items whose title alone misses a token are enriched first so
    their description and attributes can satisfy it. No item is fetched twice.
    With several regions that means up to ``limit * strict_multiplier`` detail
    fetches per region before filtering, all paced by the rate limit.
    """
    attempted: set[int] = set()

    async def enrich(candidates: list[Item]) -> None:
        pending = [item for item in candidates if id(item) not in attempted]
        attempted.update(id(item) for item in pending)
        await enricher.enrich(pending)

    tokens = tokenize(query) if opts.strict else []
    if tokens:
        await enrich([item for item in items if not matches(item, tokens)])
        before = len(items)
        items = filter_items(items, tokens)
        log.info(f"Strict filter kept {len(items)}/{before} items for tokens {tokens}")

    items = finalize(items, opts.sort, opts.limit)
    await enrich(items)
    return items


def _describe(query: str, opts: ResolvedOptions, url: str | None) -> QueryDescriptor:
    return QueryDescriptor(
        text=query,
        condition=opts.condition,
        sort=opts.sort,
        state=",".join(opts.states) or None,
        states=opts.states,
        category=opts.category.id if opts.category else None,
        strict=opts.strict,
        url=url,
    )


async def _search_single(
    query: str,
    opts: ResolvedOptions,
    transport: Transport,
    enricher: DetailEnricher,
    settings: Settings,
) -> SearchResult:
    state = opts.states[0] if opts.states else None
    region = await _paginate(query, opts, state, opts.limit, transport, settings)
    items = await _finish(region.items, query, opts, enricher)
    log.info(
        f"search() done: {len(items)} items returned, pages={region.pages_fetched}, "
        f"capped={region.capped}"
    )
    return SearchResult(
        items=items,
        query=_describe(query, opts, region.url),
        pagination=PaginationDescriptor(
            total=region.total,
            offset=region.offset,
            limit=opts.limit,
            results_limit=region.results_limit,
            capped=region.capped,
        ),
        enrichment_failures=enricher.failures,
    )


async def _search_regions(
    query: str,
    opts: ResolvedOptions,
    transport: Transport,
    enricher: DetailEnricher,
    settings: Settings,
) -> SearchResult:
    region_limit = opts.limit * settings.strict_multiplier if opts.strict else opts.limit

    async def pipeline(state: str) -> RegionResult:
        region = await _paginate(query, opts, state, region_limit, transport, settings)
        region.items = region.items[:region_limit]
        return region

    aggregator = RegionAggregator(pipeline, max_parallel=settings.region_concurrency)
    merged = await aggregator.gather(opts.states)
    items = await _finish(merged.items, query, opts, enricher)
    log.info(
        f"search() done: {len(items)} items returned from {len(merged.regions)} regions, "
        f"failed={merged.failed_regions}"
    )
    return SearchResult(
        items=items,
        query=_describe(query, opts, merged.url),
        pagination=PaginationDescriptor(
            total=merged.total,
            offset=0,
            limit=opts.limit,
            results_limit=None,
            capped=len(items) >= opts.limit,
        ),
        failed_regions=merged.failed_regions,
        enrichment_failures=enricher.failures,
    )


async def search(
    query: str,
    options: SearchOptions | None = None,
    *,
    transport: Transport | None = None,
    categories: CategoryTable = CATEGORIES,
    settings: Settings | None = None,
) -> SearchResult:
    """Search listings and return normalised, optionally enriched items.

    Raises ``ValidationError`` before any request for bad options, and
    ``ExtractionError`` / ``TransportError`` when the first page of a
    single-region search cannot be loaded. Multi-region searches drop failed
    regions and report them in ``failed_regions``.
    """
    settings = settings or default_settings
    options = options or SearchOptions()
    opts = resolve_options(options, categories, settings)
    log.info(
        f'search("{query}") called: limit={opts.limit}, condition={opts.condition}, '
        f"sort={opts.sort}, states={opts.states}, "
        f"category={opts.category.id if opts.category else None}, strict={opts.strict}, "
        f"rate_limit={opts.policy.enabled}"
    )

    owns_transport = transport is None
    transport = transport or Transport.from_settings(settings)
    try:
        enricher = DetailEnricher(
            transport, opts.policy, opts.timeout_ms, opts.concurrency, settings
        )
        if len(opts.states) > 1:
            return await _search_regions(query, opts, transport, enricher, settings)
        return await _search_single(query, opts, transport, enricher, settings)
    finally:
        if owns_transport:
            await transport.aclose()


async def search_raw(
    query: str,
    options: SearchOptions | None = None,
    *,
    transport: Transport | None = None,
    categories: CategoryTable = CATEGORIES,
    settings: Settings | None = None,
) -> dict:
    """Return the unmodified embedded payload of the first listing page."""
    settings = settings or default_settings
    options = options or SearchOptions()
    opts = resolve_options(options, categories, settings)
    if len(opts.states) > 1:
        raise ValidationError("search_raw accepts a single state.")
    log.info(f'search_raw("{query}") called: states={opts.states}')

    url = _url_for(query, opts, opts.states[0] if opts.states else None, settings)
    owns_transport = transport is None
    transport = transport or Transport.from_settings(settings)
    try:
        html = await transport.fetch(url, opts.timeout_ms)
    finally:
        if owns_transport:
            await transport.aclose()

    state = extract_state(html)
    if state is None:
        hint = " (the response looks like an anti-bot challenge)" if looks_blocked(html) else ""
        raise ExtractionError(f"Could not extract initialState from the page{hint}.", url=url)
    return state


def get_categories(categories: CategoryTable = CATEGORIES) -> list[Category]:
    return list(categories)
