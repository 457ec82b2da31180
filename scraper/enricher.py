import asyncio
import logging
from typing import Any

from config import Settings, settings as default_settings
from scraper.errors import EnrichmentError
from scraper.extractor import dig, extract_detail_state
from scraper.models import (
    Attribute,
    AttributeSection,
    Item,
    ItemDetails,
    Picture,
    Rating,
    RatingLevel,
)
from scraper.ratelimit import RateLimitPolicy
from scraper.transport import Transport

log = logging.getLogger(__name__)


def _pictures(components: dict, settings: Settings) -> list[Picture] | None:
    raw = dig(components, "gallery", "pictures")
    if not isinstance(raw, list):
        return None
    pictures = [
        Picture(
            url=f"{settings.image_cdn}/D_{p['id']}-O.jpg",
            width=p.get("width") or None,
            height=p.get("height") or None,
        )
        for p in raw
        if isinstance(p, dict) and p.get("id")
    ]
    return pictures or None


def _rating(components: dict) -> Rating | None:
    raw = dig(components, "reviews_capability_v3", "rating")
    if not isinstance(raw, dict):
        return None
    levels = [
        RatingLevel(
            stars=5 - (level.get("index") or 0),
            count=level.get("value") or 0,
            percentage=level.get("percentage") or 0,
        )
        for level in raw.get("levels") or []
        if isinstance(level, dict)
    ]
    return Rating(average=raw.get("average"), count=raw.get("amount"), levels=levels)


def _attributes(components: dict) -> list[AttributeSection] | None:
    sections = []
    for comp in dig(components, "highlighted_specs_attrs", "components", default=[]):
        if not isinstance(comp, dict) or comp.get("type") != "technical_specifications":
            continue
        for spec in comp.get("specs") or []:
            if not isinstance(spec, dict):
                continue
            attrs = [
                Attribute(name=a.get("id") or "", value=a.get("text") or "")
                for a in spec.get("attributes") or []
                if isinstance(a, dict)
            ]
            if attrs:
                sections.append(AttributeSection(title=spec.get("title") or "", attributes=attrs))
    return sections or None


def parse_detail(state: dict[str, Any], settings: Settings | None = None) -> ItemDetails:
    settings = settings or default_settings
    components = state.get("components")
    if not isinstance(components, dict):
        raise EnrichmentError("Detail page has no components block")

    description = dig(components, "description", "content")
    if not isinstance(description, str):
        description = ""
    return ItemDetails(
        pictures=_pictures(components, settings),
        description=description.strip() or None,
        rating=_rating(components),
        attributes=_attributes(components),
    )


class DetailEnricher:
    """Fetches item pages in sequential batches and merges their extra fields."""

    def __init__(
        self,
        transport: Transport,
        policy: RateLimitPolicy,
        timeout_ms: int,
        concurrency: int,
        settings: Settings | None = None,
    ):
        self.transport = transport
        self.policy = policy
        self.timeout_ms = timeout_ms
        self.concurrency = policy.effective_concurrency(concurrency)
        self.settings = settings or default_settings
        self.failures = 0

    async def _fetch_details(self, item: Item) -> ItemDetails:
        log.debug(f"detail -> {item.permalink}")
        html = await self.transport.fetch(item.permalink, self.timeout_ms)
        state = extract_detail_state(html)
        if state is None:
            raise EnrichmentError(f"No item state found on {item.permalink}")
        return parse_detail(state, self.settings)

    async def _enrich_one(self, item: Item) -> bool:
        try:
            details = await self._fetch_details(item)
        except Exception as e:
            log.warning(f"Detail enrichment failed for {item.id or item.permalink}: {e}")
            return False
        item.apply_details(details)
        log.debug(
            f"detail <- {item.id}: pictures={len(details.pictures or [])}, "
            f"desc={bool(details.description)}, rating={bool(details.rating)}, "
            f"attrs={len(details.attributes or [])}"
        )
        return True

    async def enrich(self, items: list[Item]) -> int:
        """Enrich items in place and return how many detail lookups failed."""
        queue = [item for item in items if item.permalink]
        if not queue:
            return 0
        log.info(
            f"Enriching {len(queue)} items (concurrency={self.concurrency}, "
            f"rate_limit={self.policy.enabled})"
        )
        failures = 0
        for start in range(0, len(queue), self.concurrency):
            if start > 0:
                await self.policy.batch_pause()
            batch = queue[start : start + self.concurrency]
            results = await asyncio.gather(*(self._enrich_one(item) for item in batch))
            failures += results.count(False)
        self.failures += failures
        return failures
