import asyncio
from dataclasses import dataclass

from config import Settings, settings as default_settings


@dataclass(frozen=True)
class RateLimitPolicy:
    page_delay_ms: int = 200
    detail_delay_ms: int = 100
    max_concurrency: int = 3
    enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings | None = None, enabled: bool = True) -> "RateLimitPolicy":
        settings = settings or default_settings
        return cls(
            page_delay_ms=settings.page_delay_ms,
            detail_delay_ms=settings.detail_delay_ms,
            max_concurrency=settings.rate_limit_concurrency,
            enabled=enabled,
        )

    def effective_concurrency(self, requested: int) -> int:
        requested = max(1, requested)
        return min(requested, self.max_concurrency) if self.enabled else requested

    async def page_pause(self) -> None:
        if self.enabled and self.page_delay_ms:
            await asyncio.sleep(self.page_delay_ms / 1000)

    async def batch_pause(self) -> None:
        if self.enabled and self.detail_delay_ms:
            await asyncio.sleep(self.detail_delay_ms / 1000)
