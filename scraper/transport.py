import asyncio
import logging
import math
from abc import ABC, abstractmethod

import httpx
from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from config import Settings, settings as default_settings
from scraper.errors import TransportError

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "Accept-Encoding": "gzip, deflate",
    "Sec-Ch-Ua": '"Chromium";v="131", "Not_A Brand";v="24", "Google Chrome";v="131"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


class FetchStrategy(ABC):
    name = "strategy"

    @abstractmethod
    async def fetch(self, url: str, timeout_ms: int) -> str:
        pass

    async def aclose(self) -> None:
        pass


class HttpxStrategy(FetchStrategy):
    name = "httpx"

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if not self._client:
            self._client = httpx.AsyncClient(headers=BROWSER_HEADERS, follow_redirects=True)
        return self._client

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, timeout_ms: int) -> str:
        client = self._get_client()
        log.debug(f"httpx -> {url} (timeout: {timeout_ms}ms)")
        # httpx timeouts apply per phase, so a trickling body needs an overall deadline
        try:
            resp = await asyncio.wait_for(
                client.get(url, headers=BROWSER_HEADERS, timeout=timeout_ms / 1000),
                timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request exceeded {timeout_ms}ms", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}", url=url) from e

        log.debug(f"httpx <- {resp.status_code} (content-type: {resp.headers.get('content-type')})")
        if not resp.is_success:
            raise TransportError(
                f"HTTP {resp.status_code} {resp.reason_phrase}", url=url, status_code=resp.status_code
            )
        body = resp.text
        log.debug(f"httpx body: {len(body)} bytes")
        return body


class CurlStrategy(FetchStrategy):
    """Runs the curl binary as a subprocess with the same browser headers."""

    name = "curl"

    def __init__(self, binary: str = "curl"):
        self.binary = binary

    def build_args(self, url: str, timeout_ms: int) -> list[str]:
        timeout_s = max(1, math.ceil(timeout_ms / 1000))
        args = ["-sS", "-L", "--max-time", str(timeout_s), "--compressed", "-w", "\n%{http_code}"]
        for key, value in BROWSER_HEADERS.items():
            args += ["-H", f"{key}: {value}"]
        args.append(url)
        return args

    async def fetch(self, url: str, timeout_ms: int) -> str:
        log.debug(f"curl -> {url}")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *self.build_args(url, timeout_ms),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(f"Could not run {self.binary}: {e}", url=url) from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise TransportError(f"curl exited with {proc.returncode}: {message}", url=url)

        output = stdout.decode("utf-8", errors="replace")
        body, _, status_line = output.rpartition("\n")
        try:
            status_code = int(status_line.strip())
        except ValueError as e:
            raise TransportError(f"curl returned no status code: {status_line!r}", url=url) from e

        log.debug(f"curl <- {status_code} ({len(body)} bytes)")
        if status_code >= 400:
            raise TransportError(f"HTTP {status_code}", url=url, status_code=status_code)
        return body


class BrowserStrategy(FetchStrategy):
    """Headless chromium, launched on first use and kept for the transport's lifetime."""

    name = "browser"

    def __init__(self):
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        if self._browser:
            return self._browser

        async with self._lock:
            if self._browser:
                return self._browser
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=[
                    "--disable-blink-features=AutomationControlled",
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                ],
            )
            log.info("Headless browser started")
            return self._browser

    async def aclose(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def fetch(self, url: str, timeout_ms: int) -> str:
        try:
            return await self._render(url, timeout_ms)
        except PlaywrightError as e:
            raise TransportError(f"Browser fetch failed: {e}", url=url) from e

    async def _render(self, url: str, timeout_ms: int) -> str:
        browser = await self._ensure_browser()
        headers = {k: v for k, v in BROWSER_HEADERS.items() if k != "User-Agent"}
        context = await browser.new_context(
            user_agent=USER_AGENT,
            locale="pt-BR",
            extra_http_headers=headers,
        )
        try:
            page = await context.new_page()
            log.debug(f"browser -> {url}")
            resp = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            if resp is not None and resp.status >= 400:
                raise TransportError(f"HTTP {resp.status}", url=url, status_code=resp.status)
            return await page.content()
        finally:
            await context.close()


class Transport:
    """Tries each fetch strategy in order until one returns a body."""

    def __init__(self, strategies: list[FetchStrategy]):
        if not strategies:
            raise ValueError("Transport needs at least one fetch strategy")
        self.strategies = strategies

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Transport":
        settings = settings or default_settings
        strategies: list[FetchStrategy] = [HttpxStrategy()]
        if settings.curl_fallback:
            strategies.append(CurlStrategy(settings.curl_binary))
        if settings.browser_fallback:
            strategies.append(BrowserStrategy())
        return cls(strategies)

    async def fetch(self, url: str, timeout_ms: int) -> str:
        *fallbacks, last = self.strategies
        for strategy in fallbacks:
            try:
                return await strategy.fetch(url, timeout_ms)
            except TransportError as e:
                log.warning(f"{strategy.name} failed for {url}, falling back: {e}")
        return await last.fetch(url, timeout_ms)

    async def aclose(self) -> None:
        for strategy in self.strategies:
            await strategy.aclose()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
