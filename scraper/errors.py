class ScraperError(Exception):
    """Base class for every failure raised by the search pipeline."""


class ValidationError(ScraperError):
    """Invalid or conflicting options. Raised before any request is made."""


class TransportError(ScraperError):
    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ExtractionError(ScraperError):
    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class EnrichmentError(ScraperError):
    """Detail page could not be fetched or parsed. Never surfaced to callers."""
