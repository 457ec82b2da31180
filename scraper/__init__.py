from scraper.categories import CATEGORIES, Category, CategoryTable
from scraper.errors import (
    EnrichmentError,
    ExtractionError,
    ScraperError,
    TransportError,
    ValidationError,
)
from scraper.models import Item, SearchOptions, SearchResult
from scraper.search import get_categories, search, search_raw
from scraper.transport import Transport

__all__ = [
    "CATEGORIES",
    "Category",
    "CategoryTable",
    "EnrichmentError",
    "ExtractionError",
    "Item",
    "ScraperError",
    "SearchOptions",
    "SearchResult",
    "Transport",
    "TransportError",
    "ValidationError",
    "get_categories",
    "search",
    "search_raw",
]
