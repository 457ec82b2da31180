import math
import re
import unicodedata

from scraper.models import Item

STOP_WORDS = frozenset(
    {
        "de", "da", "do", "das", "dos", "e", "ou", "em", "com", "para", "por", "um", "uma",
        "o", "a", "os", "as", "no", "na", "nos", "nas",
        "the", "and", "or", "for", "in", "of", "to", "with",
    }
)

PUNCTUATION_RE = re.compile(r"[^\w\s]", re.ASCII)
WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, drop accents and punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return WHITESPACE_RE.sub(" ", PUNCTUATION_RE.sub(" ", stripped)).strip()


def tokenize(query: str) -> list[str]:
    return [t for t in normalize_text(query).split(" ") if len(t) > 1 and t not in STOP_WORDS]


def item_corpus(item: Item) -> str:
    parts = [normalize_text(item.title or "")]
    if item.description:
        parts.append(normalize_text(item.description))
    for section in item.attributes or []:
        for attr in section.attributes:
            parts.append(normalize_text(attr.value or ""))
    return " ".join(parts)


def matches(item: Item, tokens: list[str]) -> bool:
    if not tokens:
        return True
    corpus = item_corpus(item)
    return all(token in corpus for token in tokens)


def filter_items(items: list[Item], tokens: list[str]) -> list[Item]:
    return [item for item in items if matches(item, tokens)]


def sort_items(items: list[Item], sort: str | None) -> list[Item]:
    """Order by price; items without a price go last in either direction."""
    if sort == "price_asc":
        return sorted(items, key=lambda i: math.inf if i.price is None else i.price)
    if sort == "price_desc":
        priced = sorted((i for i in items if i.price is not None), key=lambda i: i.price, reverse=True)
        return priced + [i for i in items if i.price is None]
    return list(items)


def finalize(items: list[Item], sort: str | None, limit: int) -> list[Item]:
    return sort_items(items, sort)[:limit]
