from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Sequence


class Condition(Enum):
    NEW = "new"
    USED = "used"


class SortOrder(Enum):
    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"


@dataclass
class Promotion:
    type: str | None
    text: str


@dataclass
class ReviewSummary:
    average: float
    sales: str | None


@dataclass
class Picture:
    url: str
    width: int | None
    height: int | None


@dataclass
class RatingLevel:
    stars: int
    count: int
    percentage: float


@dataclass
class Rating:
    average: float | None
    count: int | None
    levels: list[RatingLevel] = field(default_factory=list)


@dataclass
class Attribute:
    name: str
    value: str


@dataclass
class AttributeSection:
    title: str
    attributes: list[Attribute]


@dataclass
class ItemDetails:
    pictures: list[Picture] | None
    description: str | None
    rating: Rating | None
    attributes: list[AttributeSection] | None


@dataclass
class Item:
    id: str | None
    title: str
    price: float | None
    currency: str
    original_price: float | None
    discount_percent: int | None
    installments: str | None
    free_shipping: bool
    shipping: str | None
    seller: str | None
    best_seller: bool
    highlight: str | None
    promotions: list[Promotion] | None
    thumbnail: str | None
    permalink: str | None
    category_id: str | None
    is_ad: bool = False
    review: ReviewSummary | None = None
    # Filled in by the detail enricher only
    rating: Rating | None = None
    pictures: list[Picture] | None = None
    description: str | None = None
    attributes: list[AttributeSection] | None = None

    def apply_details(self, details: ItemDetails) -> None:
        """Merge detail-page data, leaving already populated fields untouched."""
        if self.pictures is None:
            self.pictures = details.pictures
        if self.description is None:
            self.description = details.description
        if self.rating is None:
            self.rating = details.rating
        if self.attributes is None:
            self.attributes = details.attributes

    def to_dict(self) -> dict[str, Any]:
        return _camelize(asdict(self))


@dataclass
class SearchOptions:
    limit: int | None = None
    condition: str | None = None
    timeout_ms: int | None = None
    sort: str | None = None
    concurrency: int | None = None
    states: str | Sequence[str] | None = None
    category: str | None = None
    strict: bool = False
    no_rate_limit: bool = False


@dataclass
class QueryDescriptor:
    text: str
    condition: str | None
    sort: str | None
    state: str | None
    states: list[str]
    category: str | None
    strict: bool
    url: str | None


@dataclass
class PaginationDescriptor:
    total: int
    offset: int
    limit: int
    results_limit: int | None
    capped: bool


@dataclass
class SearchResult:
    items: list[Item]
    query: QueryDescriptor
    pagination: PaginationDescriptor
    failed_regions: list[str] = field(default_factory=list)
    enrichment_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _camelize(asdict(self))


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value
