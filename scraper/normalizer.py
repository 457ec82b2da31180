import logging
import re
from typing import Any

from config import Settings, settings as default_settings
from scraper.extractor import dig
from scraper.models import Item, Promotion, ReviewSummary

log = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\s*\{[^}]+\}\s*")
DISCOUNT_RE = re.compile(r"(\d{1,3})\s*%")
FREE_SHIPPING_RE = re.compile(r"gr[aá]tis", re.IGNORECASE)
BEST_SELLER_RE = re.compile(r"mais\s+vendido|m[aá]s\s+vendido|best\s*seller", re.IGNORECASE)
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
LEADING_FLOAT_RE = re.compile(r"^\s*(\d+(?:[.,]\d+)?)")


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _parse_cents(raw: Any) -> int | None:
    if isinstance(raw, bool) or raw is None or raw == "":
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    match = LEADING_INT_RE.match(str(raw))
    return int(match.group(1)) if match else None


def extract_price(price_obj: dict | None) -> float:
    """Combine a whole-unit ``value`` with its ``cents``/``fraction`` part.

    ``{"value": 1999, "cents": 90}`` becomes ``1999.9``. The fractional part is
    only added when ``value`` is a whole number; missing data yields ``0``.
    """
    if not isinstance(price_obj, dict):
        return 0.0
    price = _to_number(price_obj.get("value")) or 0
    raw = price_obj.get("cents")
    if raw is None:
        raw = price_obj.get("fraction")
    cents = _parse_cents(raw)
    if cents is not None and float(price).is_integer():
        price = price + cents / 100
    return round(price, 2)


def _strip_placeholders(text: str, replacement: str) -> str:
    return PLACEHOLDER_RE.sub(replacement, text).strip()


def _installments_text(installments: Any) -> str | None:
    text = dig(installments, "text")
    if not isinstance(text, str) or not text:
        return None
    for value in dig(installments, "values", default=[]):
        amount = dig(value, "price", "value")
        if dig(value, "type") == "price" and amount:
            currency = dig(value, "price", "currency", default="")
            text = text.replace(f"{{{value.get('key')}}}", f"{currency} {amount}", 1)
    return _strip_placeholders(text, " ")


def _promotions(raw: Any) -> list[Promotion] | None:
    if not isinstance(raw, list):
        return None
    promos = []
    for promo in raw:
        if not isinstance(promo, dict):
            continue
        text = _text(promo.get("text"))
        for value in promo.get("values") or []:
            text = text.replace(f"{{{dig(value, 'key', default='')}}}", "", 1).strip()
        promos.append(Promotion(type=promo.get("type"), text=text))
    return promos or None


def _review_summary(review: dict) -> ReviewSummary | None:
    average = None
    sales = None
    for value in review.get("values") or []:
        label = dig(value, "label", "text")
        if not isinstance(label, str):
            continue
        if dig(value, "key") == "label":
            match = LEADING_FLOAT_RE.match(label)
            average = float(match.group(1).replace(",", ".")) if match else None
        elif dig(value, "key") == "label2":
            sales = re.sub(r"^\|\s*", "", label).strip() or None
    return ReviewSummary(average=average, sales=sales) if average else None


def _discount_percent(label: str, price: float, original_price: float | None) -> int | None:
    match = DISCOUNT_RE.search(label)
    if match:
        return int(match.group(1))
    if original_price and original_price > price:
        return round((original_price - price) / original_price * 100)
    return None


def _permalink(meta: dict, settings: Settings) -> str | None:
    url = meta.get("url")
    if isinstance(url, str) and url:
        return url if url.startswith("http") else f"https://{url}"
    item_id = meta.get("id")
    if isinstance(item_id, str) and item_id:
        numeric = re.sub(r"^MLB", "", item_id)
        return f"https://{settings.product_domain}/MLB-{numeric}"
    return None


def parse_polycard(
    result: dict,
    best_seller_ids: set[str] | None = None,
    settings: Settings | None = None,
) -> Item | None:
    """Normalise one raw ``results[]`` entry. Ads and untitled entries yield ``None``."""
    settings = settings or default_settings
    card = dig(result, "polycard")
    if not isinstance(card, dict):
        return None

    meta = card.get("metadata")
    if not isinstance(meta, dict):
        meta = {}
    if meta.get("is_pad") in ("true", True):
        return None

    components = {}
    for component in card.get("components") or []:
        kind = component.get("type") if isinstance(component, dict) else None
        if isinstance(kind, str) and kind not in components:
            components[kind] = component

    def comp(kind: str, *keys: str) -> Any:
        return dig(components.get(kind), kind, *keys)

    title = comp("title", "text")
    if not isinstance(title, str) or not title:
        return None

    price_comp = comp("price")
    if not isinstance(price_comp, dict):
        price_comp = {}
    price = extract_price(price_comp.get("current_price"))
    currency = dig(price_comp, "current_price", "currency", default="BRL")
    original_price = None
    if dig(price_comp, "previous_price", "value") is not None:
        original_price = extract_price(price_comp["previous_price"])
    discount_label = _text(dig(price_comp, "discount_label", "text"))

    shipping_text = _text(comp("shipping", "text"))
    seller = _strip_placeholders(_text(comp("seller", "text")), "") or None
    highlight = _strip_placeholders(_text(comp("highlight", "text")), " ") or None

    item_id = meta.get("id") if isinstance(meta.get("id"), str) and meta.get("id") else None
    best_seller = bool(highlight and BEST_SELLER_RE.search(highlight)) or (
        item_id in (best_seller_ids or set())
    )

    picture_id = dig(card, "pictures", "pictures", 0, "id")
    thumbnail = f"{settings.image_cdn}/D_{picture_id}-O.jpg" if picture_id else None

    review = comp("review_compacted")

    return Item(
        id=item_id,
        title=title,
        price=price,
        currency=currency,
        original_price=original_price,
        discount_percent=_discount_percent(discount_label, price, original_price),
        installments=_installments_text(price_comp.get("installments")),
        free_shipping=bool(FREE_SHIPPING_RE.search(shipping_text)),
        shipping=shipping_text or None,
        seller=seller,
        best_seller=best_seller,
        highlight=highlight,
        promotions=_promotions(comp("promotions")),
        thumbnail=thumbnail,
        permalink=_permalink(meta, settings),
        category_id=meta.get("category_id") or None,
        review=_review_summary(review) if isinstance(review, dict) else None,
    )


def parse_results(
    state: dict,
    best_seller_ids: set[str] | None = None,
    settings: Settings | None = None,
) -> list[Item]:
    items = []
    for result in state.get("results") or []:
        item = parse_polycard(result, best_seller_ids, settings)
        if item:
            items.append(item)
    log.debug(f"Normalised {len(items)} of {len(state.get('results') or [])} results")
    return items
