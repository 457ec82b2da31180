from urllib.parse import quote

CONDITION_SUFFIXES = {"new": "_Novo", "used": "_Usado"}
SORT_SUFFIXES = {"price_asc": "_OrderId_PRICE", "price_desc": "_OrderId_PRICE*DESC"}


def slugify_query(query: str) -> str:
    return quote(query, safe="-_.!~*'()").replace("%20", "-")


def build_url(
    query: str,
    domain: str,
    condition: str | None = None,
    sort: str | None = None,
    state: str | None = None,
    category_path: str | None = None,
    offset: int = 0,
) -> str:
    """Build a listing URL.

    Segments are appended in a fixed order: condition, state, sort, offset.
    A category path replaces the condition segment and moves the slug under it.
    """
    slug = slugify_query(query)
    state_param = f"_Estado_{state.upper()}" if state else ""
    sort_param = SORT_SUFFIXES.get(sort or "", "")
    from_param = f"_Desde_{offset + 1}" if offset > 0 else ""

    if category_path:
        return f"https://{domain}/{category_path}/{slug}{state_param}{sort_param}{from_param}_NoIndex_True"

    condition_param = CONDITION_SUFFIXES.get(condition or "", "")
    return f"https://{domain}/{slug}{condition_param}{state_param}{sort_param}{from_param}"
