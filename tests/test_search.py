import asyncio

import pytest

from fakes import FakeTransport, listing_page, polycard, wrap_html
from scraper import (
    CATEGORIES,
    Category,
    CategoryTable,
    ExtractionError,
    SearchOptions,
    ValidationError,
    get_categories,
    search,
    search_raw,
)
from scraper.regions import parse_states
from scraper.urls import build_url

BASE = "https://lista.mercadolivre.com.br"


def cards(start, count, title="Celular Samsung Galaxy S22"):
    return [polycard(f"MLB{n}", f"{title} {n}", 1000 + n) for n in range(start, start + count)]


def run_search(query, options, transport, settings):
    return asyncio.run(search(query, options, transport=transport, settings=settings))


class TestSearch:
    def test_two_page_scenario(self, fast_settings):
        transport = FakeTransport(
            {
                f"{BASE}/celular": wrap_html(listing_page(cards(0, 15), f"{BASE}/celular_Desde_51")),
                f"{BASE}/celular_Desde_51": wrap_html(listing_page(cards(10, 10))),
            }
        )
        result = run_search("celular", SearchOptions(limit=20, no_rate_limit=True), transport, fast_settings)

        ids = [item.id for item in result.items]
        assert len(ids) == 20
        assert len(set(ids)) == 20
        assert result.pagination.capped is True
        assert result.pagination.limit == 20
        assert result.pagination.total == 20
        assert result.query.url == f"{BASE}/celular"
        assert result.query.state is None
        # detail pages are unknown to the fake transport, so enrichment degrades
        assert result.enrichment_failures == 20
        assert all(item.description is None for item in result.items)

    def test_condition_and_category_conflict_before_network(self, fast_settings):
        transport = FakeTransport()
        options = SearchOptions(condition="new", category="MLB1648")
        with pytest.raises(ValidationError):
            run_search("notebook", options, transport, fast_settings)
        assert transport.calls == []

    @pytest.mark.parametrize(
        "options",
        [
            SearchOptions(states="sp,xx"),
            SearchOptions(category="nao-existe"),
            SearchOptions(condition="refurbished"),
            SearchOptions(sort="cheapest"),
            SearchOptions(limit=0),
        ],
    )
    def test_invalid_options(self, options, fast_settings):
        transport = FakeTransport()
        with pytest.raises(ValidationError):
            run_search("notebook", options, transport, fast_settings)
        assert transport.calls == []

    def test_first_page_failure(self, fast_settings):
        transport = FakeTransport({f"{BASE}/celular": "<html></html>"})
        with pytest.raises(ExtractionError):
            run_search("celular", SearchOptions(no_rate_limit=True), transport, fast_settings)

    def test_sort_and_truncate(self, fast_settings):
        transport = FakeTransport(
            {f"{BASE}/celular_OrderId_PRICE*DESC": wrap_html(listing_page(cards(0, 8)))}
        )
        options = SearchOptions(limit=3, sort="price_desc", no_rate_limit=True)
        result = run_search("celular", options, transport, fast_settings)
        assert [item.id for item in result.items] == ["MLB7", "MLB6", "MLB5"]
        # only the surviving items are enriched
        assert len(transport.calls) == 1 + 3

    def test_enrichment_merges_details(self, fast_settings):
        page = listing_page([polycard("MLB1", "Notebook", 3500)])
        detail = {"components": {"description": {"content": "16GB RAM"}}}
        transport = FakeTransport(
            {
                f"{BASE}/notebook": wrap_html(page),
                "https://produto.mercadolivre.com.br/MLB-1": wrap_html(detail),
            }
        )
        result = run_search("notebook", SearchOptions(no_rate_limit=True), transport, fast_settings)
        assert result.items[0].description == "16GB RAM"
        assert result.enrichment_failures == 0

    def test_strict_mode_uses_enriched_text(self, fast_settings):
        page = listing_page(
            [
                polycard("MLB1", "Smartphone Samsung Galaxy S22 128GB"),
                polycard("MLB2", "Capa Samsung Galaxy A22"),
                polycard("MLB3", "Smartphone Galaxy"),
            ]
        )
        detail = {"components": {"description": {"content": "Samsung S22 original"}}}
        transport = FakeTransport(
            {
                f"{BASE}/samsung-galaxy-s22": wrap_html(page),
                "https://produto.mercadolivre.com.br/MLB-3": wrap_html(detail),
            }
        )
        options = SearchOptions(strict=True, no_rate_limit=True)
        result = run_search("samsung galaxy s22", options, transport, fast_settings)
        assert [item.id for item in result.items] == ["MLB1", "MLB3"]
        assert result.query.strict is True
        detail_calls = [url for url in transport.calls if "produto" in url]
        assert sorted(detail_calls) == sorted(set(detail_calls))

    def test_injected_transport_is_left_open(self, fast_settings):
        transport = FakeTransport({f"{BASE}/celular": wrap_html(listing_page(cards(0, 1)))})
        run_search("celular", SearchOptions(no_rate_limit=True), transport, fast_settings)
        assert transport.closed is False


class TestMultiRegionSearch:
    def test_merges_regions_round_robin(self, fast_settings):
        transport = FakeTransport(
            {
                f"{BASE}/tv_Estado_SP": wrap_html(listing_page(cards(0, 3, "TV"), results_limit=300)),
                f"{BASE}/tv_Estado_RJ": wrap_html(listing_page(cards(2, 3, "TV"), results_limit=200)),
            }
        )
        options = SearchOptions(limit=4, states="sp, rj", no_rate_limit=True)
        result = run_search("tv", options, transport, fast_settings)

        assert [item.id for item in result.items] == ["MLB0", "MLB2", "MLB1", "MLB3"]
        assert result.pagination.total == 500
        assert result.pagination.results_limit is None
        assert result.pagination.capped is True
        assert result.query.states == ["sp", "rj"]
        assert result.query.url == f"{BASE}/tv_Estado_SP"
        assert result.failed_regions == []

    def test_failed_region_is_not_fatal(self, fast_settings):
        transport = FakeTransport(
            {f"{BASE}/tv_Estado_MG": wrap_html(listing_page(cards(0, 2, "TV"), results_limit=50))}
        )
        options = SearchOptions(limit=10, states=["sp", "mg"], no_rate_limit=True)
        result = run_search("tv", options, transport, fast_settings)
        assert [item.id for item in result.items] == ["MLB0", "MLB1"]
        assert result.failed_regions == ["sp"]
        assert result.pagination.capped is False

    def test_strict_over_fetches_per_region(self, fast_settings):
        transport = FakeTransport(
            {
                f"{BASE}/tv_Estado_SP": wrap_html(listing_page(cards(0, 10, "TV"))),
                f"{BASE}/tv_Estado_RJ": wrap_html(listing_page(cards(20, 10, "TV"))),
            }
        )
        options = SearchOptions(limit=2, states="sp,rj", strict=True, sort="price_desc", no_rate_limit=True)
        result = run_search("tv", options, transport, fast_settings)
        # each region contributes up to limit * strict_multiplier items before sorting
        assert [item.id for item in result.items] == ["MLB25", "MLB24"]

    def test_strict_filters_merged_items(self, fast_settings):
        transport = FakeTransport(
            {
                f"{BASE}/smart-tv_Estado_SP": wrap_html(
                    listing_page([polycard("MLB1", "Smart TV 55", 3000), polycard("MLB2", "Suporte TV", 5000)])
                ),
                f"{BASE}/smart-tv_Estado_RJ": wrap_html(
                    listing_page([polycard("MLB3", "Smart TV 43", 2000), polycard("MLB4", "Controle Smart", 4000)])
                ),
            }
        )
        options = SearchOptions(limit=2, states="sp,rj", strict=True, sort="price_desc", no_rate_limit=True)
        result = run_search("smart tv", options, transport, fast_settings)

        # the pricier accessories miss a token and are dropped before sorting
        assert [item.id for item in result.items] == ["MLB1", "MLB3"]
        detail_calls = [url for url in transport.calls if "produto" in url]
        assert len(detail_calls) == len(set(detail_calls)) == 4
        assert result.enrichment_failures == 4


class TestSearchRaw:
    def test_returns_payload(self, fast_settings):
        page = listing_page(cards(0, 2))
        transport = FakeTransport({f"{BASE}/celular_Usado": wrap_html(page)})
        raw = asyncio.run(
            search_raw("celular", SearchOptions(condition="used"), transport=transport, settings=fast_settings)
        )
        assert raw == page

    def test_validation(self, fast_settings):
        transport = FakeTransport()
        with pytest.raises(ValidationError):
            asyncio.run(
                search_raw(
                    "x",
                    SearchOptions(condition="new", category="informatica"),
                    transport=transport,
                    settings=fast_settings,
                )
            )
        assert transport.calls == []

    def test_extraction_error(self, fast_settings):
        transport = FakeTransport({f"{BASE}/x": "<html>captcha</html>"})
        with pytest.raises(ExtractionError):
            asyncio.run(search_raw("x", transport=transport, settings=fast_settings))


class TestReferenceData:
    def test_get_categories(self):
        categories = get_categories()
        assert len(categories) == len(CATEGORIES)
        assert Category("MLB1648", "informatica", "Informática") in categories

    def test_resolve_by_id_and_path(self):
        assert CATEGORIES.resolve("mlb1648").path == "informatica"
        assert CATEGORIES.resolve("celulares-smartphones").id == "MLB1055"
        with pytest.raises(ValidationError, match="Valid categories"):
            CATEGORIES.resolve("unknown")

    def test_substitute_table(self, fast_settings):
        table = CategoryTable([Category("MLB9", "brinquedos/lego", "Lego")])
        transport = FakeTransport(
            {f"{BASE}/brinquedos/lego/castelo_NoIndex_True": wrap_html(listing_page(cards(0, 1)))}
        )
        result = asyncio.run(
            search(
                "castelo",
                SearchOptions(category="lego", no_rate_limit=True),
                transport=transport,
                categories=table,
                settings=fast_settings,
            )
        )
        assert result.query.category == "MLB9"
        assert get_categories(table) == [Category("MLB9", "brinquedos/lego", "Lego")]

    def test_parse_states(self):
        assert parse_states(" SP,rj ,") == ["sp", "rj"]
        assert parse_states(None) == []
        with pytest.raises(ValidationError):
            parse_states(["zz"])


class TestBuildUrl:
    def test_segments_in_order(self):
        url = build_url("placa de vídeo", "lista.example", condition="new", sort="price_asc", state="sp", offset=50)
        assert url == "https://lista.example/placa-de-v%C3%ADdeo_Novo_Estado_SP_OrderId_PRICE_Desde_51"

    def test_category_replaces_condition(self):
        url = build_url("mouse", "lista.example", condition="used", category_path="informatica")
        assert url == "https://lista.example/informatica/mouse_NoIndex_True"


class TestSerialization:
    def test_to_dict_uses_camel_case(self, fast_settings):
        transport = FakeTransport({f"{BASE}/celular": wrap_html(listing_page(cards(0, 1)))})
        result = run_search("celular", SearchOptions(no_rate_limit=True), transport, fast_settings)
        data = result.to_dict()
        assert set(data) == {"items", "query", "pagination", "failedRegions", "enrichmentFailures"}
        assert "resultsLimit" in data["pagination"]
        item = data["items"][0]
        assert {"originalPrice", "discountPercent", "freeShipping", "bestSeller", "isAd", "categoryId"} <= set(item)
