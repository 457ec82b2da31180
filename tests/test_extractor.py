import json

from fakes import listing_page, polycard, wrap_html
from scraper.extractor import (
    dig,
    extract_best_seller_ids,
    extract_detail_state,
    extract_state,
    looks_blocked,
)


class TestExtractState:
    def test_extracts_embedded_payload(self):
        page = listing_page([polycard("MLB1", "Notebook")])
        assert extract_state(wrap_html(page)) == page

    def test_skips_irrelevant_blocks_before_true_marker(self):
        page = listing_page([polycard("MLB1", "Notebook"), polycard("MLB2", "Mouse")])
        true_block = '"initialState":' + json.dumps(page)
        noise = [
            '<script>{"config": {"nested": {"deep": [1, 2, {"x": 3}]}}}</script>',
            '"initialState":{"results": []}',
            '"initialState":{not valid json}',
            '"initialState":{"results": "not-a-list"}',
            '"initialState":{"other": {"results": [1]}}',
        ]
        for n in range(len(noise) + 1):
            html = "<html>" + "".join(noise[:n]) + "<div>" + true_block + "</div></html>"
            assert extract_state(html) == extract_state(true_block) == page

    def test_returns_none_without_marker(self):
        assert extract_state("<html><body>nada aqui</body></html>") is None

    def test_returns_none_for_unbalanced_block(self):
        assert extract_state('"initialState":{"results": [{"a": 1}]') is None

    def test_returns_none_when_results_empty(self):
        assert extract_state(wrap_html({"results": []})) is None

    def test_ignores_brace_free_text_before_marker(self):
        page = listing_page([polycard("MLB9", "Teclado")])
        html = "garbage } } { text " + wrap_html(page)
        assert extract_state(html) == page


class TestExtractDetailState:
    def test_accepts_components_object(self):
        detail = {"components": {"description": {"content": "Bom"}}}
        assert extract_detail_state(wrap_html(detail)) == detail

    def test_skips_listing_shaped_blocks(self):
        listing = listing_page([polycard("MLB1")])
        detail = {"components": {"gallery": {"pictures": []}}}
        html = wrap_html(listing) + wrap_html(detail)
        assert extract_detail_state(html) == detail

    def test_none_when_no_components(self):
        assert extract_detail_state(wrap_html({"components": []})) is None


class TestHelpers:
    def test_best_seller_ids(self):
        page = listing_page([polycard("MLB1")], best_sellers=["MLB1", 42, "MLB7"])
        assert extract_best_seller_ids(page) == {"MLB1", "MLB7"}

    def test_best_seller_ids_missing_tracking(self):
        assert extract_best_seller_ids({"results": []}) == set()
        assert extract_best_seller_ids({"melidata_track": None}) == set()

    def test_dig(self):
        data = {"a": {"b": [{"c": 1}, None]}}
        assert dig(data, "a", "b", 0, "c") == 1
        assert dig(data, "a", "b", 1, default="x") == "x"
        assert dig(data, "a", "missing", default=5) == 5
        assert dig(data, "a", "b", 7) is None
        assert dig("text", "a") is None

    def test_looks_blocked(self):
        assert looks_blocked("<form id='px-CAPTCHA'></form>")
        assert not looks_blocked(wrap_html(listing_page([polycard("MLB1")])))
