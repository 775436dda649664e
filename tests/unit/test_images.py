"""Tests for chatexport.core.images — data URI inlining."""

from unittest.mock import MagicMock

import httpx

from chatexport.core.cache import BoundedCache
from chatexport.core.images import image_to_data_uri, inline_images


def _client(content: bytes = b"abc", content_type: str = "image/png") -> MagicMock:
    resp = MagicMock()
    resp.content = content
    resp.headers = {"content-type": content_type}
    resp.raise_for_status.return_value = None
    client = MagicMock()
    client.get.return_value = resp
    return client


class TestImageToDataUri:
    def test_fetch_and_encode(self):
        cache = BoundedCache(10)
        uri = image_to_data_uri("https://x/a.png", cache, _client())
        assert uri == "data:image/png;base64,YWJj"
        assert cache.get("https://x/a.png") == uri

    def test_cached_result_skips_fetch(self):
        cache = BoundedCache(10)
        cache.put("https://x/a.png", "data:image/png;base64,AA==")
        client = _client()
        assert image_to_data_uri("https://x/a.png", cache, client) == "data:image/png;base64,AA=="
        client.get.assert_not_called()

    def test_data_uri_untouched(self):
        client = _client()
        assert image_to_data_uri("data:image/gif;base64,R0", BoundedCache(1), client) == "data:image/gif;base64,R0"
        client.get.assert_not_called()

    def test_failure_returns_url_and_is_not_cached(self):
        cache = BoundedCache(10)
        client = MagicMock()
        client.get.side_effect = httpx.ConnectError("boom")
        assert image_to_data_uri("https://x/a.png", cache, client) == "https://x/a.png"
        assert "https://x/a.png" not in cache

    def test_content_type_parameters_dropped(self):
        uri = image_to_data_uri("https://x/a.jpg", BoundedCache(1), _client(b"abc", "image/jpeg; q=1"))
        assert uri.startswith("data:image/jpeg;base64,")


class TestInlineImages:
    def test_rewrites_img_src(self):
        html = '<p>See <img src="https://x/a.png"></p>'
        out = inline_images(html, BoundedCache(10), _client())
        assert 'src="data:image/png;base64,YWJj"' in out
        assert "See" in out

    def test_no_images_returns_input(self):
        client = _client()
        assert inline_images("<p>text</p>", BoundedCache(1), client) == "<p>text</p>"
        client.get.assert_not_called()
