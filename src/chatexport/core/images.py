"""Inline remote images as data URIs so exports are self-contained."""

from __future__ import annotations

import base64
import logging

import httpx
from bs4 import BeautifulSoup

from chatexport.core.cache import BoundedCache

log = logging.getLogger(__name__)


def image_to_data_uri(
    url: str,
    cache: BoundedCache[str, str],
    client: httpx.Client,
) -> str:
    """Fetch an image and return it as a base64 data URI.

    Returns the original URL when the fetch fails; failures are not cached.
    """
    if not url or url.startswith("data:"):
        return url
    cached = cache.get(url)
    if cached is not None:
        return cached

    try:
        resp = client.get(url, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        log.debug("Image fetch failed for %s: %s", url, e)
        return url

    mime = resp.headers.get("content-type", "application/octet-stream").split(";")[0].strip()
    encoded = base64.b64encode(resp.content).decode("ascii")
    data_uri = f"data:{mime};base64,{encoded}"
    cache.put(url, data_uri)
    return data_uri


def inline_images(
    html: str,
    cache: BoundedCache[str, str],
    client: httpx.Client | None = None,
) -> str:
    """Rewrite every <img src> in an HTML fragment to a data URI."""
    soup = BeautifulSoup(html or "", "html.parser")
    images = [img for img in soup.find_all("img") if img.get("src")]
    if not images:
        return html or ""

    own_client = client is None
    client = client or httpx.Client(timeout=15.0)
    try:
        for img in images:
            img["src"] = image_to_data_uri(img["src"], cache, client)
    finally:
        if own_client:
            client.close()
    return str(soup)
