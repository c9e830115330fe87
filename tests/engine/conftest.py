"""Shared fixtures for reply engine tests."""

from __future__ import annotations

from typing import Dict, Iterable

import pytest

from sitechat.engine.config import load_rules
from sitechat.engine.links import LinkResolver
from sitechat.engine.types import IntentSet, Product, ReplyContext

BASE_URL = "https://example.se"

PAGES: Dict[str, str] = {
    "seo": "https://example.se/seo/",
    "local_seo": "https://example.se/lokal-seo/",
    "webbdesign": "https://example.se/webbdesign/",
    "wordpress": "https://example.se/wordpress/",
    "priser": "https://example.se/priser/",
    "blogg": "https://example.se/blogg/",
}

KNOWN_URLS = frozenset(
    list(PAGES.values())
    + [
        "https://example.se/pris/",
        "https://example.se/kontakt/",
        "https://example.se/blogg/seo-tips-for-smaforetag/",
        "https://example.se/blogg/wordpress-sakerhet/",
        "https://example.se/shop/seo-paket/",
    ]
)


@pytest.fixture()
def rules():
    """Provide a fresh copy of the default rule tables."""

    return load_rules(None)


@pytest.fixture()
def link_table(rules):
    return LinkResolver.build_link_table(rules, PAGES, {})


@pytest.fixture()
def resolver(rules, link_table):
    return LinkResolver(rules, link_table, known_urls=KNOWN_URLS, host="example.se")


@pytest.fixture()
def strict_resolver(rules, link_table):
    return LinkResolver(rules, link_table, known_urls=KNOWN_URLS, host="example.se", strict=True)


def make_product(
    name: str,
    slug: str,
    *,
    url: str | None = None,
    price: str | None = "1990.00",
    currency: str | None = "SEK",
    description: str = "",
    categories: Iterable[tuple[str, str]] = (),
) -> Product:
    return Product(
        id=slug,
        name=name,
        slug=slug,
        url=url if url is not None else f"https://example.se/shop/{slug}/",
        price=price,
        currency=currency,
        short_description=description,
        categories=tuple(categories),
    )


def make_context(
    message: str,
    link_table: Dict[str, str],
    *,
    intents: IntentSet | None = None,
    post_urls: Iterable[str] = (),
    products: Iterable[Product] = (),
    pricing_url: str | None = None,
    blog_url: str | None = None,
    known_urls: Iterable[str] = KNOWN_URLS,
    strict: bool = False,
) -> ReplyContext:
    return ReplyContext(
        message=message,
        site_name="Exempelbyrån",
        base_url=BASE_URL,
        host="example.se",
        intents=intents or IntentSet(),
        link_table=dict(link_table),
        known_urls=frozenset(known_urls),
        post_urls=tuple(post_urls),
        products=tuple(products),
        pricing_url=pricing_url,
        blog_url=blog_url,
        strict=strict,
    )
