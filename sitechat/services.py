"""Remote document fetchers and cache-aside loaders for tenant sites.

Fetchers (:func:`fetch_text`, :func:`fetch_json`) raise :class:`FetchError`
on any failure. Loaders wrap them in a cache-aside pattern and never raise
for upstream problems: a site that cannot be reached simply contributes no
data to the request.
"""

from __future__ import annotations

import gzip
import json
import logging
import re
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from xml.etree import ElementTree

from bs4 import BeautifulSoup  # type: ignore
from django.conf import settings

from .engine.links import is_internal
from .engine.types import Product
from .exceptions import FetchError, UnknownTenantError
from .models import Tenant
from .site_config import SiteConfig, config_url
from .store import CacheStore, cache_key

logger = logging.getLogger(__name__)

SITEMAP_TTL = 60 * 60 * 24
LLMS_TTL = 60 * 60 * 12
CONFIG_TTL = 60 * 5
PRODUCTS_TTL = 60 * 60

LLMS_MAX_CHARS_PER_BLOCK = 2000
LLMS_INDEX_MAX_CHARS = 1000

DEFAULT_FETCH_TIMEOUT = 8
USER_AGENT = 'sitechat/1.0 (+site assistant)'

_POST_SITEMAP_RE = re.compile(r'post-sitemap', re.IGNORECASE)


def _timeout(timeout: float | None) -> float:
    if timeout is not None:
        return timeout
    return float(getattr(settings, 'SITECHAT_FETCH_TIMEOUT', DEFAULT_FETCH_TIMEOUT))


def fetch_text(url: str, timeout: float | None = None) -> str:
    """Fetch ``url`` and return its decoded body.

    Gzipped payloads (``.gz`` URLs or a gzip content type) are decompressed
    transparently. Raises :class:`FetchError` for network failures and
    non-2xx responses.
    """

    request = urllib.request.Request(url, headers={'User-Agent': USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=_timeout(timeout)) as resp:
            data = resp.read()
            content_type = resp.headers.get('Content-Type', '')
            charset = resp.headers.get_content_charset() or 'utf-8'
    except urllib.error.HTTPError as exc:
        raise FetchError(url, str(exc.code)) from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise FetchError(url, str(exc)) from exc

    if url.lower().endswith('.gz') or 'gzip' in content_type:
        try:
            data = gzip.decompress(data)
        except OSError:
            pass
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return data.decode(charset, errors='replace')


def fetch_json(url: str, timeout: float | None = None) -> Any:
    text = fetch_text(url, timeout=timeout)
    try:
        return json.loads(text)
    except ValueError as exc:
        raise FetchError(url, 'invalid JSON') from exc


def sitemap_locs(xml_text: str) -> Tuple[bool, List[str]]:
    """Return ``(is_index, locs)`` for a sitemap or sitemap index document."""

    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError:
        return False, []
    is_index = root.tag.lower().endswith('sitemapindex')
    locs = [(loc.text or '').strip() for loc in root.findall('.//{*}loc')]
    return is_index, [loc for loc in locs if loc]


def parse_sitemap(
    xml_text: str,
    fetch_nested: bool = True,
    fetch: Callable[[str], str] | None = None,
) -> List[str]:
    """Parse a sitemap XML document and return a flat list of page URLs.

    A ``<sitemapindex>`` has each child sitemap fetched and parsed one level
    deep when ``fetch_nested`` is true; a child that cannot be fetched is
    skipped. Invalid documents yield an empty list.
    """

    is_index, locs = sitemap_locs(xml_text)
    if not is_index:
        return locs
    if not fetch_nested:
        return []

    fetcher = fetch or fetch_text
    urls: List[str] = []
    for child in locs:
        try:
            nested = fetcher(child)
        except FetchError as exc:
            logger.debug('Skipping child sitemap %s: %s', child, exc)
            continue
        urls.extend(parse_sitemap(nested, fetch_nested=False))
    return urls


def filter_host(urls: Sequence[str], host: str | None) -> List[str]:
    """Keep URLs on ``host`` (or a subdomain), dropping duplicates."""

    seen: set[str] = set()
    kept: List[str] = []
    for url in urls:
        if url in seen or not is_internal(url, host):
            continue
        seen.add(url)
        kept.append(url)
    return kept


def load_or_fetch(
    store: CacheStore,
    key: str,
    ttl: int,
    loader: Callable[[], Any],
    accept: Callable[[Any], bool] = bool,
) -> Optional[Any]:
    """Cache-aside read: return the cached value or load, store and return it.

    ``accept`` decides whether a cached value is usable. Returns ``None`` when
    the loader raises :class:`FetchError`.
    """

    cached = store.get(key)
    if cached is not None and accept(cached):
        return cached
    try:
        value = loader()
    except FetchError as exc:
        logger.warning('Fetch failed for %s: %s', key, exc)
        return None
    store.set(key, value, ttl)
    return value


def resolve_tenant(site_id: str) -> Tenant:
    tenant = Tenant.objects.filter(site_id=site_id, is_active=True).first()
    if tenant is None:
        raise UnknownTenantError(site_id)
    return tenant


def load_site_config(store: CacheStore, tenant: Tenant) -> SiteConfig:
    """Fetch the tenant's site configuration, falling back to conventions."""

    payload = load_or_fetch(
        store,
        cache_key(tenant.site_id, 'site:config'),
        CONFIG_TTL,
        lambda: fetch_json(config_url(tenant.base_url)),
        accept=lambda value: isinstance(value, dict),
    )
    if not isinstance(payload, dict):
        payload = None
    return SiteConfig.from_payload(
        tenant.site_id,
        tenant.base_url,
        payload,
        default_name=tenant.name,
    )


def _collect_sitemap_urls(config: SiteConfig) -> List[str]:
    try:
        index_xml = fetch_text(config.sitemap_index)
    except FetchError as exc:
        logger.info('Sitemap index unavailable for %s (%s); using fallbacks', config.site_id, exc)
        urls: List[str] = []
        for fallback in config.sitemap_fallbacks:
            try:
                urls.extend(parse_sitemap(fetch_text(fallback), fetch_nested=False))
            except FetchError:
                continue
        return filter_host(urls, config.host)
    return filter_host(parse_sitemap(index_xml), config.host)


def load_sitemap_urls(store: CacheStore, config: SiteConfig) -> List[str]:
    urls = load_or_fetch(
        store,
        cache_key(config.site_id, 'sitemap:urls'),
        SITEMAP_TTL,
        lambda: _collect_sitemap_urls(config),
        accept=lambda value: isinstance(value, list) and bool(value),
    )
    return list(urls or [])


def _collect_post_urls(config: SiteConfig) -> List[str]:
    posts: List[str] = []
    try:
        is_index, locs = sitemap_locs(fetch_text(config.sitemap_index))
    except FetchError:
        is_index, locs = False, []
    if is_index:
        for child in (loc for loc in locs if _POST_SITEMAP_RE.search(loc)):
            try:
                posts.extend(parse_sitemap(fetch_text(child), fetch_nested=False))
            except FetchError:
                continue

    if not posts:
        fallback = next(
            (url for url in config.sitemap_fallbacks if _POST_SITEMAP_RE.search(url)),
            config.base_url + '/post-sitemap.xml',
        )
        try:
            posts = parse_sitemap(fetch_text(fallback), fetch_nested=False)
        except FetchError:
            posts = []
    return filter_host(posts, config.host)


def load_post_urls(store: CacheStore, config: SiteConfig) -> List[str]:
    posts = load_or_fetch(
        store,
        cache_key(config.site_id, 'sitemap:posts'),
        SITEMAP_TTL,
        lambda: _collect_post_urls(config),
        accept=lambda value: isinstance(value, list) and bool(value),
    )
    return list(posts or [])


@dataclass(frozen=True)
class LlmsBundle:
    """Truncated LLMS text parts used as model context."""

    index: str = ''
    full: str = ''
    full_sv: str = ''

    def context_block(self) -> str:
        return (
            f'[LLMS-index]\n{self.index}\n\n'
            f'[LLMS-sammanfattning (EN)]\n{self.full}\n\n'
            f'[LLMS-språk-stil (SV)]\n{self.full_sv}'
        ).strip()


def load_llms_bundle(store: CacheStore, config: SiteConfig) -> LlmsBundle:
    parts: Dict[str, str] = {}
    for name in ('index', 'full', 'full_sv'):
        url = config.llms_urls.get(name)
        text = None
        if url:
            text = load_or_fetch(
                store,
                cache_key(config.site_id, f'llms:{name}'),
                LLMS_TTL,
                lambda url=url: fetch_text(url),
                accept=lambda value: isinstance(value, str) and bool(value),
            )
        parts[name] = text if isinstance(text, str) else ''
    return LlmsBundle(
        index=parts['index'][:LLMS_INDEX_MAX_CHARS],
        full=parts['full'][:LLMS_MAX_CHARS_PER_BLOCK],
        full_sv=parts['full_sv'][:LLMS_MAX_CHARS_PER_BLOCK],
    )


def html_to_text(html: str) -> str:
    """Return the visible text of an HTML fragment with collapsed whitespace."""

    if not html:
        return ''
    try:
        soup = BeautifulSoup(html, 'lxml')
    except Exception:
        soup = BeautifulSoup(html, 'html.parser')
    return ' '.join(soup.get_text(' ').split())


def format_minor_units(amount: Any, minor_unit: Any) -> Optional[str]:
    """Convert a Store API price in minor units (``"19900"``, 2) to ``"199.00"``."""

    if amount in (None, ''):
        return None
    try:
        digits = int(minor_unit) if minor_unit not in (None, '') else 2
        value = Decimal(str(amount)).scaleb(-digits)
    except (InvalidOperation, TypeError, ValueError):
        return None
    return f'{value:.{digits}f}'


def _name_slug_pairs(values: Any) -> Tuple[Tuple[str, str], ...]:
    pairs = []
    for value in values or []:
        if isinstance(value, dict):
            pairs.append((html_to_text(str(value.get('name') or '')), str(value.get('slug') or '')))
    return tuple(pairs)


def parse_product(raw: Any) -> Optional[Product]:
    """Normalize one WooCommerce Store API product; ``None`` if unusable."""

    if not isinstance(raw, dict):
        return None
    name = html_to_text(str(raw.get('name') or ''))
    if not name:
        return None
    prices = raw.get('prices') if isinstance(raw.get('prices'), dict) else {}
    attributes = []
    for attribute in raw.get('attributes') or []:
        if not isinstance(attribute, dict):
            continue
        terms = tuple(
            str(term.get('name') or '')
            for term in attribute.get('terms') or []
            if isinstance(term, dict) and term.get('name')
        )
        attributes.append((str(attribute.get('name') or ''), terms))

    return Product(
        id=str(raw.get('id') or ''),
        name=name,
        slug=str(raw.get('slug') or ''),
        url=str(raw.get('permalink') or ''),
        price=format_minor_units(prices.get('price'), prices.get('currency_minor_unit')),
        currency=prices.get('currency_code') or None,
        short_description=html_to_text(str(raw.get('short_description') or '')),
        categories=_name_slug_pairs(raw.get('categories')),
        tags=_name_slug_pairs(raw.get('tags')),
        attributes=tuple(attributes),
    )


def load_products(store: CacheStore, config: SiteConfig) -> List[Product]:
    payload = load_or_fetch(
        store,
        cache_key(config.site_id, 'products'),
        PRODUCTS_TTL,
        lambda: fetch_json(config.products_url),
        accept=lambda value: isinstance(value, list),
    )
    if not isinstance(payload, list):
        return []
    products = [parse_product(item) for item in payload]
    return [product for product in products if product is not None]


@dataclass(frozen=True)
class SiteDocuments:
    """Everything fetched for one request after the site config."""

    known_urls: Tuple[str, ...] = ()
    post_urls: Tuple[str, ...] = ()
    llms: LlmsBundle = field(default_factory=LlmsBundle)
    products: Tuple[Product, ...] = ()


def gather_site_documents(store: CacheStore, config: SiteConfig) -> SiteDocuments:
    """Load sitemap, posts, LLMS parts and products concurrently."""

    with ThreadPoolExecutor(max_workers=4) as executor:
        sitemap = executor.submit(load_sitemap_urls, store, config)
        posts = executor.submit(load_post_urls, store, config)
        llms = executor.submit(load_llms_bundle, store, config)
        products = executor.submit(load_products, store, config)
        return SiteDocuments(
            known_urls=tuple(sitemap.result()),
            post_urls=tuple(posts.result()),
            llms=llms.result(),
            products=tuple(products.result()),
        )
