"""Parsed form of a tenant's remote site-configuration document.

The WordPress plugin behind ``/wp-json/wbs-ai/v1/config`` returns a JSON
object in which every field is optional. :class:`SiteConfig` applies the
default path conventions once so that the rest of the request only deals
with concrete URLs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

from .engine.config import RuleConfig
from .engine.links import LinkResolver, normalize_host
from .engine.leads import build_lead_magnets
from .engine.types import LeadMagnet

CONFIG_PATH = '/wp-json/wbs-ai/v1/config'
LLMS_PATHS = {
    'index': '/wp-json/wbs-ai/v1/llms',
    'full': '/wp-json/wbs-ai/v1/llms-full',
    'full_sv': '/wp-json/wbs-ai/v1/llms-full-sv',
}
SITEMAP_INDEX_PATH = '/sitemap_index.xml'
SITEMAP_FALLBACK_PATHS = ('/post-sitemap.xml', '/page-sitemap.xml')
PRODUCTS_PATH = '/wp-json/wc/store/v1/products?per_page=100'
PRIVACY_PATH = '/integritetspolicy/'


def config_url(base_url: str) -> str:
    return base_url.rstrip('/') + CONFIG_PATH


def _mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True)
class SiteConfig:
    """Concrete per-request view of a tenant's site configuration."""

    site_id: str
    name: str
    base_url: str
    host: Optional[str]
    pages: Dict[str, Any] = field(default_factory=dict)
    links: Dict[str, Any] = field(default_factory=dict)
    llms_urls: Dict[str, str] = field(default_factory=dict)
    sitemap_index: str = ''
    sitemap_fallbacks: Tuple[str, ...] = ()
    products_url: str = ''
    privacy_url: str = ''
    raw_lead_magnets: Tuple[Any, ...] = ()

    @classmethod
    def from_payload(
        cls,
        site_id: str,
        base_url: str,
        payload: Mapping[str, Any] | None,
        *,
        default_name: str = '',
    ) -> 'SiteConfig':
        """Build a config from the remote document, filling every gap."""

        data = _mapping(payload)
        site = _mapping(data.get('site'))
        resolved_base = (_text(site.get('base_url')) or base_url).rstrip('/')
        name = _text(site.get('name')) or default_name

        llms = _mapping(data.get('llms'))
        llms_urls = {
            key: _text(llms.get(key)) or resolved_base + path
            for key, path in LLMS_PATHS.items()
        }

        sitemap = _mapping(data.get('sitemap'))
        fallbacks = [url for url in (sitemap.get('fallbacks') or []) if _text(url)]
        if not fallbacks:
            fallbacks = [resolved_base + path for path in SITEMAP_FALLBACK_PATHS]

        products = data.get('products')
        products_url = _text(products.get('endpoint')) if isinstance(products, Mapping) else _text(products)
        pages = _mapping(data.get('pages'))
        privacy_url = (
            _text(data.get('privacy'))
            or _text(data.get('privacy_url'))
            or _text(pages.get('integritet'))
            or resolved_base + PRIVACY_PATH
        )
        magnets = data.get('lead_magnets')

        return cls(
            site_id=site_id,
            name=name,
            base_url=resolved_base,
            host=normalize_host(urlparse(resolved_base).hostname) or None,
            pages=pages,
            links=_mapping(data.get('links')),
            llms_urls=llms_urls,
            sitemap_index=_text(sitemap.get('index')) or resolved_base + SITEMAP_INDEX_PATH,
            sitemap_fallbacks=tuple(str(url).strip() for url in fallbacks),
            products_url=products_url or resolved_base + PRODUCTS_PATH,
            privacy_url=privacy_url,
            raw_lead_magnets=tuple(magnets) if isinstance(magnets, list) else (),
        )

    @property
    def pricing_url(self) -> Optional[str]:
        return _text(self.links.get('pricing')) or _text(self.pages.get('priser'))

    @property
    def blog_url(self) -> Optional[str]:
        return (
            _text(self.links.get('blog'))
            or _text(self.links.get('news'))
            or _text(self.pages.get('blogg'))
        )

    def link_table(self, rules: RuleConfig) -> Dict[str, str]:
        return LinkResolver.build_link_table(rules, self.pages, self.links)

    def lead_magnets(self, rules: RuleConfig) -> List[LeadMagnet]:
        return build_lead_magnets(self.raw_lead_magnets, rules)
