"""Topic label resolution and URL allow-listing."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import urljoin, urlparse

from .config import RuleConfig, TopicRule
from .text import normalize_label
from .types import LinkEntry

_BARE_DOMAIN_RE = re.compile(r"^(?:www\.)?[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}(?:[/?#]|$)", re.IGNORECASE)


def normalize_host(hostname: str | None) -> str:
    host = (hostname or "").strip().lower()
    return host[4:] if host.startswith("www.") else host


def host_of(url: str) -> Optional[str]:
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    return normalize_host(hostname) or None


def is_internal(url: str, host: str | None) -> bool:
    """Return True when ``url`` points at ``host`` or one of its subdomains."""

    if not host:
        return False
    url_host = host_of(url)
    if not url_host:
        return False
    site = normalize_host(host)
    return url_host == site or url_host.endswith("." + site)


def url_key(url: str) -> str:
    """Comparison key that ignores ``www.``, case of the host and trailing slashes."""

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url
    path = parsed.path.rstrip("/")
    key = f"{normalize_host(parsed.hostname)}{path}"
    if parsed.query:
        key = f"{key}?{parsed.query}"
    return key


def absolutize(href: str, base_url: str) -> Optional[str]:
    """Resolve relative, protocol-relative and bare-domain hrefs against ``base_url``."""

    href = (href or "").strip()
    if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
        return None
    if href.startswith("//"):
        return "https:" + href
    if re.match(r"^https?://", href, re.IGNORECASE):
        return href
    if _BARE_DOMAIN_RE.match(href):
        return "https://" + href
    if not base_url:
        return None
    return urljoin(base_url.rstrip("/") + "/", href)


class LinkResolver:
    """Maps free-text labels to canonical tenant links.

    The link table is keyed by topic rule key; a label that matches no rule,
    or a rule without a configured URL, resolves to ``None``.
    """

    def __init__(
        self,
        rules: RuleConfig,
        link_table: Mapping[str, str],
        known_urls: Iterable[str] = (),
        host: str | None = None,
        strict: bool = False,
    ) -> None:
        self.rules = rules
        self.topics = rules.topic_rules()
        self.link_table: Dict[str, str] = dict(link_table)
        self.known_keys = frozenset(url_key(url) for url in known_urls)
        self.host = normalize_host(host) or None
        self.strict = strict

    @staticmethod
    def build_link_table(
        rules: RuleConfig,
        pages: Mapping[str, object],
        links: Mapping[str, object],
    ) -> Dict[str, str]:
        """Build ``{topic key: url}`` from the site config's pages and links."""

        table: Dict[str, str] = {}
        for rule in rules.topic_rules():
            if rule.key in table:
                continue
            url = _string_or_none(pages.get(rule.page)) if rule.page else None
            if not url and rule.link:
                url = _string_or_none(links.get(rule.link))
            if url:
                table[rule.key] = url
        return table

    def recognize(self, raw_label: str, exact: bool = False) -> Optional[Tuple[TopicRule, str]]:
        """Return the first matching topic rule and its display form.

        With ``exact`` the whole label must be the topic, optionally followed
        by the services suffix on rules that allow it.
        """

        norm = normalize_label(raw_label)
        if not norm:
            return None
        for rule in self.topics:
            match = rule.pattern.match(norm) if exact else rule.pattern.search(norm)
            if match is None:
                continue
            rest = norm[match.end():]
            if exact and rest and not (rule.services and self.rules.services_pattern.fullmatch(rest)):
                continue
            display = rule.display
            if rule.services and self.rules.services_pattern.search(norm):
                display = f"{rule.display}{self.rules.services_suffix}"
            return rule, display
        return None

    def resolve_label(self, raw_label: str) -> Optional[LinkEntry]:
        recognized = self.recognize(raw_label)
        if recognized is None:
            return None
        rule, display = recognized
        url = self.link_table.get(rule.key)
        if not url:
            return None
        return LinkEntry(key=rule.key, display_label=display, url=url)

    def url_is_known(self, url: str) -> bool:
        if url_key(url) in self.known_keys:
            return True
        if self.strict:
            return False
        return is_internal(url, self.host)

    def is_internal(self, url: str) -> bool:
        return is_internal(url, self.host)


def _string_or_none(value: object) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
