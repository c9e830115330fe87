"""Intent-driven blocks appended to a sanitized reply."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Set, Tuple

from .config import RuleConfig
from .links import LinkResolver, url_key
from .rank import rank_posts, rank_products
from .sanitize import EMPTY_PARENS_RE, RAW_URL_RE
from .text import DASH_RE, title_from_slug
from .types import Product, ReplyContext

MAX_RELATED_POSTS = 2
MAX_PRODUCTS = 3
MAX_DESCRIPTION_CHARS = 160


def present_url_keys(text: str) -> Set[str]:
    """Keys of every URL in ``text``, raw or inside a markdown link."""

    keys = set()
    for match in RAW_URL_RE.finditer(text):
        keys.add(url_key(match.group(0).rstrip(".,;:!?")))
    return keys


def _append_block(reply: str, lines: Sequence[str]) -> str:
    block = "\n".join(lines)
    if not reply.strip():
        return block
    return f"{reply.rstrip()}\n\n{block}"


def _plain(value: str) -> str:
    value = DASH_RE.sub("-", value.replace("[", "(").replace("]", ")"))
    value = EMPTY_PARENS_RE.sub("", RAW_URL_RE.sub("", value))
    return " ".join(value.split())


def add_related_reading(
    reply: str,
    context: ReplyContext,
    query_tokens: Sequence[str],
    rules: RuleConfig,
    resolver: LinkResolver,
) -> str:
    """Append related posts for info questions, or a pointer to the blog."""

    if not context.intents.info:
        return reply

    present = present_url_keys(reply)
    ranked = rank_posts(query_tokens, context.post_urls, rules, MAX_RELATED_POSTS)
    if ranked:
        fresh = [
            candidate.url
            for candidate in ranked
            if url_key(candidate.url) not in present and resolver.url_is_known(candidate.url)
        ]
        if fresh:
            lines = [rules.text("related_heading")]
            lines.extend(f"- [{_plain(title_from_slug(url, rules.acronyms))}]({url})" for url in fresh)
            return _append_block(reply, lines)

    blog_url = context.blog_url
    if not blog_url or url_key(blog_url) in present or not resolver.url_is_known(blog_url):
        return reply
    return _append_block(reply, [rules.text("blog_fallback", url=blog_url)])


def format_product_line(product: Product, rules: RuleConfig) -> str:
    parts = [f"- [{_plain(product.name) or product.slug}]({product.url})"]
    if product.price:
        parts.append(" ".join(value for value in (product.price, product.currency) if value))
    description = _plain(product.short_description)
    if description:
        if len(description) > MAX_DESCRIPTION_CHARS:
            description = description[: MAX_DESCRIPTION_CHARS - 3].rstrip() + "..."
        parts.append(description)
    labels = [name for name, _ in product.categories + product.tags if name]
    if labels:
        heading = rules.text("categories_label")
        parts.append(f"{heading} " + ", ".join(_plain(label) for label in labels))
    return " - ".join(parts)


def add_products(
    reply: str,
    context: ReplyContext,
    query_tokens: Sequence[str],
    rules: RuleConfig,
    resolver: LinkResolver,
) -> Tuple[str, bool, List[Dict[str, Any]]]:
    """Append ranked products; returns the reply, product intent and hits.

    Only ranked catalogue items with an emit-able URL are listed. When none
    qualify the product intent is dropped.
    """

    if not context.intents.product:
        return reply, False, []

    ranked = rank_products(query_tokens, context.products, rules, MAX_PRODUCTS)
    usable = [
        candidate.item
        for candidate in ranked
        if candidate.url and resolver.url_is_known(candidate.url)
    ]
    if not usable:
        return reply, False, []

    hits = [product.as_hit() for product in usable]
    present = present_url_keys(reply)
    fresh = [product for product in usable if url_key(product.url) not in present]
    if not fresh:
        return reply, True, hits

    lines = [rules.text("product_heading")]
    lines.extend(format_product_line(product, rules) for product in fresh)
    return _append_block(reply, lines), True, hits


def add_pricing_pointer(reply: str, context: ReplyContext, rules: RuleConfig, resolver: LinkResolver) -> str:
    pricing_url = context.pricing_url
    if not context.intents.price or not pricing_url:
        return reply
    if url_key(pricing_url) in present_url_keys(reply) or not resolver.url_is_known(pricing_url):
        return reply
    return _append_block(reply, [rules.text("pricing_pointer", url=pricing_url)])
