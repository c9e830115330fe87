"""Token-overlap ranking of blog posts and products."""

from __future__ import annotations

import re
from typing import Callable, Collection, List, Optional, Sequence, TypeVar
from urllib.parse import urlparse

from .config import RuleConfig
from .text import last_path_segment, tokenize
from .types import Product, RankedCandidate

T = TypeVar("T")

_DATE_PATH_RE = re.compile(r"/\d{4}/\d{2}/")


def rank(
    query_tokens: Sequence[str],
    candidates: Sequence[T],
    max_results: int,
    *,
    bag: Callable[[T], Collection[str]],
    url: Callable[[T], str],
    promote: Optional[Callable[[T], bool]] = None,
) -> List[RankedCandidate[T]]:
    """Return the best ``max_results`` candidates by query-token overlap.

    Candidates scoring zero are dropped. Ties keep input order; when
    ``promote`` is given, promoted candidates sort ahead of the rest before
    scores are compared.
    """

    if not query_tokens or not candidates or max_results <= 0:
        return []

    scored: List[tuple[bool, RankedCandidate[T]]] = []
    for candidate in candidates:
        try:
            tokens = set(bag(candidate))
            target = url(candidate)
        except (ValueError, TypeError, AttributeError):
            continue
        score = sum(1 for token in query_tokens if token in tokens)
        if score <= 0:
            continue
        promoted = bool(promote(candidate)) if promote else False
        scored.append((promoted, RankedCandidate(item=candidate, url=target, score=score)))

    scored.sort(key=lambda pair: (not pair[0], -pair[1].score))
    return [candidate for _, candidate in scored[:max_results]]


def post_tokens(url: str, rules: RuleConfig) -> List[str]:
    return tokenize(last_path_segment(url), rules.stopwords)


def product_tokens(product: Product, rules: RuleConfig) -> List[str]:
    parts: List[str] = [product.name, product.slug, product.short_description]
    for name, slug in product.categories + product.tags:
        parts.extend((name, slug))
    for name, values in product.attributes:
        parts.append(name)
        parts.extend(values)
    return tokenize(" ".join(part for part in parts if part), rules.stopwords)


def is_blog_post_url(url: str, rules: RuleConfig) -> bool:
    """Return True for URLs shaped like an article rather than a plain page."""

    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    if _DATE_PATH_RE.search(path):
        return True
    segments = [segment for segment in path.split("/") if segment]
    blog_segments = set(rules.blog_segments)
    # The blog index itself ("/blogg/") is a page; a post sits below it.
    return any(segment in blog_segments for segment in segments[:-1])


def rank_posts(
    query_tokens: Sequence[str],
    post_urls: Sequence[str],
    rules: RuleConfig,
    max_results: int = 2,
) -> List[RankedCandidate[str]]:
    return rank(
        query_tokens,
        post_urls,
        max_results,
        bag=lambda post: post_tokens(post, rules),
        url=lambda post: post,
        promote=lambda post: is_blog_post_url(post, rules),
    )


def rank_products(
    query_tokens: Sequence[str],
    products: Sequence[Product],
    rules: RuleConfig,
    max_results: int = 3,
) -> List[RankedCandidate[Product]]:
    return rank(
        query_tokens,
        products,
        max_results,
        bag=lambda product: product_tokens(product, rules),
        url=lambda product: product.url,
    )
