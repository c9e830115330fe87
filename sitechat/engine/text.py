"""Shared text utilities for the reply engine."""

from __future__ import annotations

import re
import unicodedata
from typing import Collection, Dict, Iterable, List, Mapping
from urllib.parse import unquote, urlparse

DASH_RE = re.compile(r"[\u2010-\u2015\u2212\u00ad]")
_NON_WORD_RE = re.compile(r"[^\w\s-]")
_SPLIT_RE = re.compile(r"[\s/._-]+")
_SPACE_RE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """Decompose accented characters and drop the combining marks."""

    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def tokenize(text: str, stopwords: Collection[str] = frozenset()) -> List[str]:
    """Return lower-cased, diacritic-free tokens without stop words.

    ``stopwords`` must already be normalised the same way (see
    :func:`strip_diacritics`); :class:`~sitechat.engine.config.RuleConfig`
    hands out a ready-made set.
    """

    if not text:
        return []
    cleaned = _NON_WORD_RE.sub(" ", strip_diacritics(text.lower()))
    return [
        token
        for token in _SPLIT_RE.split(cleaned)
        if len(token) > 1 and token not in stopwords
    ]


def normalize_label(label: str) -> str:
    """Lowercase a label and unify whitespace and dash variants."""

    text = (label or "").replace("\u00a0", " ")
    text = DASH_RE.sub("-", text)
    return _SPACE_RE.sub(" ", text).strip().lower()


def last_path_segment(url: str) -> str:
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    return segments[-1] if segments else ""


def title_from_slug(url: str, acronyms: Mapping[str, str] | None = None) -> str:
    """Build a display title from the last path segment of ``url``.

    Falls back to the URL itself when it cannot be parsed or has no path.
    """

    try:
        segment = unquote(last_path_segment(url))
    except ValueError:
        return url

    title = _SPACE_RE.sub(" ", segment.replace("-", " ").lower()).strip()
    if not title:
        return url
    title = title[0].upper() + title[1:]
    for word, replacement in _acronym_items(acronyms):
        title = re.sub(
            rf"(?<!\w){re.escape(word)}(?!\w)",
            replacement,
            title,
            flags=re.IGNORECASE,
        )
    return title


def _acronym_items(acronyms: Mapping[str, str] | None) -> List[tuple[str, str]]:
    items: Dict[str, str] = dict(acronyms or {})
    # Longer words first so "woocommerce" wins over any shorter overlap.
    return sorted(items.items(), key=lambda item: (-len(item[0]), item[0]))


def matches_any(text: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    """Return True when any compiled pattern matches ``text``."""

    return any(pattern.search(text) for pattern in patterns)
