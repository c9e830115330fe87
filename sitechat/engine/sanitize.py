"""Ordered rewrite stages that clean and link raw model markdown.

Each stage is a total ``(text, context) -> text`` function. Later stages rely
on the normalised form produced by earlier ones, so :data:`DEFAULT_STAGES`
must be kept in order. Every stage leaves an already well-formed
``[Label](url)`` untouched, which makes the whole pipeline idempotent.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from bs4 import BeautifulSoup  # type: ignore

from .links import LinkResolver, absolutize, url_key
from .text import DASH_RE

logger = logging.getLogger(__name__)

MAX_LABEL_WORDS = 4

_URL_CHARS = r"[^\s()\[\]<>\"']"
# One level of balanced parentheses belongs to the URL, as in "/wiki/Foo_(bar)".
_URL = r"(?i:https?)://" + _URL_CHARS + r"+(?:\(" + _URL_CHARS + r"*\)" + _URL_CHARS + r"*)*"
_TRAILING_PUNCT = ".,;:!?"

MD_LINK_RE = re.compile(r"\[([^\[\]\n]+)\]\(((?:[^\s()]|\([^\s()]*\))+)\)")
ANCHOR_RE = re.compile(r"<a\b[^>]*>.*?</a\s*>", re.IGNORECASE | re.DOTALL)
LOOSE_MD_LINK_RE = re.compile(r"\[([^\[\]\n]+)\]\([ \t]*([^\s()]+)[ \t]*\)")
DOUBLE_WRAP_RE = re.compile(
    r"\[\s*\[([^\[\]\n]+)\]\((https?://[^\s()]+)\)\s*\]\(\s*\2\s*\)",
    re.IGNORECASE,
)
SPACED_LINK_RE = re.compile(r"\[([^\[\]\n]+)\][ \t]+\([ \t]*((?i:https?)://[^\s()]+)[ \t]*\)")
PAREN_LABEL_RE = re.compile(
    r"(?<!\])\([ \t]*\[?([^\[\]()\n]{1,80}?)\]?[ \t]*\)[ \t]*\([ \t]*((?i:https?)://[^\s()]+)[ \t]*\)"
)
BARE_PAREN_URL_RE = re.compile(r"(?<!\])\([ \t]*((?i:https?)://[^\s()]+)[ \t]*\)")
DUPLICATE_URL_RE = re.compile(
    r"(\[[^\[\]\n]+\]\(((?i:https?)://[^\s()]+)\))([ \t]*(?:\r?\n[ \t]*)?)(" + _URL + ")"
)
RAW_URL_RE = re.compile(_URL)
ORPHAN_RE = re.compile(r"\[([^\[\]\n]+)\](?!\()")
EMPTY_PARENS_RE = re.compile(r"\(\s*\)")

_LEAD = r"(?P<lead>[ \t]*(?:#{1,6}[ \t]+)?(?:(?:[-*+\u2022]|\d+[.)])[ \t]+)?)"
_LIST_MARKER = r"(?:(?:[-*+\u2022]|\d+[.)])[ \t]+)?"
SAME_LINE_LABEL_RE = re.compile(
    r"^" + _LEAD + r"(?P<label>[^\[\]\n]+?)[ \t]*(?P<sep>->|[:\u2192-])?[ \t]*"
    r"(?P<url>" + _URL + r")[ \t]*$",
    re.MULTILINE,
)
NEXT_LINE_LABEL_RE = re.compile(
    r"^" + _LEAD + r"(?P<label>[^\[\]\n]+?)[ \t]*:?[ \t]*\r?\n[ \t]*" + _LIST_MARKER
    + r"(?P<url>" + _URL + r")[ \t]*$",
    re.MULTILINE,
)


@dataclass(frozen=True)
class StageContext:
    """Per-request inputs shared by all stages."""

    resolver: LinkResolver
    base_url: str


Stage = Callable[[str, StageContext], str]


def map_outside_links(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to every stretch of ``text`` that is not a markdown link."""

    parts = []
    last = 0
    for match in MD_LINK_RE.finditer(text):
        parts.append(fn(text[last:match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(fn(text[last:]))
    return "".join(parts)


def _split_trailing_punct(url: str) -> Tuple[str, str]:
    stripped = url.rstrip(_TRAILING_PUNCT)
    return stripped, url[len(stripped):]


def normalize_anchors(text: str, context: StageContext) -> str:
    """Rewrite HTML anchors as markdown and make link targets absolute."""

    def _anchor(match: re.Match[str]) -> str:
        soup = BeautifulSoup(match.group(0), "html.parser")
        anchor = soup.find("a")
        if anchor is None:
            return match.group(0)
        label = " ".join(anchor.get_text(" ", strip=True).split())
        url = absolutize(str(anchor.get("href") or ""), context.base_url)
        if not url:
            return label
        if not label:
            return url
        return f"[{label}]({url})"

    def _relative(match: re.Match[str]) -> str:
        label, href = match.group(1), match.group(2)
        if re.match(r"^https?://", href, re.IGNORECASE):
            return match.group(0)
        url = absolutize(href, context.base_url)
        return f"[{label}]({url})" if url else label

    text = ANCHOR_RE.sub(_anchor, text)
    return MD_LINK_RE.sub(_relative, text)


def repair_malformed_links(text: str, context: StageContext) -> str:
    """Fix the recurring broken link shapes models produce."""

    text = LOOSE_MD_LINK_RE.sub(r"[\1](\2)", text)
    text = DOUBLE_WRAP_RE.sub(r"[\1](\2)", text)
    text = SPACED_LINK_RE.sub(r"[\1](\2)", text)
    text = PAREN_LABEL_RE.sub(_paren_label, text)
    return BARE_PAREN_URL_RE.sub(r"\1", text)


def _paren_label(match: re.Match[str]) -> str:
    label = match.group(1).strip()
    # "(url) (url)" is a repeated target, not a label.
    if "://" in label:
        return match.group(0)
    return f"[{label}]({match.group(2)})"


def normalize_whitespace(text: str, context: StageContext) -> str:
    text = text.replace("\u00a0", " ").replace("\u202f", " ")
    return DASH_RE.sub("-", text)


def collapse_duplicate_urls(text: str, context: StageContext) -> str:
    """Drop a raw URL repeated right after a markdown link to the same URL."""

    def _collapse(match: re.Match[str]) -> str:
        raw, punct = _split_trailing_punct(match.group(4))
        if url_key(raw) != url_key(match.group(2)):
            return match.group(0)
        return match.group(1) + punct

    return DUPLICATE_URL_RE.sub(_collapse, text)


def enforce_url_policy(text: str, context: StageContext) -> str:
    """Keep allowed links and internal raw URLs, drop everything else.

    Internal raw URLs must survive this stage so that :func:`promote_labels`
    can attach the label that precedes them.
    """

    resolver = context.resolver

    def _link(match: re.Match[str]) -> str:
        label, url = match.group(1), match.group(2)
        if resolver.url_is_known(url):
            return match.group(0)
        return label

    text = MD_LINK_RE.sub(_link, text)
    wrapped = {url_key(match.group(2)) for match in MD_LINK_RE.finditer(text)}

    def _raw(match: re.Match[str]) -> str:
        url, punct = _split_trailing_punct(match.group(0))
        if url_key(url) in wrapped:
            return match.group(0)
        if not resolver.is_internal(url):
            return punct
        if not resolver.url_is_known(url):
            return punct
        return match.group(0)

    return map_outside_links(text, lambda segment: RAW_URL_RE.sub(_raw, segment))


def _clean_label(label: str) -> str:
    label = label.strip().strip("*_").strip()
    return label.rstrip(":-").strip()


def promote_labels(text: str, context: StageContext) -> str:
    """Fuse a recognised topic label with the raw URL that follows it."""

    resolver = context.resolver

    def _fuse(match: re.Match[str]) -> str:
        label = _clean_label(match.group("label"))
        url, punct = _split_trailing_punct(match.group("url"))
        if not label or "://" in label or len(label.split()) > MAX_LABEL_WORDS:
            return match.group(0)
        # On a shared line only "Label: url" or a list item reads as a label.
        if match.re is SAME_LINE_LABEL_RE and not (match.group("sep") or match.group("lead").strip()):
            return match.group(0)
        recognized = resolver.recognize(label, exact=True)
        if recognized is None or not resolver.url_is_known(url):
            return match.group(0)
        _, display = recognized
        return f"{match.group('lead')}[{display}]({url}){punct}"

    text = SAME_LINE_LABEL_RE.sub(_fuse, text)
    return NEXT_LINE_LABEL_RE.sub(_fuse, text)


def resolve_orphan_brackets(text: str, context: StageContext) -> str:
    """Link ``[Label]`` through the resolver, or fall back to plain text."""

    resolver = context.resolver

    def _orphan(match: re.Match[str]) -> str:
        entry = resolver.resolve_label(match.group(1))
        if entry is None or not resolver.url_is_known(entry.url):
            return match.group(1)
        return f"[{entry.display_label}]({entry.url})"

    return ORPHAN_RE.sub(_orphan, text)


def cleanup_empty_parens(text: str, context: StageContext) -> str:
    text = EMPTY_PARENS_RE.sub("", text)
    text = re.sub(r"(?<=\S)[ \t]{2,}", " ", text)
    text = re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def strip_stray_brackets(text: str) -> str:
    """Remove orphan ``[Label]`` markup and unmatched brackets outside links."""

    def _strip(segment: str) -> str:
        segment = ORPHAN_RE.sub(r"\1", segment)
        return segment.replace("[", "").replace("]", "")

    return map_outside_links(text, _strip)


DEFAULT_STAGES: Tuple[Stage, ...] = (
    normalize_anchors,
    repair_malformed_links,
    normalize_whitespace,
    collapse_duplicate_urls,
    enforce_url_policy,
    promote_labels,
    resolve_orphan_brackets,
    cleanup_empty_parens,
)


class ReplySanitizer:
    """Runs a configurable sequence of stages over a reply."""

    def __init__(
        self,
        resolver: LinkResolver,
        base_url: str,
        stages: Sequence[Stage] = DEFAULT_STAGES,
    ) -> None:
        self.context = StageContext(resolver=resolver, base_url=base_url)
        self.stages = tuple(stages)

    def run(self, text: str) -> str:
        for stage in self.stages:
            try:
                text = stage(text, self.context)
            except Exception:  # pragma: no cover - stages are written to be total
                logger.warning("Reply stage %s failed; keeping previous text", stage.__name__, exc_info=True)
        return text
