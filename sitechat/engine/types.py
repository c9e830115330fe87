"""Typed data structures used by the reply engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class LinkEntry:
    """Canonical topic link resolved from a free-text label."""

    key: str
    display_label: str
    url: str


@dataclass(frozen=True)
class LeadMagnet:
    """Offerable asset configured for a tenant."""

    key: str
    url: str
    label: str
    magnet_type: str


@dataclass(frozen=True)
class RankedCandidate(Generic[T]):
    """Candidate item with its token-overlap score."""

    item: T
    url: str
    score: int


@dataclass(frozen=True)
class Product:
    """Normalized product record from the tenant's store."""

    id: str
    name: str
    slug: str
    url: str
    price: Optional[str] = None
    currency: Optional[str] = None
    short_description: str = ""
    categories: Tuple[Tuple[str, str], ...] = ()
    tags: Tuple[Tuple[str, str], ...] = ()
    attributes: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    def as_hit(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "price": self.price,
            "currency": self.currency,
        }


@dataclass(frozen=True)
class IntentSet:
    """Independent intent flags detected in a user message."""

    action: bool = False
    content: bool = False
    product: bool = False
    booking: bool = False
    info: bool = False
    price: bool = False

    @property
    def lead_type(self) -> Optional[str]:
        if self.content:
            return "content"
        if self.action:
            return "action"
        return None

    @property
    def lead(self) -> bool:
        return self.lead_type is not None


@dataclass(frozen=True)
class LeadDecision:
    lead_intent: bool
    lead_key: Optional[str]


@dataclass(frozen=True)
class ReplyContext:
    """Everything the post-processing pipeline knows about one request."""

    message: str
    site_name: str
    base_url: str
    host: Optional[str]
    intents: IntentSet
    link_table: Dict[str, str] = field(default_factory=dict)
    known_urls: FrozenSet[str] = frozenset()
    post_urls: Tuple[str, ...] = ()
    products: Tuple[Product, ...] = ()
    pricing_url: Optional[str] = None
    blog_url: Optional[str] = None
    strict: bool = False


@dataclass(frozen=True)
class ReplyResult:
    """Final reply plus the flags the caller returns to the widget."""

    reply: str
    product_intent: bool
    product_hits: List[Dict[str, Any]] = field(default_factory=list)
