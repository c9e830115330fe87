"""Lead magnet classification and lead/booking decisions."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

from .config import RuleConfig
from .text import matches_any
from .types import IntentSet, LeadDecision, LeadMagnet

MAGNET_TYPES = ("content", "action")


def classify_magnet_type(label: str, rules: RuleConfig) -> str:
    """Return ``content``, ``action`` or ``generic`` for a magnet label."""

    lowered = (label or "").lower()
    if not lowered:
        return "generic"
    for magnet_type in MAGNET_TYPES:
        pattern = rules.magnet_pattern(magnet_type)
        if pattern is not None and pattern.search(lowered):
            return magnet_type
    return "generic"


def build_lead_magnets(raw: Iterable[Any], rules: RuleConfig) -> List[LeadMagnet]:
    """Keep well-formed magnet entries and derive their type from the label."""

    magnets: List[LeadMagnet] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            continue
        key = entry.get("key")
        url = entry.get("url")
        if not key or not url:
            continue
        label = str(entry.get("label") or "")
        magnets.append(
            LeadMagnet(
                key=str(key),
                url=str(url),
                label=label,
                magnet_type=classify_magnet_type(label, rules),
            )
        )
    return magnets


def decide_lead(intents: IntentSet, magnets: Sequence[LeadMagnet]) -> LeadDecision:
    """Pick the lead magnet to surface for the detected lead type.

    Without any configured magnets there is nothing to offer, so the lead
    intent is suppressed regardless of what the message asked for.
    """

    if not magnets:
        return LeadDecision(lead_intent=False, lead_key=None)
    lead_type = intents.lead_type
    if lead_type is None:
        return LeadDecision(lead_intent=False, lead_key=None)

    chosen = _first_of_type(magnets, lead_type) or _first_of_type(magnets, "generic") or magnets[0]
    return LeadDecision(lead_intent=True, lead_key=chosen.key)


def decide_booking(message: str, rules: RuleConfig) -> bool:
    """Detect a booking request directly on the user's message."""

    return matches_any(message or "", rules.intent_patterns("booking"))


def _first_of_type(magnets: Sequence[LeadMagnet], magnet_type: str) -> Optional[LeadMagnet]:
    for magnet in magnets:
        if magnet.magnet_type == magnet_type:
            return magnet
    return None
