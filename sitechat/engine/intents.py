"""Intent detection for incoming user messages."""

from __future__ import annotations

import re
from typing import Dict, List

from .config import RuleConfig
from .leads import decide_booking
from .text import matches_any
from .types import IntentSet

_LOWERCASE_INTENTS = ("action", "content", "product", "info", "price")


class IntentClassifier:
    """Runs the configured pattern tables against a message.

    Each intent is independent: it is true when any of its patterns match.
    Tie-breaks between overlapping intents live in the patterns themselves
    (lookarounds), never in post-processing here.
    """

    def __init__(self, rules: RuleConfig) -> None:
        self.rules = rules
        self.patterns: Dict[str, List[re.Pattern[str]]] = {
            intent: rules.intent_patterns(intent) for intent in _LOWERCASE_INTENTS
        }

    def detect(self, intent: str, lowered: str) -> bool:
        return matches_any(lowered, self.patterns.get(intent, []))

    def classify(self, message: str) -> IntentSet:
        lowered = (message or "").lower()
        flags = {intent: self.detect(intent, lowered) for intent in _LOWERCASE_INTENTS}
        return IntentSet(booking=decide_booking(message or "", self.rules), **flags)
