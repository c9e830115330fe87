"""Rule table loading for the reply engine."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from .text import strip_diacritics

DEFAULT_RULES_PATH = Path(__file__).resolve().parent / "default_rules.yaml"

INTENT_NAMES = ("action", "content", "product", "info", "price", "booking")


@dataclass(frozen=True)
class TopicRule:
    """Ordered label rule mapping free text to a canonical topic."""

    key: str
    pattern: re.Pattern[str]
    display: str
    page: str | None = None
    link: str | None = None
    services: bool = False


@dataclass(frozen=True)
class RuleConfig:
    """Typed wrapper around the merged rule tables."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def text(self, name: str, **values: str) -> str:
        template = self.raw.get("texts", {}).get(name, "")
        return template.format(**values) if values else template

    @property
    def stopwords(self) -> frozenset[str]:
        return _stopword_set(tuple(self.raw.get("stopwords", [])))

    @property
    def acronyms(self) -> Dict[str, str]:
        return dict(self.raw.get("acronyms", {}))

    @property
    def blog_segments(self) -> Tuple[str, ...]:
        return tuple(str(segment).lower() for segment in self.raw.get("blog_segments", []))

    def intent_patterns(self, intent: str) -> List[re.Pattern[str]]:
        entries = self.raw.get("intents", {}).get(intent, [])
        return [_compile_entry(entry) for entry in entries]

    def magnet_pattern(self, magnet_type: str) -> re.Pattern[str] | None:
        source = self.raw.get("magnet_types", {}).get(magnet_type)
        if not source:
            return None
        return re.compile(source, re.IGNORECASE)

    def topic_rules(self) -> List[TopicRule]:
        rules: List[TopicRule] = []
        for entry in self.raw.get("topics", []):
            if not isinstance(entry, dict) or not entry.get("key") or not entry.get("match"):
                continue
            rules.append(
                TopicRule(
                    key=str(entry["key"]).lower(),
                    pattern=re.compile(entry["match"], re.IGNORECASE),
                    display=str(entry.get("display") or entry["key"]),
                    page=entry.get("page"),
                    link=entry.get("link"),
                    services=bool(entry.get("services", False)),
                )
            )
        return rules

    @property
    def services_pattern(self) -> re.Pattern[str]:
        services = self.raw.get("services", {})
        return re.compile(services.get("match", r"$^"), re.IGNORECASE)

    @property
    def services_suffix(self) -> str:
        return self.raw.get("services", {}).get("suffix", "")


def _compile_entry(entry: Any) -> re.Pattern[str]:
    if isinstance(entry, dict):
        flags = re.IGNORECASE if entry.get("ignore_case", True) else 0
        return re.compile(entry["pattern"], flags)
    return re.compile(str(entry), re.IGNORECASE)


@lru_cache(maxsize=8)
def _stopword_set(words: Tuple[str, ...]) -> frozenset[str]:
    return frozenset(strip_diacritics(str(word).lower()) for word in words)


@lru_cache(maxsize=1)
def _default_rules() -> Dict[str, Any]:
    with DEFAULT_RULES_PATH.open("r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def load_rules(path: str | Path | None = None) -> RuleConfig:
    """Load rule tables from YAML, merging an optional override into the defaults."""

    data: Dict[str, Any] = copy.deepcopy(_default_rules())

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return RuleConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
