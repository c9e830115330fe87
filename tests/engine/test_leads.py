"""Lead magnet and lead decision tests."""

from __future__ import annotations

from sitechat.engine.leads import build_lead_magnets, classify_magnet_type, decide_lead
from sitechat.engine.types import IntentSet, LeadMagnet


def _magnet(key: str, magnet_type: str) -> LeadMagnet:
    return LeadMagnet(key=key, url=f"https://example.se/{key}/", label=key, magnet_type=magnet_type)


def test_classify_magnet_type(rules):
    assert classify_magnet_type("Gratis SEO-guide (PDF)", rules) == "content"
    assert classify_magnet_type("Kostnadsfri SEO-analys", rules) == "action"
    assert classify_magnet_type("Nyhetsbrev", rules) == "generic"
    assert classify_magnet_type("", rules) == "generic"


def test_build_lead_magnets_skips_incomplete_entries(rules):
    magnets = build_lead_magnets(
        [
            {"key": "guide", "url": "https://example.se/guide/", "label": "SEO-guide"},
            {"key": "missing-url", "label": "Checklista"},
            "not-a-dict",
            {"key": "news", "url": "https://example.se/news/"},
        ],
        rules,
    )

    assert [magnet.key for magnet in magnets] == ["guide", "news"]
    assert [magnet.magnet_type for magnet in magnets] == ["content", "generic"]


def test_no_magnets_suppresses_lead():
    decision = decide_lead(IntentSet(action=True), [])

    assert decision.lead_intent is False
    assert decision.lead_key is None


def test_picks_magnet_matching_lead_type():
    magnets = [_magnet("news", "generic"), _magnet("audit", "action"), _magnet("guide", "content")]

    assert decide_lead(IntentSet(content=True, action=True), magnets).lead_key == "guide"
    assert decide_lead(IntentSet(action=True), magnets).lead_key == "audit"


def test_falls_back_to_generic_then_first():
    assert decide_lead(IntentSet(content=True), [_magnet("audit", "action"), _magnet("news", "generic")]).lead_key == "news"
    assert decide_lead(IntentSet(content=True), [_magnet("audit", "action"), _magnet("call", "action")]).lead_key == "audit"


def test_no_lead_type_means_no_lead():
    decision = decide_lead(IntentSet(price=True), [_magnet("guide", "content")])

    assert decision.lead_intent is False
    assert decision.lead_key is None
