"""Intent classifier tests."""

from __future__ import annotations

import pytest

from sitechat.engine.config import load_rules
from sitechat.engine.intents import IntentClassifier


@pytest.fixture()
def classifier(rules):
    return IntentClassifier(rules)


def test_price_question(classifier):
    intents = classifier.classify("Vad kostar en ny hemsida?")

    assert intents.price
    assert not intents.product
    assert not intents.booking


def test_price_analysis_counts_as_action_and_price(classifier):
    intents = classifier.classify("Kan ni göra en prisanalys åt oss?")

    assert intents.action
    assert intents.price
    assert intents.lead_type == "action"


def test_plain_analysis_is_action_only(classifier):
    intents = classifier.classify("Jag vill ha en analys av min sajt")

    assert intents.action
    assert not intents.price


def test_free_offer_is_not_a_price_question(classifier):
    intents = classifier.classify("Erbjuder ni en kostnadsfri genomgång?")

    assert not intents.price
    assert intents.action


def test_content_takes_priority_over_action(classifier):
    intents = classifier.classify("Har ni en guide eller kan ni göra en analys?")

    assert intents.content and intents.action
    assert intents.lead_type == "content"
    assert intents.lead


def test_info_and_product(classifier):
    assert classifier.classify("Hur förbättrar jag min SEO?").info
    assert classifier.classify("Vilka produkter har ni i lager?").product


@pytest.mark.parametrize(
    "message",
    ["Kan vi boka ett möte nästa vecka?", "Can we book a call?", "Jag vill ha ett rådgivningssamtal"],
)
def test_booking_detection(classifier, message):
    assert classifier.classify(message).booking


def test_neutral_message_sets_no_intent(classifier):
    intents = classifier.classify("Hej!")

    assert not any(
        (intents.action, intents.content, intents.product, intents.booking, intents.info, intents.price)
    )
    assert intents.lead_type is None


def test_patterns_are_configurable(tmp_path):
    override = tmp_path / "rules.yaml"
    override.write_text(
        "intents:\n  booking:\n    - pattern: '\\bDEMO\\b'\n      ignore_case: false\n",
        encoding="utf-8",
    )
    classifier = IntentClassifier(load_rules(override))

    assert classifier.classify("Vi vill se en DEMO").booking
    assert not classifier.classify("Vi vill se en demo").booking
    assert not classifier.classify("Kan vi boka ett möte?").booking
