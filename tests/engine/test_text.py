"""Tokenizer and slug title tests."""

from __future__ import annotations

from sitechat.engine.text import normalize_label, title_from_slug, tokenize


def test_tokenize_drops_stopwords_and_diacritics(rules):
    tokens = tokenize("Hur förbättrar jag SEO för min webbshop?", rules.stopwords)

    assert tokens == ["forbattrar", "seo", "webbshop"]


def test_tokenize_splits_on_url_punctuation(rules):
    tokens = tokenize("wordpress-underhåll/lokal_seo.html", rules.stopwords)

    assert tokens == ["wordpress", "underhall", "lokal", "seo", "html"]


def test_tokenize_is_deterministic_and_filters_short_tokens(rules):
    text = "A b cd, é! Och SEO & UX i Sigtuna"
    first = tokenize(text, rules.stopwords)
    second = tokenize(text, rules.stopwords)

    assert first == second
    assert all(len(token) > 1 for token in first)
    assert not set(first) & rules.stopwords
    assert first == ["cd", "seo", "ux", "sigtuna"]


def test_tokenize_empty_input():
    assert tokenize("") == []
    assert tokenize("   ") == []


def test_title_from_slug_recapitalizes_acronyms(rules):
    title = title_from_slug("https://example.se/blogg/seo-tips-for-smaforetag/", rules.acronyms)

    assert title == "SEO tips for smaforetag"


def test_title_from_slug_decodes_percent_encoding(rules):
    title = title_from_slug("https://example.se/blogg/b%C3%A4sta-wordpress-tema/", rules.acronyms)

    assert title == "Bästa WordPress tema"


def test_title_from_slug_keeps_words_containing_acronyms(rules):
    title = title_from_slug("https://example.se/seoptimering-guide/", rules.acronyms)

    assert title == "Seoptimering guide"


def test_title_from_slug_falls_back_to_url():
    assert title_from_slug("https://example.se/") == "https://example.se/"
    assert title_from_slug("http://[::1") == "http://[::1"


def test_normalize_label_unifies_dashes_and_spaces():
    assert normalize_label("  Lokal SEO–tjänster  ") == "lokal seo-tjänster"
