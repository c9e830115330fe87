"""Reply sanitizer stage tests."""

from __future__ import annotations

from sitechat.engine.sanitize import (
    DEFAULT_STAGES,
    ReplySanitizer,
    StageContext,
    normalize_whitespace,
    strip_stray_brackets,
)

from .conftest import BASE_URL


def sanitize(resolver, text):
    return ReplySanitizer(resolver, BASE_URL).run(text)


def test_unresolvable_orphan_becomes_plain_text(resolver):
    assert sanitize(resolver, "Kontakta oss för en [Offert]") == "Kontakta oss för en Offert"


def test_orphan_with_configured_topic_is_linked(resolver):
    assert sanitize(resolver, "Läs om [SEO] här.") == "Läs om [SEO](https://example.se/seo/) här."
    assert sanitize(resolver, "Vi erbjuder [Webbanalys].") == "Vi erbjuder Webbanalys."


def test_parenthesised_label_before_url(resolver):
    assert (
        sanitize(resolver, "Läs mer (SEO) (https://example.se/seo/)")
        == "Läs mer [SEO](https://example.se/seo/)"
    )


def test_duplicate_raw_url_collapses(resolver):
    assert (
        sanitize(resolver, "Se [Pris](https://example.se/pris/) https://example.se/pris/.")
        == "Se [Pris](https://example.se/pris/)."
    )


def test_html_anchor_becomes_markdown(resolver):
    raw = 'Läs om <a href="/seo/" target="_blank">SEO</a> här.'

    assert sanitize(resolver, raw) == "Läs om [SEO](https://example.se/seo/) här."


def test_relative_markdown_target_is_absolutized(resolver):
    assert sanitize(resolver, "Se [Kontakt](/kontakt/)") == "Se [Kontakt](https://example.se/kontakt/)"


def test_double_wrapped_link_is_unwrapped(resolver):
    raw = "[[SEO](https://example.se/seo/)](https://example.se/seo/)"

    assert sanitize(resolver, raw) == "[SEO](https://example.se/seo/)"


def test_spaced_link_is_joined(resolver):
    assert sanitize(resolver, "[SEO] ( https://example.se/seo/ )") == "[SEO](https://example.se/seo/)"


def test_bare_parenthesised_url_loses_parens(resolver):
    assert (
        sanitize(resolver, "Besök oss (https://example.se/kontakt/)")
        == "Besök oss https://example.se/kontakt/"
    )


def test_external_links_and_urls_removed(resolver):
    raw = "Läs på https://external.com/page och [Wiki](https://wikipedia.org/x)."

    assert sanitize(resolver, raw) == "Läs på och Wiki."


def test_label_and_url_on_same_line_are_fused(resolver):
    assert sanitize(resolver, "- SEO: https://example.se/seo/") == "- [SEO](https://example.se/seo/)"


def test_prose_before_url_is_not_swallowed(resolver):
    raw = "Vi jobbar mycket med SEO https://example.se/seo/"

    assert sanitize(resolver, raw) == raw


def test_label_and_url_on_next_line_are_fused(resolver):
    raw = "Lokal SEO-tjänster\nhttps://example.se/lokal-seo/"

    assert sanitize(resolver, raw) == "[Lokal SEO-tjänster](https://example.se/lokal-seo/)"


def test_strict_mode_drops_unlisted_internal_urls(resolver, strict_resolver):
    raw = "Se https://example.se/ny-sida/ nu"

    assert sanitize(resolver, raw) == raw
    assert sanitize(strict_resolver, raw) == "Se nu"
    assert sanitize(strict_resolver, "Se [Ny sida](https://example.se/ny-sida/)") == "Se Ny sida"


def test_empty_parens_and_spacing_cleaned(resolver):
    assert sanitize(resolver, "Se sidan () här.  \n\n\n\nHej") == "Se sidan här.\n\nHej"


def test_dash_and_space_variants_normalized(resolver):
    context = StageContext(resolver=resolver, base_url=BASE_URL)

    assert normalize_whitespace("a\u00a0b \u2013 c\u202fd", context) == "a b - c d"


def test_strip_stray_brackets_keeps_links():
    text = "Se [SEO](https://example.se/seo/) och [Extra] ]"

    assert strip_stray_brackets(text) == "Se [SEO](https://example.se/seo/) och Extra "


def test_sanitizer_is_idempotent(resolver):
    raw = (
        'Läs om <a href="/seo/">SEO</a> här.\n'
        "- Lokal SEO: https://example.se/lokal-seo/\n"
        "[Offert] och [Pris](https://example.se/pris/) https://example.se/pris/\n"
        "Extern https://external.com/x"
    )

    once = sanitize(resolver, raw)

    assert sanitize(resolver, once) == once
    assert "external.com" not in once
    assert "- [Lokal SEO](https://example.se/lokal-seo/)" in once


def test_stage_list_is_configurable(resolver):
    sanitizer = ReplySanitizer(resolver, BASE_URL, stages=(normalize_whitespace,))

    assert sanitizer.run("[Offert] nu") == "[Offert] nu"
    assert len(DEFAULT_STAGES) == 8


def test_failing_stage_keeps_previous_text(resolver):
    def broken(text, context):
        raise RuntimeError("boom")

    sanitizer = ReplySanitizer(resolver, BASE_URL, stages=(broken, normalize_whitespace))

    assert sanitizer.run("a–b") == "a-b"


def test_link_followed_by_parenthesised_copy_collapses(resolver):
    raw = "Läs mer om [SEO](https://example.se/seo/) (https://example.se/seo/)"

    assert sanitize(resolver, raw) == "Läs mer om [SEO](https://example.se/seo/)"


def test_url_scheme_is_case_insensitive(resolver):
    assert sanitize(resolver, "Se HTTPS://evil.com/x och Https://evil.com/y") == "Se och"


def test_label_with_extra_words_is_not_promoted(resolver):
    next_line = "Kontakta oss idag\nhttps://example.se/kontakt/"
    same_line = "- Vi gör SEO: https://example.se/seo/"

    assert sanitize(resolver, next_line) == next_line
    assert sanitize(resolver, same_line) == same_line


def test_external_url_with_parentheses_removed_whole(resolver):
    assert sanitize(resolver, "Läs https://en.wikipedia.org/wiki/Foo_(bar) nu.") == "Läs nu."
    assert sanitize(resolver, "Se [Foo](https://en.wikipedia.org/wiki/Foo_(bar)).") == "Se Foo."
