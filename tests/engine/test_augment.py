"""End-to-end reply pipeline tests: sanitizing plus appended blocks."""

from __future__ import annotations

from sitechat.engine.augment import format_product_line
from sitechat.engine.index import classify_message, process_reply, products_for_prompt
from sitechat.engine.sanitize import strip_stray_brackets

from .conftest import make_context, make_product

POSTS = (
    "https://example.se/blogg/seo-tips-for-smaforetag/",
    "https://example.se/blogg/wordpress-sakerhet/",
)


def context_for(message, rules, link_table, **kwargs):
    return make_context(message, link_table, intents=classify_message(message, rules), **kwargs)


def test_price_question_gets_single_pricing_pointer(rules, link_table):
    message = "Vad kostar en ny hemsida?"
    context = context_for(message, rules, link_table, pricing_url="https://example.se/priser/")

    result = process_reply("Det beror på omfattningen.", context, rules)

    assert result.reply.count("https://example.se/priser/") == 1
    assert "[Priser](https://example.se/priser/)" in result.reply
    assert result.reply.endswith("*Källa: Exempelbyrån*")
    assert process_reply(result.reply, context, rules).reply == result.reply


def test_pricing_pointer_skipped_when_already_linked(rules, link_table):
    message = "Vad kostar en ny hemsida?"
    context = context_for(message, rules, link_table, pricing_url="https://example.se/priser/")

    result = process_reply("Se [Priser](https://example.se/priser/).", context, rules)

    assert result.reply.count("https://example.se/priser/") == 1


def test_product_intent_without_matches_is_dropped(rules, link_table):
    message = "Vilka produkter har ni för hundar?"
    context = context_for(message, rules, link_table, products=[make_product("SEO-paket", "seo-paket")])

    result = process_reply("Vi har ett litet sortiment.", context, rules)

    assert context.intents.product
    assert result.product_intent is False
    assert result.product_hits == []
    assert "Produkter som kan passa" not in result.reply


def test_ranked_products_are_listed(rules, link_table):
    message = "Har ni något SEO-paket att köpa?"
    products = [
        make_product("Logotyp", "logotyp"),
        make_product("SEO-paket", "seo-paket", description="Teknisk SEO", categories=[("SEO", "seo")]),
        make_product("SEO-start", "seo-start", url=""),
    ]
    context = context_for(message, rules, link_table, products=products)

    result = process_reply("Vi har flera paket.", context, rules)

    assert result.product_intent is True
    assert [hit["id"] for hit in result.product_hits] == ["seo-paket"]
    assert "🛒 Produkter som kan passa:" in result.reply
    assert "- [SEO-paket](https://example.se/shop/seo-paket/) - 1990.00 SEK" in result.reply
    assert "Kategorier: SEO" in result.reply
    assert "seo-start" not in result.reply


def test_products_already_in_reply_are_not_repeated(rules, link_table):
    message = "Har ni något SEO-paket att köpa?"
    context = context_for(message, rules, link_table, products=[make_product("SEO-paket", "seo-paket")])

    result = process_reply("Titta på [SEO-paket](https://example.se/shop/seo-paket/).", context, rules)

    assert result.product_intent is True
    assert len(result.product_hits) == 1
    assert "Produkter som kan passa" not in result.reply


def test_info_question_gets_related_reading(rules, link_table):
    message = "Hur förbättrar jag min SEO för småföretag?"
    context = context_for(message, rules, link_table, post_urls=POSTS, blog_url="https://example.se/blogg/")

    result = process_reply("Börja med sökordsanalys.", context, rules)

    assert "📰 Relaterad läsning:" in result.reply
    assert (
        "- [SEO tips for smaforetag](https://example.se/blogg/seo-tips-for-smaforetag/)" in result.reply
    )
    assert "wordpress-sakerhet" not in result.reply
    assert "artikelsida" not in result.reply


def test_related_post_already_linked_is_skipped(rules, link_table):
    message = "Hur förbättrar jag min SEO för småföretag?"
    context = context_for(message, rules, link_table, post_urls=POSTS)
    raw = "Läs [guiden](https://example.se/blogg/seo-tips-for-smaforetag/)."

    result = process_reply(raw, context, rules)

    assert "Relaterad läsning" not in result.reply
    assert result.reply.count("seo-tips-for-smaforetag") == 1


def test_info_question_without_matching_posts_points_to_blog(rules, link_table):
    message = "Hur fungerar Google Ads?"
    context = context_for(message, rules, link_table, post_urls=POSTS, blog_url="https://example.se/blogg/")

    result = process_reply("Det är annonser i sökresultaten.", context, rules)

    assert "[artikelsida](https://example.se/blogg/)" in result.reply
    assert "Relaterad läsning" not in result.reply


def test_empty_reply_uses_fallback_text(rules, link_table):
    context = context_for("Hej", rules, link_table)

    result = process_reply("   ", context, rules)

    assert result.reply == "Jag är osäker just nu. Vill du omformulera frågan?"


def test_no_external_urls_survive(rules, link_table):
    context = context_for("Hej", rules, link_table)

    result = process_reply("Se https://external.com/x och [Wiki](https://wikipedia.org/).", context, rules)

    assert "external.com" not in result.reply
    assert "wikipedia" not in result.reply
    assert "Källa" not in result.reply


def test_pipeline_is_idempotent(rules, link_table):
    message = "Hur förbättrar jag min SEO?"
    context = context_for(message, rules, link_table, post_urls=POSTS)
    raw = (
        'Läs om <a href="/seo/">SEO</a> här.\n'
        "- Lokal SEO: https://example.se/lokal-seo/\n"
        "[Offert] och [Pris](https://example.se/pris/) https://example.se/pris/"
    )

    once = process_reply(raw, context, rules)
    twice = process_reply(once.reply, context, rules)

    assert twice.reply == once.reply
    assert once.reply.count("Källa:") == 1
    assert strip_stray_brackets(once.reply) == once.reply


def test_products_for_prompt_ranks_catalogue(rules):
    products = [make_product("Logotyp", "logotyp"), make_product("SEO-paket", "seo-paket")]

    assert [product.slug for product in products_for_prompt("Köpa SEO?", products, rules)] == ["seo-paket"]


def test_blog_pointer_when_related_posts_already_linked(rules, link_table):
    message = "Hur förbättrar jag min SEO för småföretag?"
    context = context_for(message, rules, link_table, post_urls=POSTS, blog_url="https://example.se/blogg/")
    raw = "Läs [guiden](https://example.se/blogg/seo-tips-for-smaforetag/)."

    result = process_reply(raw, context, rules)

    assert "[artikelsida](https://example.se/blogg/)" in result.reply
    assert result.reply.count("seo-tips-for-smaforetag") == 1
    assert process_reply(result.reply, context, rules).reply == result.reply


def test_duplicated_link_target_appears_once(rules, link_table):
    context = context_for("Hej", rules, link_table)

    result = process_reply("Läs mer om [SEO](https://example.se/seo/) (https://example.se/seo/)", context, rules)

    assert result.reply.count("https://example.se/seo/") == 1


def test_categories_label_comes_from_rules(rules):
    rules.raw["texts"]["categories_label"] = "Categories:"
    product = make_product("SEO-paket", "seo-paket", categories=[("SEO", "seo")])

    assert format_product_line(product, rules).endswith(" - Categories: SEO")
