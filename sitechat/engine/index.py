"""Coordinator for the reply post-processing pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from . import augment as augment_module
from . import footer as footer_module
from .config import RuleConfig, load_rules
from .intents import IntentClassifier
from .links import LinkResolver
from .rank import rank_products
from .sanitize import DEFAULT_STAGES, ReplySanitizer, Stage, strip_stray_brackets
from .text import tokenize
from .types import IntentSet, Product, ReplyContext, ReplyResult

logger = logging.getLogger(__name__)


def query_tokens(message: str, rules: RuleConfig) -> List[str]:
    return tokenize(message or "", rules.stopwords)


def classify_message(message: str, rules: RuleConfig | None = None) -> IntentSet:
    return IntentClassifier(rules or load_rules(None)).classify(message)


def products_for_prompt(
    message: str,
    products: Sequence[Product],
    rules: RuleConfig | None = None,
) -> List[Product]:
    """Products worth mentioning to the model before it answers."""

    rule_config = rules or load_rules(None)
    ranked = rank_products(query_tokens(message, rule_config), products, rule_config)
    return [candidate.item for candidate in ranked]


@dataclass(frozen=True)
class ReplyPipeline:
    """Sanitizes a raw model reply and appends intent-driven blocks."""

    rules: RuleConfig
    stages: Sequence[Stage] = DEFAULT_STAGES

    def resolver_for(self, context: ReplyContext) -> LinkResolver:
        return LinkResolver(
            self.rules,
            context.link_table,
            known_urls=context.known_urls,
            host=context.host,
            strict=context.strict,
        )

    def process(self, raw_reply: str, context: ReplyContext) -> ReplyResult:
        resolver = self.resolver_for(context)
        tokens = query_tokens(context.message, self.rules)

        text = ReplySanitizer(resolver, context.base_url, self.stages).run(raw_reply or "")
        if not text.strip():
            text = self.rules.text("fallback_reply")

        text = augment_module.add_related_reading(text, context, tokens, self.rules, resolver)
        text, product_intent, product_hits = augment_module.add_products(
            text, context, tokens, self.rules, resolver
        )
        text = augment_module.add_pricing_pointer(text, context, self.rules, resolver)
        text = strip_stray_brackets(text)

        text = footer_module.add_footer_if_needed(
            text,
            context.site_name,
            footer_module.has_internal_link(text, context.host),
            template=self.rules.text("footer"),
            marker=self.rules.text("footer_marker"),
        )
        logger.debug(
            "Processed reply for %s (product_intent=%s, hits=%d)",
            context.host,
            product_intent,
            len(product_hits),
        )
        return ReplyResult(reply=text.strip(), product_intent=product_intent, product_hits=product_hits)


def process_reply(raw_reply: str, context: ReplyContext, rules: RuleConfig | None = None) -> ReplyResult:
    """Return the final reply for ``raw_reply`` using the default stage order."""

    return ReplyPipeline(rules or load_rules(None)).process(raw_reply, context)
