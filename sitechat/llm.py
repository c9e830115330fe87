"""Completion provider and prompt assembly."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from django.conf import settings
from openai import OpenAI, OpenAIError

from .engine.types import Product
from .exceptions import CompletionError, MissingCredentialError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gpt-4o-mini'
DEFAULT_TEMPERATURE = 0.3
DEFAULT_TIMEOUT = 30.0

SYSTEM_PROMPT = """
Du är {site_name}s digitala assistent.

Mål:
1) Ge korrekta, begripliga svar om företagets verksamhet, tjänster, produkter och praktisk information.
2) Hjälp användaren vidare med relevanta länkar till webbplatsen (om möjligt).
3) När användaren uttrycker intresse (t.ex. pris, offert, boka, rådgivning, analys): föreslå att ta kontakt eller boka ett möte på ett naturligt sätt.
4) Håll tonen professionell, vänlig och framåtblickande, på svenska.

Begränsningar:
- Fokusera på sådant som är relevant för företagets verksamhet och webbplats.
- Påstå inte att du "har träningsdata"; beskriv istället att du baserar svar på webbplatsens innehåll och generell branschkunskap.
- Om du är osäker: be om förtydligande eller föreslå ett kort möte eller kontakt.

Svarsstruktur (när det passar):
- Kort kärnförklaring (2-5 meningar).
- Punktlista med 2-4 konkreta råd eller steg.
- "Läs mer": 1-2 relevanta länkar till webbplatsen, som markdown-länkar [Etikett](url).
- Avsluta med en mjuk CTA om läget är rätt (t.ex. boka möte, kontakta oss eller få en snabb genomgång).

Primär kunskapsbas:
- Använd innehållet från LLMS-källorna nedan som prioriterad källa när du svarar om tjänster, produkter, artiklar eller guider.

{llms_context}
""".strip()

PRODUCT_CONTEXT_HEADING = 'Produkter i butiken som matchar frågan (nämn endast dessa, hitta inte på andra):'


def build_system_prompt(site_name: str, llms_context: str, products: Sequence[Product] = ()) -> str:
    prompt = SYSTEM_PROMPT.format(site_name=site_name, llms_context=llms_context)
    if not products:
        return prompt
    lines = [PRODUCT_CONTEXT_HEADING]
    for product in products:
        details = [product.name]
        if product.price:
            details.append(' '.join(value for value in (product.price, product.currency) if value))
        if product.url:
            details.append(product.url)
        lines.append('- ' + ' | '.join(details))
    return prompt + '\n\n' + '\n'.join(lines)


class OpenAICompletionProvider:
    """Single request/response chat completion against the OpenAI API."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.client = client or OpenAI(api_key=api_key, timeout=timeout)

    def complete(self, system_prompt: str, history: Sequence[Dict[str, str]], user_message: str) -> str:
        messages: List[Dict[str, str]] = [{'role': 'system', 'content': system_prompt}]
        messages.extend(history)
        messages.append({'role': 'user', 'content': user_message})
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            raise CompletionError(str(exc)) from exc

        if not completion.choices:
            return ''
        return (completion.choices[0].message.content or '').strip()


def get_completion_provider() -> OpenAICompletionProvider:
    api_key = getattr(settings, 'OPENAI_API_KEY', '')
    if not api_key:
        raise MissingCredentialError('OPENAI_API_KEY missing')
    return OpenAICompletionProvider(
        api_key,
        model=getattr(settings, 'SITECHAT_OPENAI_MODEL', DEFAULT_MODEL),
        temperature=float(getattr(settings, 'SITECHAT_OPENAI_TEMPERATURE', DEFAULT_TEMPERATURE)),
        timeout=float(getattr(settings, 'SITECHAT_OPENAI_TIMEOUT', DEFAULT_TIMEOUT)),
    )
