"""JSON endpoints used by the chat widget.

``POST /api/chat`` answers one user message for a tenant and
``POST /api/clear`` forgets a session's history. Both answer ``OPTIONS``
preflights with 204; CORS headers are added by
:class:`sitechat.middleware.TenantCorsMiddleware`.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict, Tuple

from django import forms
from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from .engine.config import RuleConfig, load_rules
from .engine.index import classify_message, process_reply, products_for_prompt
from .engine.leads import decide_lead
from .engine.links import is_internal
from .engine.types import ReplyContext
from .exceptions import SiteChatError
from .forms import ChatRequestForm, ClearHistoryForm
from .llm import build_system_prompt, get_completion_provider
from .services import gather_site_documents, load_site_config, resolve_tenant
from .site_config import SiteConfig
from .store import CacheStore, ChatHistory

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_rules() -> RuleConfig:
    return load_rules(getattr(settings, 'SITECHAT_RULES_PATH', None) or None)


def _error(code: str, message: str, status: int, **extra: Any) -> JsonResponse:
    return JsonResponse({'error': code, 'message': message, **extra}, status=status)


def _bind_form(request: HttpRequest, form_class: type[forms.Form]) -> Tuple[forms.Form | None, JsonResponse | None]:
    """Decode the JSON body into ``form_class``; return the form or an error response."""

    try:
        payload = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, _error('invalid_request', 'Invalid JSON payload.', 400)
    if not isinstance(payload, dict):
        return None, _error('invalid_request', 'Expected a JSON object.', 400)

    form = form_class(data=payload)
    if not form.is_valid():
        return None, _error('invalid_request', 'Missing or invalid fields.', 400, fields=form.errors.get_json_data())
    return form, None


def _known_urls(site_config: SiteConfig, sitemap_urls: Tuple[str, ...], link_table: Dict[str, str]) -> frozenset[str]:
    configured = [url for url in link_table.values() if is_internal(url, site_config.host)]
    for url in (site_config.pricing_url, site_config.blog_url):
        if url and is_internal(url, site_config.host):
            configured.append(url)
    return frozenset(sitemap_urls) | frozenset(configured)


def answer_message(site_id: str, session_id: str, message: str) -> Dict[str, Any]:
    """Run one chat turn and return the response payload."""

    provider = get_completion_provider()
    tenant = resolve_tenant(site_id)
    rules = get_rules()
    store = CacheStore()
    history = ChatHistory(store, tenant.site_id, session_id)

    # The site config names every other document URL, so it is loaded first.
    site_config = load_site_config(store, tenant)
    documents = gather_site_documents(store, site_config)

    intents = classify_message(message, rules)
    prompt_products = products_for_prompt(message, documents.products, rules) if intents.product else []
    site_name = site_config.name or rules.text('site_name')
    system_prompt = build_system_prompt(site_name, documents.llms.context_block(), prompt_products)

    raw_reply = provider.complete(system_prompt, history.window(), message)

    link_table = site_config.link_table(rules)
    context = ReplyContext(
        message=message,
        site_name=site_name,
        base_url=site_config.base_url,
        host=site_config.host,
        intents=intents,
        link_table=link_table,
        known_urls=_known_urls(site_config, documents.known_urls, link_table),
        post_urls=documents.post_urls,
        products=documents.products,
        pricing_url=site_config.pricing_url,
        blog_url=site_config.blog_url,
        strict=bool(getattr(settings, 'SITECHAT_STRICT_URLS', False)),
    )
    result = process_reply(raw_reply, context, rules)
    lead = decide_lead(intents, site_config.lead_magnets(rules))

    history.record_exchange(message, result.reply)

    payload: Dict[str, Any] = {
        'reply': result.reply,
        'booking_intent': intents.booking,
        'lead_intent': lead.lead_intent,
        'lead_key': lead.lead_key,
        'privacy_url': site_config.privacy_url,
        'product_intent': result.product_intent,
    }
    if result.product_intent:
        payload['product_hits'] = result.product_hits
    return payload


@csrf_exempt
def chat(request: HttpRequest) -> HttpResponse:
    if request.method == 'OPTIONS':
        return HttpResponse(status=204)
    if request.method != 'POST':
        return _error('method_not_allowed', 'Use POST.', 405)

    form, error = _bind_form(request, ChatRequestForm)
    if error is not None:
        return error

    data = form.cleaned_data
    try:
        payload = answer_message(data['site_id'], data['sessionId'], data['message'])
    except SiteChatError as exc:
        if exc.status >= 500:
            logger.exception('Chat request failed for site %s', data['site_id'])
            return _error(exc.code, 'Server error.' if exc.code == 'server_error' else str(exc), exc.status)
        return _error(exc.code, str(exc), exc.status)
    except Exception:
        logger.exception('Unhandled chat error for site %s', data['site_id'])
        return _error('server_error', 'Server error.', 500)
    return JsonResponse(payload)


@csrf_exempt
def clear(request: HttpRequest) -> HttpResponse:
    if request.method == 'OPTIONS':
        return HttpResponse(status=204)
    if request.method != 'POST':
        return _error('method_not_allowed', 'Use POST.', 405)

    form, error = _bind_form(request, ClearHistoryForm)
    if error is not None:
        return error

    data = form.cleaned_data
    try:
        tenant = resolve_tenant(data['site_id'])
        ChatHistory(CacheStore(), tenant.site_id, data['sessionId']).clear()
    except SiteChatError as exc:
        return _error(exc.code, str(exc), exc.status)
    except Exception:
        logger.exception('Unhandled clear error for site %s', data['site_id'])
        return _error('server_error', 'Server error.', 500)
    return JsonResponse({'ok': True})
