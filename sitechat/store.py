"""Key-value store facade over Django's cache framework, and chat history.

Every operation is fail-soft: a broken or unreachable backend is logged
and reported as an absent value (``None``) or ``False`` so callers keep
working without a cache.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.cache import caches

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_WINDOW = 20
DEFAULT_HISTORY_MAX = 40
DEFAULT_HISTORY_TTL = 60 * 60 * 24


def cache_key(site_id: str, suffix: str) -> str:
    return f'{site_id}:{suffix}'


def _slice_range(items: List[Any], start: int, end: int) -> List[Any]:
    """Inclusive ``start``..``end`` slice with negative indexes counted from the end."""

    length = len(items)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    if end < start:
        return []
    return items[start:end + 1]


class CacheStore:
    """get/set/list/expire/delete over a configured cache alias."""

    def __init__(self, cache_alias: str = 'default') -> None:
        self.cache_alias = cache_alias

    @property
    def cache(self):
        return caches[self.cache_alias]

    def get(self, key: str) -> Optional[Any]:
        try:
            return self.cache.get(key)
        except Exception:
            logger.warning('Cache get failed for %s', key, exc_info=True)
            return None

    def set(self, key: str, value: Any, ttl: int | None) -> bool:
        try:
            self.cache.set(key, value, timeout=ttl)
        except Exception:
            logger.warning('Cache set failed for %s', key, exc_info=True)
            return False
        return True

    def list_append(self, key: str, value: Any, ttl: int | None, max_length: int | None = None) -> bool:
        """Append to the list under ``key``, keeping only the newest ``max_length`` items.

        Concurrent appends to the same key are last-write-wins.
        """

        items = self.get(key)
        if not isinstance(items, list):
            items = []
        items.append(value)
        if max_length is not None and len(items) > max_length:
            items = items[-max_length:]
        return self.set(key, items, ttl)

    def list_range(self, key: str, start: int, end: int) -> List[Any]:
        items = self.get(key)
        if not isinstance(items, list):
            return []
        return _slice_range(items, start, end)

    def expire(self, key: str, ttl: int) -> bool:
        try:
            return bool(self.cache.touch(key, timeout=ttl))
        except Exception:
            logger.warning('Cache expire failed for %s', key, exc_info=True)
            return False

    def delete(self, key: str) -> bool:
        try:
            self.cache.delete(key)
        except Exception:
            logger.warning('Cache delete failed for %s', key, exc_info=True)
            return False
        return True


class ChatHistory:
    """Per-session list of JSON-encoded ``{role, content}`` records."""

    def __init__(
        self,
        store: CacheStore,
        site_id: str,
        session_id: str,
        *,
        max_messages: int | None = None,
        ttl: int | None = None,
    ) -> None:
        self.store = store
        self.key = cache_key(site_id, f'chat:{session_id}')
        self.max_messages = max_messages or getattr(settings, 'SITECHAT_HISTORY_MAX', DEFAULT_HISTORY_MAX)
        self.ttl = ttl or getattr(settings, 'SITECHAT_HISTORY_TTL', DEFAULT_HISTORY_TTL)

    def window(self, size: int | None = None) -> List[Dict[str, str]]:
        """Return the newest ``size`` well-formed messages, oldest first."""

        size = size or getattr(settings, 'SITECHAT_HISTORY_WINDOW', DEFAULT_HISTORY_WINDOW)
        messages: List[Dict[str, str]] = []
        for raw in self.store.list_range(self.key, -self.max_messages, -1):
            try:
                record = json.loads(raw) if isinstance(raw, str) else raw
            except ValueError:
                continue
            if not isinstance(record, dict):
                continue
            role, content = record.get('role'), record.get('content')
            if role in ('user', 'assistant') and isinstance(content, str):
                messages.append({'role': role, 'content': content})
        return messages[-size:]

    def append(self, role: str, content: str) -> bool:
        record = json.dumps({'role': role, 'content': content}, ensure_ascii=False)
        return self.store.list_append(self.key, record, self.ttl, max_length=self.max_messages)

    def record_exchange(self, user_message: str, reply: str) -> None:
        self.append('user', user_message)
        self.append('assistant', reply)
        self.store.expire(self.key, self.ttl)

    def clear(self) -> bool:
        return self.store.delete(self.key)
