from __future__ import annotations

import logging
from typing import Callable, FrozenSet
from urllib.parse import urlparse

from django.conf import settings
from django.core.cache import caches
from django.http import HttpRequest, HttpResponse

from .engine.links import normalize_host
from .models import Tenant

logger = logging.getLogger(__name__)

DEFAULT_CORS_PATH_PREFIX = '/api/'
DEFAULT_CORS_CACHE_TTL = 60  # seconds
DEFAULT_CORS_CACHE_KEY = 'sitechat:cors:hosts'


class TenantCorsMiddleware:
    """Echo CORS headers for origins that belong to an active tenant.

    An origin is allowed when its hostname, ignoring a leading ``www.``,
    equals a tenant's host or is a subdomain of it. Tenant hosts are cached
    briefly in the configured cache backend.
    """

    def __init__(
        self,
        get_response: Callable[[HttpRequest], HttpResponse],
        *,
        path_prefix: str | None = None,
        cache_alias: str = 'default',
        cache_ttl: int | None = None,
    ) -> None:
        self.get_response = get_response
        self.path_prefix = path_prefix or getattr(settings, 'SITECHAT_CORS_PATH_PREFIX', DEFAULT_CORS_PATH_PREFIX)
        self.cache = caches[cache_alias]
        self.cache_ttl = cache_ttl or getattr(settings, 'SITECHAT_CORS_CACHE_TTL', DEFAULT_CORS_CACHE_TTL)

    def __call__(self, request: HttpRequest) -> HttpResponse:
        response = self.get_response(request)
        if not request.path.startswith(self.path_prefix):
            return response

        origin = request.headers.get('Origin', '')
        if origin and self.is_allowed_origin(origin):
            response['Access-Control-Allow-Origin'] = origin
            response['Access-Control-Allow-Methods'] = 'POST, OPTIONS'
            response['Access-Control-Allow-Headers'] = 'Content-Type'
            vary = response.get('Vary')
            response['Vary'] = f'{vary}, Origin' if vary else 'Origin'
        return response

    def is_allowed_origin(self, origin: str) -> bool:
        try:
            host = normalize_host(urlparse(origin).hostname)
        except ValueError:
            return False
        if not host:
            return False
        return any(host == tenant_host or host.endswith('.' + tenant_host) for tenant_host in self._tenant_hosts())

    def _tenant_hosts(self) -> FrozenSet[str]:
        try:
            hosts = self.cache.get(DEFAULT_CORS_CACHE_KEY)
        except Exception:
            logger.warning('Tenant host cache unavailable', exc_info=True)
            hosts = None
        if hosts is None:
            hosts = frozenset(
                tenant.hostname
                for tenant in Tenant.objects.filter(is_active=True)
                if tenant.hostname
            )
            try:
                self.cache.set(DEFAULT_CORS_CACHE_KEY, hosts, timeout=self.cache_ttl)
            except Exception:
                logger.warning('Could not cache tenant hosts', exc_info=True)
        return hosts


def tenant_cors(get_response: Callable[[HttpRequest], HttpResponse]) -> TenantCorsMiddleware:
    return TenantCorsMiddleware(get_response)
