"""Database models for the sitechat app.

A tenant is one customer website served by the chat backend. Only the
identifier and base URL live in the database; everything else about the
site comes from its remote configuration document at request time.
"""

from __future__ import annotations

from urllib.parse import urlparse

from django.db import models


class Tenant(models.Model):
    """A customer website the chat widget may be embedded on."""

    site_id = models.SlugField(max_length=100, unique=True)
    base_url = models.URLField()
    name = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['site_id']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.site_id

    @property
    def hostname(self) -> str:
        host = (urlparse(self.base_url).hostname or '').lower()
        return host[4:] if host.startswith('www.') else host
