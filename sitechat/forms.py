"""Forms validating the JSON payloads of the chat endpoints.

The widget posts camelCase keys (``sessionId``, ``siteId``), so the field
names mirror the wire format. ``tenantId`` is accepted as an alias of
``siteId``.
"""

from __future__ import annotations

from typing import Any, Dict

from django import forms
from django.conf import settings

MAX_MESSAGE_LENGTH = 4000


class _TenantScopedForm(forms.Form):
    sessionId = forms.CharField(max_length=200)
    siteId = forms.SlugField(max_length=100, required=False)
    tenantId = forms.SlugField(max_length=100, required=False)

    def clean(self) -> Dict[str, Any]:  # type: ignore[override]
        cleaned_data = super().clean()
        site_id = (
            cleaned_data.get('siteId')
            or cleaned_data.get('tenantId')
            or getattr(settings, 'SITECHAT_DEFAULT_SITE_ID', '')
        )
        if not site_id:
            raise forms.ValidationError('You must provide a siteId.', code='missing_site')
        cleaned_data['site_id'] = site_id
        return cleaned_data


class ChatRequestForm(_TenantScopedForm):
    """Payload of ``POST /api/chat``."""

    message = forms.CharField(max_length=MAX_MESSAGE_LENGTH, strip=True)


class ClearHistoryForm(_TenantScopedForm):
    """Payload of ``POST /api/clear``."""
