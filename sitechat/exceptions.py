"""Exceptions raised by the sitechat app."""

from __future__ import annotations


class SiteChatError(Exception):
    """Base class for request-level failures with a machine-readable code."""

    code = 'server_error'
    status = 500


class UnknownTenantError(SiteChatError):
    code = 'unknown_site'
    status = 400

    def __init__(self, site_id: str) -> None:
        super().__init__(f'Unknown siteId: {site_id}')
        self.site_id = site_id


class MissingCredentialError(SiteChatError):
    code = 'missing_api_key'
    status = 500


class FetchError(SiteChatError):
    """A remote document could not be fetched (network failure or non-2xx)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f'{url} -> {reason}')
        self.url = url
        self.reason = reason


class CompletionError(SiteChatError):
    """The completion provider call failed."""
