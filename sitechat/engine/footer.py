"""Provenance footer."""

from __future__ import annotations

from .links import is_internal
from .sanitize import MD_LINK_RE

DEFAULT_FOOTER = "*Källa: {name}*"
DEFAULT_MARKER = "Källa:"


def has_internal_link(reply: str, host: str | None) -> bool:
    return any(is_internal(match.group(2), host) for match in MD_LINK_RE.finditer(reply))


def add_footer_if_needed(
    reply: str,
    tenant_name: str,
    has_internal_link: bool,
    *,
    template: str = DEFAULT_FOOTER,
    marker: str = DEFAULT_MARKER,
) -> str:
    """Append the source line once, and only when the reply links into the site."""

    if not has_internal_link or not tenant_name:
        return reply
    if marker and marker in reply:
        return reply
    footer = template.format(name=tenant_name)
    return f"{reply.rstrip()}\n\n{footer}" if reply.strip() else footer
