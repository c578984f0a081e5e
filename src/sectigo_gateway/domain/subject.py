"""
Subject and SAN helpers for enrollment submissions.

Pure functions: no I/O, no logging.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

_ESCAPED = re.compile(r"\\(.)")


def _split_components(subject: str) -> list[str]:
    """Split on commas that are neither backslash-escaped nor inside a quoted value."""
    components: list[str] = []
    current: list[str] = []
    quoted = escaped = False
    for ch in subject:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            current.append(ch)
            escaped = True
        elif ch == '"':
            current.append(ch)
            quoted = not quoted
        elif ch == "," and not quoted:
            components.append("".join(current))
            current = []
        else:
            current.append(ch)
    components.append("".join(current))
    return components


def _unescape(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return _ESCAPED.sub(r"\1", value)


def parse_rdn(subject: str, attribute: str) -> str | None:
    """
    Value of the first `attribute=` component of a distinguished name, or None.

    Values may escape special characters with a backslash or be double-quoted.

        >>> parse_rdn("CN=a.com,O=Acme\\\\, Inc.,C=US", "O")
        'Acme, Inc.'
        >>> parse_rdn('CN=a.com,O="Acme, Inc.",C=US', "O")
        'Acme, Inc.'
    """
    wanted = attribute.strip().upper()
    for component in _split_components(subject):
        key, sep, value = component.partition("=")
        if sep and key.strip().upper() == wanted:
            return _unescape(value)
    return None


def flatten_sans(sans: Mapping[str, Sequence[str]]) -> list[str]:
    """All SAN values across categories (dns, ip4, ip6, ...) in insertion order."""
    return [value for values in sans.values() for value in values]


def compose_san_list(sans: Sequence[str], common_name: str | None, multi_domain: bool) -> str:
    """
    Comma-separated SAN string to submit.

    Single-domain: the common name is dropped only when other entries remain, so a
    certificate whose only SAN is its CN keeps it. Multi-domain: the common name is
    always dropped.
    """
    entries = list(sans)
    if common_name and common_name in entries:
        if multi_domain or len(entries) > 1:
            entries.remove(common_name)
    return ",".join(entries)
