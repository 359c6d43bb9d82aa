from __future__ import annotations

from collections.abc import Mapping

REDACTED = "***REDACTED***"

_CREDENTIAL_HEADERS = frozenset(
    {"authorization", "proxy-authorization", "x-api-key", "api-key", "cookie", "set-cookie"}
)
_CREDENTIAL_MARKERS = ("key", "token", "secret", "auth", "cookie")


def _is_sensitive(name: str) -> bool:
    lowered = name.lower()
    return lowered in _CREDENTIAL_HEADERS or any(marker in lowered for marker in _CREDENTIAL_MARKERS)


def sanitize_headers_for_log(
    headers: Mapping[str, str], *, mask_token: str = REDACTED
) -> dict[str, str]:
    """Copy of `headers` that is safe to log; credential-looking values are replaced."""
    return {name: mask_token if _is_sensitive(name) else value for name, value in headers.items()}


def mask_api_key(key: str) -> str:
    """Keep the first and last third of a key and star out the middle third."""
    third = len(key) // 3
    if third == 0:
        return "*" * len(key)
    return key[:third] + "*" * (len(key) - 2 * third) + key[len(key) - third :]


__all__ = ["REDACTED", "mask_api_key", "sanitize_headers_for_log"]
