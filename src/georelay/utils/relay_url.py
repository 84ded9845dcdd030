"""Relay URL validation and normalization with RFC 3986 parsing."""

from __future__ import annotations

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


_VALIDATOR = (
    Validator()
    .require_presence_of("scheme", "host")
    .allow_schemes("ws", "wss")
    .check_validity_of("scheme", "host", "port", "path")
)

_DEFAULT_PORTS = {"ws": 80, "wss": 443}


def normalize_relay_url(raw: str) -> str:
    """Return the canonical form of a ``ws://`` / ``wss://`` relay URL.

    Lowercases scheme and host, drops the default port, collapses duplicate
    slashes and strips the trailing slash.

    Raises:
        ValueError: If the URL is malformed, uses another scheme, or carries
            a query string or fragment.
    """
    uri = uri_reference(raw.strip()).normalize()

    try:
        _VALIDATOR.validate(uri)
    except UnpermittedComponentError:
        raise ValueError("Invalid scheme: must be ws or wss") from None
    except ValidationError as e:
        raise ValueError(f"Invalid URL: {e}") from None

    if uri.query or uri.fragment:
        raise ValueError(f"Relay URL must not contain a query or fragment: {raw!r}")

    path = uri.path or ""
    while "//" in path:
        path = path.replace("//", "/")
    path = path.rstrip("/")

    port = int(uri.port) if uri.port else None
    authority = uri.host
    if port and port != _DEFAULT_PORTS[uri.scheme]:
        authority = f"{authority}:{port}"

    return f"{uri.scheme}://{authority}{path}"


def is_relay_url(raw: str) -> bool:
    try:
        normalize_relay_url(raw)
    except ValueError:
        return False
    return True
