"""
Read-side helpers that pull identifying fields out of an in-flight request.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.routing import Match

REQUEST_ID_HEADER = "x-request-id"
TOKEN_LENGTH = 32


def generate_token() -> str:
    """Random hex token of `TOKEN_LENGTH` characters."""
    return secrets.token_hex(TOKEN_LENGTH // 2)


def canonical_header_key(name: str) -> str:
    """MIME canonical form: ``content-type`` -> ``Content-Type``."""
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def unique_headers(headers: Headers) -> Iterator[Tuple[str, str]]:
    """Yield each header name once, in arrival order, with its first value."""
    seen = set()
    for key in headers.keys():
        if key in seen:
            continue
        seen.add(key)
        yield canonical_header_key(key), headers[key]


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else ""


def remote_addr(request: Request) -> str:
    client = request.client
    if client is None:
        return ""
    return f"{client.host}:{client.port}"


def request_uri(scope: Mapping[str, Any]) -> str:
    """Path and query string as sent by the client."""
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


def resolve_route(scope: Mapping[str, Any]) -> Tuple[str, Dict[str, str]]:
    """Find the route template and path params the router will dispatch to.

    A path-only match (wrong method) is used when nothing matches fully.
    Returns ``("", {})`` when the application exposes no routes or none of
    them matches.
    """
    app = scope.get("app")
    routes = getattr(app, "routes", None) or []
    partial = None
    for route in routes:
        match, child_scope = route.matches(scope)
        if match == Match.FULL:
            return _route_details(route, child_scope)
        if match == Match.PARTIAL and partial is None:
            partial = (route, child_scope)
    if partial is not None:
        return _route_details(*partial)
    return "", {}


def _route_details(route: Any, child_scope: Mapping[str, Any]) -> Tuple[str, Dict[str, str]]:
    params = child_scope.get("path_params", {})
    template = getattr(route, "path", "")
    return template, {name: str(value) for name, value in params.items()}


def basic_auth_user(request: Request) -> Optional[str]:
    """Username from an ``Authorization: Basic`` header, if well formed."""
    authorization = request.headers.get("authorization")
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "basic":
        return None
    try:
        decoded = base64.b64decode(credentials.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, _ = decoded.partition(":")
    if not sep:
        return None
    return username


def request_id(request_headers: Headers, response_headers: Optional[Headers] = None) -> str:
    """Request id from the request, then the response, else a fresh token."""
    value = request_headers.get(REQUEST_ID_HEADER)
    if not value and response_headers is not None:
        value = response_headers.get(REQUEST_ID_HEADER)
    return value or generate_token()
