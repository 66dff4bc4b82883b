import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx
from fastapi import Request

from rewrite_proxy.errors import FetchError
from rewrite_proxy.utils.exception_logging import format_exception_message
from rewrite_proxy.vars import PROXY_TIMEOUT, UPSTREAM_URL

logger = logging.getLogger("uvicorn.error")

# Scope key holding the absolute-form request target (forward proxy requests)
ABSOLUTE_TARGET_KEY = "rewrite_proxy.absolute_target"

# Recomputed by the transport from the forwarded body
FRAMING_HEADERS = {"content-length", "transfer-encoding"}

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


@dataclass(frozen=True)
class ProxySettings:
    timeout: float = PROXY_TIMEOUT
    upstream_url: str = UPSTREAM_URL


def normalize_url(url: str) -> str:
    """Fill in the scheme when missing: https for port 443, http otherwise."""
    if _SCHEME.match(url):
        return url
    scheme = "https" if ":443" in url else "http"
    if url.startswith("//"):
        return f"{scheme}:{url}"
    return f"{scheme}://{url}"


def get_target_url(request: Request, upstream_url: str = "") -> str:
    """Construct the normalized upstream URL for an inbound request."""
    absolute_target = request.scope.get(ABSOLUTE_TARGET_KEY)
    if absolute_target:
        return normalize_url(absolute_target)

    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    if not path.startswith("/"):
        path = "/" + path

    query_string = request.scope.get("query_string", b"").decode("latin-1")
    if query_string:
        path = f"{path}?{query_string}"

    if upstream_url:
        return normalize_url(upstream_url.rstrip("/") + path)
    return normalize_url(f"//{request.headers.get('host', '')}{path}")


def outbound_headers(
    raw_headers: Iterable[Tuple[bytes, bytes]], upstream_host: Optional[str] = None
) -> List[Tuple[str, str]]:
    """
    Mirror inbound headers for the upstream request.

    Multi-value headers stay separate entries. In reverse proxy mode the Host
    header names the upstream.
    """
    headers = []
    for name, value in raw_headers:
        key = name.decode("latin-1")
        lower = key.lower()
        if lower in FRAMING_HEADERS:
            continue
        if upstream_host and lower == "host":
            headers.append((key, upstream_host))
            continue
        headers.append((key, value.decode("latin-1")))
    return headers


def upstream_host(upstream_url: str) -> Optional[str]:
    if not upstream_url:
        return None
    return urlsplit(normalize_url(upstream_url)).netloc or None


def build_upstream_client(settings: ProxySettings) -> httpx.AsyncClient:
    # The proxy trusts whatever it forwards to: no certificate validation
    return httpx.AsyncClient(
        verify=False,
        timeout=httpx.Timeout(settings.timeout),
        follow_redirects=False,
    )


async def fetch(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: List[Tuple[str, str]],
    body: bytes = b"",
) -> httpx.Response:
    """
    Send the mirrored request upstream, single attempt, body left unread.

    The request is built directly so the client's default headers are not
    merged into the mirrored ones.
    """
    try:
        outbound = httpx.Request(
            method,
            url,
            headers=headers,
            content=body or None,
            extensions={"timeout": client.timeout.as_dict()},
        )
        return await client.send(outbound, stream=True)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(url, format_exception_message(exc)) from exc


async def read_body(response: httpx.Response, url: str) -> bytes:
    """Read the raw (still encoded) body; the response is always closed."""
    try:
        return b"".join([chunk async for chunk in response.aiter_raw()])
    except httpx.HTTPError as exc:
        raise FetchError(url, format_exception_message(exc)) from exc
    finally:
        await response.aclose()
