import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from rewrite_proxy.errors import FetchError, ResponseUnsetError
from rewrite_proxy.proxy import metrics
from rewrite_proxy.proxy.content import (
    decode_body,
    encode_body,
    is_gzip,
    is_html,
    ssl_rewrite,
)
from rewrite_proxy.proxy.upstream import (
    ProxySettings,
    fetch,
    get_target_url,
    outbound_headers,
    read_body,
    upstream_host,
)
from rewrite_proxy.rules.document import Document
from rewrite_proxy.rules.engine import apply_modifications
from rewrite_proxy.rules.models import Config
from rewrite_proxy.utils.exception_logging import log_exception_with_details
from rewrite_proxy.utils.traced_requests import traced_request

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Responses that never carry a body (RFC 9110)
BODYLESS_STATUSES = {204, 304}

# Hop-by-hop headers belong to a single connection; the ASGI server frames
# the outbound response itself (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


def relay_headers(
    raw_headers: Iterable[Tuple[bytes, bytes]], content_length: Optional[int] = None
) -> List[Tuple[bytes, bytes]]:
    """
    Upstream headers for the outbound response, in order and with repeated
    headers kept. When content_length is given it replaces Content-Length.
    """
    headers = []
    for name, value in raw_headers:
        lower = name.lower()
        if lower.decode("latin-1") in HOP_BY_HOP_HEADERS:
            continue
        if content_length is not None and lower == b"content-length":
            continue
        headers.append((lower, value))
    if content_length is not None:
        headers.append((b"content-length", str(content_length).encode("latin-1")))
    return headers


def bad_gateway() -> Response:
    return Response(content="Bad gateway", status_code=502, media_type="text/plain")


class RewriteProxy:
    """
    Fetches the upstream response for an inbound request and relays it,
    rewriting HTML bodies with the configured modifications. Whenever the
    body cannot be transformed the upstream response is passed through.
    """

    def __init__(
        self,
        config: Config,
        client: httpx.AsyncClient,
        settings: Optional[ProxySettings] = None,
    ):
        self.config = config
        self.client = client
        self.settings = settings or ProxySettings()
        self._upstream_host = upstream_host(self.settings.upstream_url)

    async def handle(self, request: Request) -> Response:
        url = get_target_url(request, self.settings.upstream_url)
        with traced_request(
            tracer,
            operation="proxy_request",
            method=request.method,
            target_url=url,
            start_message=f"[Proxy] Processing: {request.method} {url}",
        ) as span:
            response = None
            try:
                response = await fetch(
                    self.client,
                    request.method,
                    url,
                    outbound_headers(request.headers.raw, self._upstream_host),
                    await request.body(),
                )
            except FetchError as exc:
                log_exception_with_details(logger, "[Proxy]", exc)
                return self._passthrough_or_bad_gateway(response, url, span)

            span.set_attribute("proxy.status_code", response.status_code)
            if request.method == "HEAD" or response.status_code in BODYLESS_STATUSES:
                return self.passthrough(response, span, reason="no_body")
            content_type = response.headers.get("content-type", "")
            if not is_html(content_type):
                return self.passthrough(response, span, reason="not_html")

            try:
                raw = await read_body(response, url)
            except FetchError as exc:
                log_exception_with_details(logger, "[Proxy] Cannot read body:", exc)
                return self._passthrough_or_bad_gateway(None, url, span)
            if not raw:
                return self.passthrough_buffered(response, raw, span, reason="no_body")

            try:
                # BeautifulSoup work runs off the event loop
                payload, applied = await asyncio.to_thread(
                    self.transform, raw, response.headers, url
                )
            except Exception as exc:
                log_exception_with_details(
                    logger, f"[Proxy] Cannot proxy content for {url}:", exc, logging.WARNING
                )
                return self.passthrough_buffered(
                    response, raw, span, reason=type(exc).__name__
                )

            span.set_attribute("proxy.outcome", "transformed")
            span.set_attribute("proxy.rules_applied", applied)
            metrics.TRANSFORMED.inc()
            metrics.RULES_APPLIED.inc(applied)
            logger.debug(f"[Proxy] Applied {applied} modifications to {url}")

            result = Response(content=payload, status_code=response.status_code)
            result.raw_headers = relay_headers(response.headers.raw, len(payload))
            return result

    def transform(
        self, raw: bytes, headers: httpx.Headers, url: str
    ) -> Tuple[bytes, int]:
        """Decode, modify and re-encode an HTML body. Returns the body and the applied rule count."""
        content_encoding = headers.get("content-encoding")
        decoded = decode_body(raw, content_encoding, headers.get("content-type"))
        document = Document(decoded.text)
        applied = apply_modifications(document, self.config.modifications, url)
        text = ssl_rewrite(document.html(), self.config.ssl_rewrite)
        return encode_body(text, decoded.charset, is_gzip(content_encoding)), applied

    def passthrough(
        self, response: Optional[httpx.Response], span, reason: str
    ) -> Response:
        """Relay the unread upstream response as-is, streaming its raw body."""
        if response is None:
            raise ResponseUnsetError()
        span.set_attribute("proxy.outcome", "passthrough")
        metrics.PASSTHROUGH.labels(reason=reason).inc()
        streaming = StreamingResponse(
            response.aiter_raw(),
            status_code=response.status_code,
            background=BackgroundTask(response.aclose),
        )
        streaming.raw_headers = relay_headers(response.headers.raw)
        return streaming

    def passthrough_buffered(
        self, response: httpx.Response, raw: bytes, span, reason: str
    ) -> Response:
        """Relay an upstream response whose raw body was already read."""
        span.set_attribute("proxy.outcome", "passthrough")
        metrics.PASSTHROUGH.labels(reason=reason).inc()
        result = Response(content=raw, status_code=response.status_code)
        result.raw_headers = relay_headers(response.headers.raw, len(raw))
        return result

    def _passthrough_or_bad_gateway(
        self, response: Optional[httpx.Response], url: str, span
    ) -> Response:
        try:
            return self.passthrough(response, span, reason="fetch_error")
        except ResponseUnsetError as exc:
            logger.error(f"[Proxy] Cannot passthrough {url} because of {exc}")
            span.set_attribute("proxy.outcome", "bad_gateway")
            return bad_gateway()
