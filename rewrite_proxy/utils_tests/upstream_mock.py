import gzip
from typing import List, Optional, Sequence, Tuple

import httpx


def upstream_response(
    status_code: int = 200,
    headers: Optional[Sequence[Tuple[str, str]]] = None,
    body: bytes = b"",
) -> httpx.Response:
    """An upstream response whose raw body is still unread, like a live stream."""
    return httpx.Response(
        status_code, headers=list(headers or []), stream=httpx.ByteStream(body)
    )


def gzip_bytes(text: str, charset: str = "utf-8") -> bytes:
    return gzip.compress(text.encode(charset))


class RecordingUpstream:
    """MockTransport handler that records requests and answers with one canned response."""

    def __init__(
        self,
        status_code: int = 200,
        headers: Optional[Sequence[Tuple[str, str]]] = None,
        body: bytes = b"",
        error: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.headers = list(headers or [])
        self.body = body
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return upstream_response(self.status_code, self.headers, self.body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), timeout=5)
