from urllib.parse import unquote, urlsplit

from fastapi import APIRouter, Request
from fastapi.responses import Response

from rewrite_proxy.proxy.upstream import ABSOLUTE_TARGET_KEY

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def absolute_target(scope) -> str:
    """The absolute-form request target (``GET http://host/path``), or ""."""
    raw_path = scope.get("raw_path") or scope.get("path", "").encode("latin-1")
    target = raw_path.decode("latin-1")
    if not target.lower().startswith(("http://", "https://")):
        return ""
    query_string = scope.get("query_string", b"")
    if query_string:
        target = f"{target}?{query_string.decode('latin-1')}"
    return target


class AbsoluteFormTargetMiddleware:
    """
    Forward proxy clients send absolute-form targets. Depending on the HTTP
    implementation of the server the scope path then holds the full URL,
    which no route matches. Keep the URL aside and route on its path.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            target = absolute_target(scope)
            if target:
                parsed = urlsplit(target)
                path = parsed.path or "/"
                scope = dict(scope)
                scope[ABSOLUTE_TARGET_KEY] = target
                scope["path"] = unquote(path)
                scope["raw_path"] = path.encode("latin-1")
                scope["query_string"] = parsed.query.encode("latin-1")
        await self.app(scope, receive, send)


# Register catch-all route for proxying
@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(request: Request, path: str) -> Response:
    """Catch-all route that proxies all requests to the upstream."""
    return await request.app.state.proxy.handle(request)
