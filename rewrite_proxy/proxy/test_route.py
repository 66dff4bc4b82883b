import pytest

from rewrite_proxy.proxy.route import AbsoluteFormTargetMiddleware, absolute_target
from rewrite_proxy.proxy.upstream import ABSOLUTE_TARGET_KEY


def http_scope(raw_path, query_string=b""):
    return {
        "type": "http",
        "method": "GET",
        "path": raw_path.decode("latin-1"),
        "raw_path": raw_path,
        "query_string": query_string,
        "headers": [],
    }


class RecordingApp:
    def __init__(self):
        self.scopes = []

    async def __call__(self, scope, receive, send):
        self.scopes.append(scope)


def test_origin_form_has_no_absolute_target():
    assert absolute_target(http_scope(b"/products")) == ""


def test_absolute_target_includes_query():
    scope = http_scope(b"http://shop.test/products", b"page=2")

    assert absolute_target(scope) == "http://shop.test/products?page=2"


def test_absolute_target_scheme_is_case_insensitive():
    assert absolute_target(http_scope(b"HTTPS://shop.test/")) == "HTTPS://shop.test/"


@pytest.mark.asyncio
async def test_middleware_routes_on_the_target_path():
    app = RecordingApp()
    middleware = AbsoluteFormTargetMiddleware(app)
    scope = http_scope(b"http://shop.test/a%20b", b"x=1")

    await middleware(scope, None, None)

    forwarded = app.scopes[0]
    assert forwarded[ABSOLUTE_TARGET_KEY] == "http://shop.test/a%20b?x=1"
    assert forwarded["path"] == "/a b"
    assert forwarded["raw_path"] == b"/a%20b"
    assert forwarded["query_string"] == b"x=1"
    # the server's scope is not mutated
    assert scope["raw_path"] == b"http://shop.test/a%20b"


@pytest.mark.asyncio
async def test_middleware_defaults_to_root_path():
    app = RecordingApp()

    await AbsoluteFormTargetMiddleware(app)(http_scope(b"http://shop.test"), None, None)

    assert app.scopes[0]["path"] == "/"


@pytest.mark.asyncio
async def test_middleware_leaves_origin_form_alone():
    app = RecordingApp()
    scope = http_scope(b"/products", b"q=1")

    await AbsoluteFormTargetMiddleware(app)(scope, None, None)

    assert app.scopes[0] is scope


@pytest.mark.asyncio
async def test_middleware_ignores_lifespan():
    app = RecordingApp()
    scope = {"type": "lifespan"}

    await AbsoluteFormTargetMiddleware(app)(scope, None, None)

    assert app.scopes == [scope]
