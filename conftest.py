# Ensure tests import modules from this service directory first.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from rewrite_proxy.rules.models import Config, Modification  # noqa: E402


@pytest.fixture
def product_page():
    """A small upstream page with a source element and two destinations."""
    return (
        "<html><head><title>Shop</title></head><body>"
        '<div id="title">Old title</div>'
        '<span class="zip"> 26721\t\t\tEmden </span>'
        '<a id="more" href="https://cdn.example.com/more">More</a>'
        '<ul id="list"><li>a</li><li>b</li></ul>'
        "</body></html>"
    )


@pytest.fixture
def zip_rule():
    return Modification(
        urlMatch="/products",
        selector="span.zip",
        trim=True,
        wrapper="<li>%s</li>",
        appendTo="#list",
    )


@pytest.fixture
def config_with(zip_rule):
    def _config(*modifications, ssl_rewrite=()):
        return Config(
            modifications=modifications or (zip_rule,), sslRewrite=ssl_rewrite
        )

    return _config
