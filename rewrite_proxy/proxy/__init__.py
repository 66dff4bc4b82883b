from .handler import RewriteProxy
from .upstream import ProxySettings, build_upstream_client

__all__ = ["RewriteProxy", "ProxySettings", "build_upstream_client"]
