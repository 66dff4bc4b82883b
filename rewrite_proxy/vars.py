import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "rewrite-proxy")
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

# Rule set file, read once at startup
PROXY_CONFIG = os.environ.get("PROXY_CONFIG", "./config.json")
PROXY_HOST = os.environ.get("PROXY_HOST", "0.0.0.0")
PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))  # 5 minutes default

# Reverse proxy mode: every request goes to this base URL instead of the
# target named by the request itself
UPSTREAM_URL = os.environ.get("UPSTREAM_URL", "").rstrip("/")

# HTTPS on the listening socket only when both are set
SSL_CERTFILE = os.environ.get("SSL_CERTFILE", "")
SSL_KEYFILE = os.environ.get("SSL_KEYFILE", "")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

# The catch-all proxy route owns every path, so metrics are opt-in
METRICS_PATH = os.getenv("METRICS_PATH", "")
