import logging
import sys
from typing import Optional

import uvicorn

from rewrite_proxy.errors import ConfigError
from rewrite_proxy.proxy.upstream import ProxySettings
from rewrite_proxy.rules.repository import load_config
from rewrite_proxy.server import create_app
from rewrite_proxy.vars import (
    LOG_LEVEL,
    PROXY_CONFIG,
    PROXY_HOST,
    SSL_CERTFILE,
    SSL_KEYFILE,
)

logger = logging.getLogger("uvicorn.error")


def tls_options(certfile: str, keyfile: str) -> dict:
    """uvicorn TLS options; HTTPS only when both a certificate and a key are configured."""
    if certfile and keyfile:
        return {"ssl_certfile": certfile, "ssl_keyfile": keyfile}
    if certfile or keyfile:
        logger.warning(
            "[Server] Both SSL_CERTFILE and SSL_KEYFILE are required for HTTPS, serving plain HTTP"
        )
    return {}


def main(config_path: Optional[str] = None) -> None:
    logging.basicConfig(level=LOG_LEVEL.upper())
    path = config_path or (sys.argv[1] if len(sys.argv) > 1 else PROXY_CONFIG)
    try:
        config = load_config(path)
    except ConfigError as exc:
        logger.critical(f"[Server] {exc}")
        sys.exit(1)

    app = create_app(config, ProxySettings())
    options = tls_options(SSL_CERTFILE, SSL_KEYFILE)
    scheme = "https" if options else "http"
    logger.info(f"[Server] Listening on {scheme}://{PROXY_HOST}:{config.port}")
    uvicorn.run(app, host=PROXY_HOST, port=config.port, log_level=LOG_LEVEL, **options)


if __name__ == "__main__":
    main()
