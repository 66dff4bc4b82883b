"""
Error kinds of the transformation pipeline.

Errors are grouped by the tier that handles them:

- ``RecoverableError``: handled where it happens (a rule is skipped, a
  charset conversion falls back to the raw bytes); the request continues.
- ``RequestFatalError``: the request stops transforming and the original
  upstream response is passed through.
- ``StartupError``: the process does not start.
"""

from typing import Optional


class ProxyError(Exception):
    tier = "unknown"


class RecoverableError(ProxyError):
    tier = "recoverable"


class RequestFatalError(ProxyError):
    tier = "request-fatal"


class StartupError(ProxyError):
    tier = "startup-fatal"


class TranscodeError(RecoverableError):
    def __init__(self, charset: str, reason: str):
        super().__init__(f"Cannot convert {charset} to utf-8: {reason}")
        self.charset = charset


class RuleError(RecoverableError):
    def __init__(self, message: str, selector: Optional[str] = None):
        super().__init__(message)
        self.selector = selector


class FetchError(RequestFatalError):
    def __init__(self, url: str, reason: str):
        super().__init__(f"Error requesting {url} because of {reason}")
        self.url = url


class DecodeError(RequestFatalError):
    pass


class ParseError(RequestFatalError):
    pass


class EncodeError(RequestFatalError):
    pass


class ResponseUnsetError(RequestFatalError):
    def __init__(self):
        super().__init__("Response is unset")


class ConfigError(StartupError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot load configuration from {path}: {reason}")
        self.path = path
