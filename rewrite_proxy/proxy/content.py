"""
Body handling for the transformation path: classification, decoding into
text, SSL link rewriting and encoding back into the wire format.
"""

import codecs
import gzip
import logging
import zlib
from dataclasses import dataclass
from typing import Iterable, Optional

from rewrite_proxy.errors import DecodeError, EncodeError, TranscodeError

logger = logging.getLogger("uvicorn.error")

DEFAULT_CHARSET = "ISO-8859-1"
INTERNAL_CHARSET = "utf-8"
GZIP_ENCODINGS = {"gzip", "x-gzip"}
IDENTITY_ENCODINGS = {"", "identity"}
RAW_BYTE_ERRORS = "surrogateescape"


@dataclass(frozen=True)
class DecodedBody:
    text: str
    # charset the text is encoded back into on the way out
    charset: str


def is_html(content_type: Optional[str]) -> bool:
    return "text/html" in (content_type or "")


def is_gzip(content_encoding: Optional[str]) -> bool:
    return (content_encoding or "").strip().lower() in GZIP_ENCODINGS


def declared_charset(content_type: Optional[str]) -> str:
    """Everything after ``charset=``, verbatim, or ISO-8859-1 when absent."""
    content_type = content_type or ""
    marker = "charset="
    position = content_type.find(marker)
    if position == -1:
        return DEFAULT_CHARSET
    return content_type[position + len(marker):]


def decompress(raw: bytes, content_encoding: Optional[str]) -> bytes:
    encoding = (content_encoding or "").strip().lower()
    if encoding in IDENTITY_ENCODINGS:
        return raw
    if encoding in GZIP_ENCODINGS:
        try:
            return gzip.decompress(raw)
        except (OSError, EOFError, zlib.error) as exc:
            raise DecodeError(f"Cannot decompress gzip body: {exc}") from exc
    raise DecodeError(f"Unsupported content encoding {content_encoding}")


def _read_untranscoded(body: bytes) -> DecodedBody:
    # undecodable bytes survive as lone surrogates and are restored on encode
    return DecodedBody(body.decode(INTERNAL_CHARSET, errors=RAW_BYTE_ERRORS), INTERNAL_CHARSET)


def transcode(body: bytes, charset: str) -> DecodedBody:
    if charset.lower() == INTERNAL_CHARSET:
        return _read_untranscoded(body)
    try:
        codecs.lookup(charset)
        return DecodedBody(body.decode(charset), charset)
    except (LookupError, UnicodeDecodeError) as exc:
        error = TranscodeError(charset, str(exc))
        logger.warning(f"[Decoder] {error}, reading the body untranscoded")
    return _read_untranscoded(body)


def decode_body(
    raw: bytes, content_encoding: Optional[str], content_type: Optional[str]
) -> DecodedBody:
    """
    Undo transport compression and convert the body into text.

    Raises DecodeError when the body cannot be decompressed. A failed charset
    conversion is not fatal.
    """
    charset = declared_charset(content_type)
    body = decompress(raw, content_encoding)
    return transcode(body, charset)


def ssl_rewrite(text: str, hosts: Iterable[str]) -> str:
    for host in hosts:
        text = text.replace(f"https://{host}", f"http://{host}")
    return text


def encode_body(text: str, charset: str, gzip_encoded: bool) -> bytes:
    """
    Encode the text back into the wire charset, recompressing when needed.

    UTF-8 bodies restore the raw bytes kept by the decoder. Characters the
    declared charset cannot represent become numeric character references.
    """
    try:
        codec = codecs.lookup(charset)
        errors = RAW_BYTE_ERRORS if codec.name == INTERNAL_CHARSET else "xmlcharrefreplace"
        payload = text.encode(charset, errors=errors)
    except (LookupError, UnicodeEncodeError) as exc:
        raise EncodeError(f"Cannot encode body as {charset}: {exc}") from exc
    if gzip_encoded:
        payload = gzip.compress(payload)
    return payload
