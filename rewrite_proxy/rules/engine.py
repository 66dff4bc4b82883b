import logging
import re
from typing import Iterable

from rewrite_proxy.errors import RuleError
from rewrite_proxy.rules.document import Document, ElementHandle
from rewrite_proxy.rules.models import Modification, ModificationMode, WRAPPER_MARKER
from rewrite_proxy.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

_WHITESPACE_RUN = re.compile(r"\s+")


def trim(value: str) -> str:
    """Collapse every whitespace run into one space and strip both ends."""
    return _WHITESPACE_RUN.sub(" ", value).strip()


def wrap(value: str, wrapper: str) -> str:
    if not wrapper or WRAPPER_MARKER not in wrapper:
        return value
    return wrapper.replace(WRAPPER_MARKER, value, 1)


def url_matches(pattern: str, url: str) -> bool:
    """
    Whether the rule pattern matches the request URL.

    A malformed pattern does not block the rule.
    """
    try:
        return re.search(pattern, url) is not None
    except re.error as exc:
        logger.warning(f"[Rules] Invalid urlMatch {pattern!r} ignored ({exc})")
        return True


def extract_value(element: ElementHandle, mod: Modification) -> str:
    if mod.attribute:
        return element.attribute(mod.attribute) or ""
    return element.text()


def apply_modification(document: Document, mod: Modification, url: str) -> bool:
    """
    Apply a single rule to the document.

    Returns False when the rule does not apply to this URL or document, raises
    RuleError when it cannot be resolved.
    """
    if not url_matches(mod.url_match, url):
        return False

    matches = document.find(mod.selector)
    if mod.index < 0 or mod.index >= len(matches):
        raise RuleError(
            f"No element found for selector {mod.selector} on index {mod.index}",
            mod.selector,
        )
    source = matches[mod.index]

    mode = mod.mode
    if mode is None:
        raise RuleError(f"No action (replace/append) found for selector {mod.selector}")
    targets = document.find(mod.destination)
    if not targets:
        raise RuleError(
            f"No element found for selector {mod.destination}", mod.destination
        )

    value = extract_value(source, mod)
    if mod.trim:
        value = trim(value)
    value = wrap(value, mod.wrapper)

    for target in targets:
        if mode is ModificationMode.APPEND:
            target.append_html(value)
        else:
            target.replace_with_html(value)
    return True


def apply_modifications(
    document: Document, modifications: Iterable[Modification], url: str
) -> int:
    """
    Apply every rule in order and return how many were applied.

    Rules are isolated: a failing rule is logged and skipped, later rules see
    the document as left by the earlier ones.
    """
    applied = 0
    for position, mod in enumerate(modifications):
        try:
            if apply_modification(document, mod, url):
                applied += 1
        except RuleError as exc:
            logger.info(f"[Rules] Rule {position} skipped: {exc} ({url})")
        except Exception as exc:
            log_exception_with_details(
                logger, f"[Rules] Rule {position} failed ({url})", exc, logging.WARNING
            )
    return applied
