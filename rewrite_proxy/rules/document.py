"""
Mutable HTML document backed by BeautifulSoup.

The modification engine only relies on this small surface: find elements by
CSS selector, read an attribute or the first text child, append an HTML
fragment, replace an element with an HTML fragment, and serialize.
"""

from typing import List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.dammit import EntitySubstitution
from bs4.element import PreformattedString
from bs4.formatter import HTMLFormatter
from soupsieve import SelectorSyntaxError

from rewrite_proxy.errors import EncodeError, ParseError, RuleError

HTML_PARSER = "html.parser"


class SourceOrderFormatter(HTMLFormatter):
    """The "minimal" formatter without the alphabetical attribute sort."""

    def attributes(self, tag):
        if tag.attrs is None:
            return []
        return list(tag.attrs.items())


SOURCE_ORDER = SourceOrderFormatter(entity_substitution=EntitySubstitution.substitute_xml)


def _parse(markup: str, parser: str) -> BeautifulSoup:
    # multi_valued_attributes=None keeps class/rel values as the original strings
    return BeautifulSoup(markup, parser, multi_valued_attributes=None)


class ElementHandle:
    def __init__(self, tag: Tag, parser: str = HTML_PARSER):
        self._tag = tag
        self._parser = parser

    @property
    def name(self) -> str:
        return self._tag.name

    def attribute(self, name: str) -> Optional[str]:
        for key, value in self._tag.attrs.items():
            if key == name:
                return value
        return None

    def text(self) -> str:
        """Content of the first text node child, empty when there is none."""
        for child in self._tag.children:
            if isinstance(child, NavigableString) and not isinstance(
                child, PreformattedString
            ):
                return str(child)
        return ""

    def _fragment(self, html: str) -> list:
        return list(_parse(html, self._parser).contents)

    def append_html(self, html: str) -> None:
        for node in self._fragment(html):
            self._tag.append(node)

    def replace_with_html(self, html: str) -> None:
        if self._tag.parent is None:
            raise RuleError(f"Element <{self._tag.name}> has no parent to replace in")
        nodes = self._fragment(html)
        if nodes:
            self._tag.replace_with(*nodes)
        else:
            self._tag.extract()

    def __repr__(self) -> str:
        return f"ElementHandle(<{self._tag.name}>)"


class Document:
    def __init__(self, text: str, parser: str = HTML_PARSER):
        self._parser = parser
        try:
            self._soup = _parse(text, parser)
        except Exception as exc:
            raise ParseError(f"Cannot parse document: {exc}") from exc

    def find(self, selector: str) -> List[ElementHandle]:
        try:
            tags = self._soup.select(selector)
        except SelectorSyntaxError as exc:
            raise RuleError(f"Invalid selector {selector}: {exc}", selector) from exc
        return [ElementHandle(tag, self._parser) for tag in tags]

    def html(self) -> str:
        try:
            return self._soup.decode(formatter=SOURCE_ORDER)
        except RecursionError as exc:
            raise EncodeError(f"Cannot serialize document: {exc}") from exc
