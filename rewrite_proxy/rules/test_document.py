import pytest

from rewrite_proxy.errors import ParseError, RuleError
from rewrite_proxy.rules.document import Document


@pytest.fixture
def document():
    return Document(
        '<div id="box" class="a b" data-id="7">'
        "<!-- note -->first<span>inner</span>second"
        "</div>"
        '<p id="empty"></p>'
        '<p id="nested"><b>bold</b>tail</p>'
    )


def test_find_returns_matches_in_document_order(document):
    names = [element.name for element in document.find("#box, p")]
    assert names == ["div", "p", "p"]


def test_find_without_matches(document):
    assert document.find(".missing") == []


def test_invalid_selector_is_a_rule_error(document):
    with pytest.raises(RuleError) as exc_info:
        document.find("div[")
    assert exc_info.value.selector == "div["


def test_attribute_exact_key(document):
    box = document.find("#box")[0]
    assert box.attribute("data-id") == "7"
    assert box.attribute("DATA-ID") is None


def test_multi_valued_attribute_keeps_original_string(document):
    assert document.find("#box")[0].attribute("class") == "a b"


def test_text_is_first_text_child(document):
    # comments are skipped, nested element text is not considered
    assert document.find("#box")[0].text() == "first"
    assert document.find("#nested")[0].text() == "tail"


def test_text_of_empty_element(document):
    assert document.find("#empty")[0].text() == ""


def test_append_html_adds_last_children(document):
    document.find("#empty")[0].append_html("<i>1</i><i>2</i>")
    assert '<p id="empty"><i>1</i><i>2</i></p>' in document.html()


def test_replace_with_html(document):
    document.find("#nested")[0].replace_with_html("<h2>new</h2>")
    assert document.find("#nested") == []
    assert '<p id="empty"></p><h2>new</h2>' in document.html()


def test_replace_with_empty_html_removes_element(document):
    document.find("#empty")[0].replace_with_html("")
    assert document.find("#empty") == []


def test_serialization_keeps_attribute_order(document):
    assert document.html().startswith('<div id="box" class="a b" data-id="7">')


def test_unknown_parser_is_a_parse_error():
    with pytest.raises(ParseError):
        Document("<p>x</p>", parser="no-such-parser")


def test_serialization_escapes_like_the_minimal_formatter():
    markup = '<a title="x &amp; y" href="/?a=1&amp;b=2">1 &lt; 2</a>'

    assert Document(markup).html() == markup


def test_attribute_order_survives_modification(document):
    document.find("#empty")[0].append_html('<i data-z="1" data-a="2">x</i>')

    assert '<i data-z="1" data-a="2">x</i>' in document.html()
    assert document.html().startswith('<div id="box" class="a b" data-id="7">')
