"""Tests for the HTML document adapter."""

import pytest

from miniapp_factory.tools.document import HtmlDocument, InvalidSelectorError


@pytest.fixture
def document():
    return HtmlDocument(
        "<!DOCTYPE html><html><body>"
        '<div id="main"><p class="a">one</p><p class="a">two &amp; more</p></div>'
        "<br><img src=\"x.png\">"
        "</body></html>"
    )


def test_serialize_keeps_doctype_and_void_elements(document):
    html = document.serialize()

    assert html.startswith("<!DOCTYPE html>")
    assert "<br>" in html
    assert "<br/>" not in html
    assert "two &amp; more" in html


def test_select_in_document_order(document):
    assert [tag.get_text() for tag in document.select("p.a")] == [
        "one",
        "two & more",
    ]


def test_invalid_selector(document):
    with pytest.raises(InvalidSelectorError, match=r"Invalid selector: p\["):
        document.select("p[")


def test_set_inner_html(document):
    (main,) = document.select("#main")
    document.set_inner_html(main, "<span>new</span> text")

    assert document.inner_html(main) == "<span>new</span> text"


def test_replace_element_with_several_nodes(document):
    first = document.select("p.a")[0]
    document.replace_element(first, "<h2>A</h2><h3>B</h3>")

    assert '<div id="main"><h2>A</h2><h3>B</h3><p class="a">' in document.serialize()


@pytest.mark.parametrize(
    "position,expected",
    [
        ("before", '<em>x</em><div id="main">'),
        ("after", '</div><em>x</em><br>'),
        ("prepend", '<div id="main"><em>x</em><p class="a">'),
        ("append", "two &amp; more</p><em>x</em></div>"),
    ],
)
def test_insert_positions(document, position, expected):
    (main,) = document.select("#main")
    document.insert(main, position, "<em>x</em>")

    assert expected in document.serialize()


def test_removed_nodes_are_detached(document):
    (main,) = document.select("#main")
    inner = document.select("p.a")

    document.remove(main)

    assert not document.is_attached(main)
    assert not any(document.is_attached(tag) for tag in inner)
    assert document.select("p") == []
