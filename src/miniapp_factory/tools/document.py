"""HTML document adapter used by selector-based edit tools.

Wraps BeautifulSoup (``html.parser`` backend) and soupsieve so the tools only
see a narrow interface: select nodes, read inner markup, and mutate matches
with markup fragments.
"""

from __future__ import annotations

from typing import Literal

import soupsieve
from bs4 import BeautifulSoup, Tag
from bs4.dammit import EntitySubstitution
from bs4.element import PageElement
from bs4.formatter import HTMLFormatter

InsertPosition = Literal["before", "after", "prepend", "append"]

# Minimal escaping, void elements written as <br> rather than <br/>
_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)


class InvalidSelectorError(ValueError):
    """Raised when a selector is not valid CSS selector syntax."""

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f"Invalid selector: {selector}")


def _parse(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


class HtmlDocument:
    """A parsed HTML file or fragment."""

    def __init__(self, markup: str):
        self._soup = _parse(markup)

    def select(self, selector: str) -> list[Tag]:
        """All elements matching ``selector``, in document order."""
        try:
            return list(self._soup.select(selector))
        except soupsieve.SelectorSyntaxError as e:
            raise InvalidSelectorError(selector) from e

    @staticmethod
    def inner_html(tag: Tag) -> str:
        return tag.decode_contents(formatter=_FORMATTER)

    def is_attached(self, node: PageElement) -> bool:
        """Whether ``node`` is still part of this document."""
        if getattr(node, "decomposed", False):
            return False
        current = node
        while current.parent is not None:
            current = current.parent
        return current is self._soup

    @staticmethod
    def _fragment(markup: str) -> list[PageElement]:
        # A fresh parse per target: nodes can only live in one place.
        return [node.extract() for node in list(_parse(markup).contents)]

    def set_inner_html(self, tag: Tag, markup: str) -> None:
        tag.clear()
        for node in self._fragment(markup):
            tag.append(node)

    def replace_element(self, tag: Tag, markup: str) -> None:
        for node in self._fragment(markup):
            tag.insert_before(node)
        tag.extract()

    def insert(self, tag: Tag, position: InsertPosition, markup: str) -> None:
        nodes = self._fragment(markup)
        if position == "before":
            for node in nodes:
                tag.insert_before(node)
        elif position == "after":
            anchor: PageElement = tag
            for node in nodes:
                anchor.insert_after(node)
                anchor = node
        elif position == "prepend":
            for index, node in enumerate(nodes):
                tag.insert(index, node)
        elif position == "append":
            for node in nodes:
                tag.append(node)
        else:
            raise ValueError(f"Invalid position: {position}")

    @staticmethod
    def remove(tag: Tag) -> None:
        tag.decompose()

    def serialize(self) -> str:
        return self._soup.decode(formatter=_FORMATTER)
