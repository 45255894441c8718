"""Stylesheet adapter built on tinycss2.

Comments and whitespace are kept in the token tree so serializing an edited
sheet changes only the rules that were touched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Literal

import tinycss2
from tinycss2 import ast as css_ast

StyleAction = Literal["merge", "replace"]

_WS_RE = re.compile(r"\s+")
_COMBINATOR_RE = re.compile(r"\s*([>+~,])\s*")


class StylesheetParseError(ValueError):
    """Raised when the stylesheet source has a syntax error."""


def _spaced_combinator(match: re.Match[str]) -> str:
    symbol = match.group(1)
    return ", " if symbol == "," else f" {symbol} "


def normalize_selector(selector: str) -> str:
    """Canonical form for prelude comparison: collapsed whitespace around combinators."""
    collapsed = _WS_RE.sub(" ", selector.strip())
    return _COMBINATOR_RE.sub(_spaced_combinator, collapsed)


def _declarations_text(properties: Mapping[str, str], indent: str = "  ") -> str:
    return "".join(f"\n{indent}{name}: {value};" for name, value in properties.items())


class Stylesheet:
    """A parsed CSS file."""

    def __init__(self, source: str):
        self._nodes: list = tinycss2.parse_stylesheet(
            source, skip_comments=False, skip_whitespace=False
        )
        for node in self._nodes:
            if node.type == "error":
                raise StylesheetParseError(
                    f"{node.message} (line {node.source_line}, column {node.source_column})"
                )

    def find_rules(self, selector: str) -> list[css_ast.QualifiedRule]:
        """Top-level rules whose prelude matches ``selector``."""
        target = normalize_selector(selector)
        return [
            node
            for node in self._nodes
            if node.type == "qualified-rule"
            and normalize_selector(tinycss2.serialize(node.prelude)) == target
        ]

    def update_rule(
        self,
        selector: str,
        properties: Mapping[str, str],
        action: StyleAction = "merge",
    ) -> bool:
        """Apply ``properties`` to every rule matching ``selector``.

        ``merge`` appends declarations after the existing ones; ``replace``
        drops the existing declarations first. When no rule matches, a new
        rule is appended. Returns ``True`` if an existing rule was edited.
        """
        rules = self.find_rules(selector)
        for rule in rules:
            if action == "replace":
                body = _declarations_text(properties) + "\n"
            else:
                existing = tinycss2.serialize(rule.content).rstrip()
                if existing and not existing.endswith((";", "{", "}")):
                    existing += ";"
                body = existing + _declarations_text(properties) + "\n"
            rule.content = tinycss2.parse_component_value_list(body)

        if not rules:
            self._append_rule(selector, properties)
        return bool(rules)

    def _append_rule(self, selector: str, properties: Mapping[str, str]) -> None:
        block = f"{selector.strip()} {{{_declarations_text(properties)}\n}}\n"
        current = self.serialize()
        if current.strip():
            separator = "\n" if current.endswith("\n") else "\n\n"
            block = separator + block
        self._nodes.extend(
            tinycss2.parse_stylesheet(block, skip_comments=False, skip_whitespace=False)
        )

    def declarations(self, selector: str) -> list[tuple[str, str]]:
        """``(name, value)`` pairs declared in rules matching ``selector``."""
        pairs: list[tuple[str, str]] = []
        for rule in self.find_rules(selector):
            for decl in tinycss2.parse_blocks_contents(
                rule.content, skip_comments=True, skip_whitespace=True
            ):
                if decl.type == "declaration":
                    value = tinycss2.serialize(decl.value).strip()
                    if decl.important:
                        value += " !important"
                    pairs.append((decl.lower_name, value))
        return pairs

    def serialize(self) -> str:
        return tinycss2.serialize(self._nodes)
