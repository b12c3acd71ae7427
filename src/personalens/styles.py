"""Resolve an element's colour and background the way a layout engine reports them.

Declarations come from the document's ``<style>`` blocks and inline ``style``
attributes, combined with the usual cascade: ``!important`` first, then inline
over stylesheet, then selector specificity, then source order. Linked
stylesheets are not fetched and at-rule blocks (``@media`` and friends) are
skipped. ``color`` inherits from ancestors, ``background-color`` does not.
Hex and common named colours are resolved to ``rgb(...)``/``rgba(...)``;
anything else is returned verbatim.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import soupsieve
from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

INITIAL_COLOR = "rgb(0, 0, 0)"
INITIAL_BACKGROUND = "rgba(0, 0, 0, 0)"

NAMED_COLORS: dict[str, tuple[int, int, int]] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "lime": (0, 255, 0),
    "blue": (0, 0, 255),
    "navy": (0, 0, 128),
    "yellow": (255, 255, 0),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "silver": (192, 192, 192),
    "lightgray": (211, 211, 211),
    "lightgrey": (211, 211, 211),
    "darkgray": (169, 169, 169),
    "darkgrey": (169, 169, 169),
    "maroon": (128, 0, 0),
    "teal": (0, 128, 128),
    "aqua": (0, 255, 255),
    "fuchsia": (255, 0, 255),
}

_HEX_RE = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$", re.IGNORECASE)
_IMPORTANT_RE = re.compile(r"\s*!\s*important\s*$", re.IGNORECASE)
_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)

# Specificity counters: (ids, classes/attributes/pseudo-classes, types)
_ID_RE = re.compile(r"#[\w-]+")
_CLASS_RE = re.compile(r"\.[\w-]+|\[[^\]]*\]|(?<!:):(?!not\b|is\b|where\b)[\w-]+")
_TYPE_RE = re.compile(r"(?:^|[\s>+~(,])([a-zA-Z][\w-]*)")
_PSEUDO_ELEMENT_RE = re.compile(r"::[\w-]+")


def _declarations(text: str) -> list[tuple[str, str, bool]]:
    """``(property, value, important)`` for each declaration in a block, in order."""
    found = []
    for part in text.split(";"):
        name, sep, value = part.partition(":")
        if not sep:
            continue
        value = value.strip()
        important = bool(_IMPORTANT_RE.search(value))
        value = _IMPORTANT_RE.sub("", value)
        if name.strip() and value:
            found.append((name.strip().lower(), value, important))
    return found


def parse_inline_style(style: str) -> dict[str, str]:
    """Split ``"color: red; background: #fff"`` into lower-cased property -> value."""
    return {name: value for name, value, _ in _declarations(style)}


def resolve_color_value(value: str) -> str:
    raw = value.strip()
    lowered = raw.lower()
    if lowered == "transparent":
        return INITIAL_BACKGROUND
    if lowered in NAMED_COLORS:
        r, g, b = NAMED_COLORS[lowered]
        return f"rgb({r}, {g}, {b})"
    match = _HEX_RE.match(raw)
    if match:
        digits = match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        if len(digits) == 8:
            alpha = round(int(digits[6:8], 16) / 255, 3)
            return f"rgba({r}, {g}, {b}, {alpha:g})"
        return f"rgb({r}, {g}, {b})"
    return raw


def specificity(selector: str) -> tuple[int, int, int]:
    """Approximate CSS specificity of a single (comma-free) selector."""
    bare = _PSEUDO_ELEMENT_RE.sub("", selector)
    bare = re.sub(r"\[[^\]]*\]", "[]", bare)
    ids = len(_ID_RE.findall(bare))
    without_ids = _ID_RE.sub("", bare)
    classes = len(_CLASS_RE.findall(without_ids))
    types = len(_TYPE_RE.findall(_CLASS_RE.sub("", without_ids)))
    return ids, classes, types


def _split_selectors(text: str) -> list[str]:
    """Split a selector list on top-level commas."""
    parts, depth, current = [], 0, []
    for ch in text:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def _rule_blocks(css: str) -> list[tuple[str, str]]:
    """Top-level ``(prelude, body)`` pairs; at-rule blocks are dropped."""
    css = _COMMENT_RE.sub("", css)
    blocks = []
    depth, start, prelude = 0, 0, ""
    for index, ch in enumerate(css):
        if ch == "{":
            if depth == 0:
                prelude = css[start:index].strip()
                start = index + 1
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                if not prelude.startswith("@"):
                    blocks.append((prelude, css[start:index]))
                start = index + 1
        elif ch == ";" and depth == 0:
            # Statement at-rules such as @import or @charset
            start = index + 1
    return blocks


@dataclass(frozen=True)
class StyleRule:
    selector: soupsieve.SoupSieve
    specificity: tuple[int, int, int]
    order: int
    declarations: tuple[tuple[str, str, bool], ...]


class StyleSheet:
    """The rules of every ``<style>`` block in a document, ready for matching."""

    def __init__(self, rules: list[StyleRule] | None = None) -> None:
        self.rules = rules or []
        self._cache: dict[int, dict[str, str]] = {}

    @classmethod
    def from_css(cls, css: str) -> StyleSheet:
        rules: list[StyleRule] = []
        for prelude, body in _rule_blocks(css):
            declarations = tuple(_declarations(body))
            if not declarations:
                continue
            for selector in _split_selectors(prelude):
                if "::" in selector:
                    # Pseudo-elements never style the element itself.
                    continue
                try:
                    compiled = soupsieve.compile(selector)
                except soupsieve.SelectorSyntaxError as exc:
                    logger.debug("Skipping unsupported selector %r: %s", selector, exc)
                    continue
                rules.append(StyleRule(compiled, specificity(selector), len(rules), declarations))
        return cls(rules)

    @classmethod
    def from_soup(cls, soup: BeautifulSoup) -> StyleSheet:
        return cls.from_css("\n".join(style.get_text() for style in soup.find_all("style")))

    def declared(self, element: Tag) -> dict[str, str]:
        """Cascaded declarations for ``element``, stylesheet and inline combined."""
        key = id(element)
        if key in self._cache:
            return self._cache[key]

        # (important, inline, specificity, order) orders the candidates; last applied wins.
        candidates = []
        for rule in self.rules:
            if rule.selector.match(element):
                for name, value, important in rule.declarations:
                    candidates.append(((important, False, rule.specificity, rule.order), name, value))
        for position, (name, value, important) in enumerate(_declarations(element.get("style") or "")):
            candidates.append(((important, True, (0, 0, 0), position), name, value))

        merged: dict[str, str] = {}
        for _, name, value in sorted(candidates, key=lambda candidate: candidate[0]):
            if name == "background":
                merged.pop("background-color", None)
            merged[name] = value
        self._cache[key] = merged
        return merged


def _background_from(declarations: dict[str, str]) -> str | None:
    if "background-color" in declarations:
        return declarations["background-color"]
    shorthand = declarations.get("background")
    if not shorthand:
        return None
    # Take the first token that looks like a colour from the shorthand.
    for token in re.findall(r"rgba?\([^)]*\)|hsla?\([^)]*\)|#[0-9a-fA-F]+|[a-zA-Z]+", shorthand):
        if token.startswith(("rgb", "hsl", "#")) or token.lower() in NAMED_COLORS or token.lower() == "transparent":
            return token
    return None


def computed_color(element: Tag, sheet: StyleSheet | None = None) -> str:
    sheet = sheet or StyleSheet()
    node: Tag | None = element
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        value = sheet.declared(node).get("color")
        if value and value.lower() != "inherit":
            return resolve_color_value(value)
        node = node.parent
    return INITIAL_COLOR


def computed_background(element: Tag, sheet: StyleSheet | None = None) -> str:
    value = _background_from((sheet or StyleSheet()).declared(element))
    if value is None:
        return INITIAL_BACKGROUND
    return resolve_color_value(value)
