"""Capture accessibility signals from a page document.

Runs inside the page context. Capture is read-only and best effort: missing
elements yield empty values, never errors. The caps are hard truncations in
document order so the message crossing the context boundary stays small.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from personalens.models import (
    MAX_COLOR_SAMPLES,
    MAX_IMAGE_SAMPLES,
    MAX_TEXT_SAMPLES,
    ColorSample,
    FormInput,
    FormSummary,
    Heading,
    ImageSample,
    NavSummary,
    PageSignals,
)
from personalens.styles import StyleSheet, computed_background, computed_color

logger = logging.getLogger(__name__)

TEXT_SELECTOR = "p, h1, h2, h3, h4, h5, h6, span, div, a, button, label"
INTERACTIVE_SELECTOR = 'a, button, input, .btn, [role="button"]'
INPUT_SELECTOR = "input, select, textarea"
NAV_SELECTOR = 'nav, [role="navigation"]'
HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6"


def _text(element: Tag) -> str:
    return element.get_text().strip()


def _has_label(control: Tag, soup: BeautifulSoup) -> bool:
    control_id = control.get("id")
    if control_id:
        for label in soup.find_all("label"):
            if label.get("for") == control_id:
                return True
    return control.find_parent("label") is not None


class PageSignalExtractor:
    """Extracts ``PageSignals`` from one page's HTML."""

    def __init__(self, url: str, html: str) -> None:
        self.url = url
        self._soup = BeautifulSoup(html or "", "html.parser")
        self._styles = StyleSheet.from_soup(self._soup)

    def ping(self) -> str:
        return "ready"

    def capture(self) -> PageSignals:
        signals = PageSignals(
            url=self.url,
            title=self._title(),
            text_samples=self._text_samples(),
            color_samples=self._color_samples(),
            image_samples=self._image_samples(),
            form_summary=self._form_summary(),
            nav_summary=self._nav_summary(),
            heading_outline=self._heading_outline(),
        )
        logger.debug(
            "Captured %s: %d texts, %d colors, %d images, %d headings",
            self.url,
            len(signals.text_samples),
            len(signals.color_samples),
            len(signals.image_samples),
            len(signals.heading_outline),
        )
        return signals

    def _title(self) -> str:
        title = self._soup.find("title")
        return _text(title) if title else ""

    def _text_samples(self) -> list[str]:
        samples: list[str] = []
        for element in self._soup.select(TEXT_SELECTOR):
            text = _text(element)
            if text:
                samples.append(text)
                if len(samples) >= MAX_TEXT_SAMPLES:
                    break
        return samples

    def _color_samples(self) -> list[ColorSample]:
        return [
            ColorSample(
                element=element.name.lower(),
                color=computed_color(element, self._styles),
                background=computed_background(element, self._styles),
            )
            for element in self._soup.select(INTERACTIVE_SELECTOR, limit=MAX_COLOR_SAMPLES)
        ]

    def _resolve_src(self, src: str) -> str:
        if not src:
            return ""
        try:
            return urljoin(self.url, src)
        except ValueError:
            logger.debug("Keeping unresolvable image src as written: %r", src)
            return src

    def _image_samples(self) -> list[ImageSample]:
        samples = []
        for img in self._soup.find_all("img", limit=MAX_IMAGE_SAMPLES):
            src = img.get("src") or ""
            alt = img.get("alt") or ""
            samples.append(
                ImageSample(
                    src=self._resolve_src(src),
                    alt=alt,
                    has_alt=bool(alt),
                )
            )
        return samples

    def _form_summary(self) -> FormSummary:
        inputs = [
            FormInput(
                type=control.get("type") or control.name.lower(),
                has_label=_has_label(control, self._soup),
                placeholder=control.get("placeholder") or "",
                required=control.has_attr("required"),
            )
            for control in self._soup.select(INPUT_SELECTOR)
        ]
        return FormSummary(form_count=len(self._soup.find_all("form")), inputs=inputs)

    def _nav_summary(self) -> NavSummary:
        navs = self._soup.select(NAV_SELECTOR)
        return NavSummary(
            nav_count=len(navs),
            link_count=len(self._soup.find_all("a")),
            nav_texts=[text for text in (_text(nav) for nav in navs) if text],
        )

    def _heading_outline(self) -> list[Heading]:
        return [
            Heading(level=int(heading.name[1]), text=_text(heading))
            for heading in self._soup.select(HEADING_SELECTOR)
        ]
