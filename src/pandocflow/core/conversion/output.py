"""HTML clean-up applied to engine output before and after chunk assembly."""

from __future__ import annotations

from collections.abc import Iterable
import html as html_lib
import logging

from bs4 import BeautifulSoup, FeatureNotFound
from bs4.element import Tag


logger = logging.getLogger(__name__)

HEAD_ELEMENTS = ("head", "meta", "link", "style", "script")
TITLE_BLOCK_SELECTOR = "header#title-block-header"
SECTION_NUMBER_CLASS = "header-section-number"
HEADINGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def parse_html(markup: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(markup, "lxml")
    except FeatureNotFound:
        return BeautifulSoup(markup, "html.parser")


def fragment_contents(soup: BeautifulSoup) -> str:
    """Serialise a parsed fragment without the wrapper the parser may have added."""
    body = soup.body
    if body is not None:
        return body.decode_contents()
    return soup.decode()


def extract_body(markup: str) -> str:
    """Reduce engine output to body content.

    Full documents are cut down to the inner ``body``; fragments only lose
    stray head-level elements.
    """
    lowered = markup.lower()
    soup = parse_html(markup)
    if "<html" in lowered and "<body" in lowered and soup.body is not None:
        return soup.body.decode_contents().strip()
    for element in soup.find_all(HEAD_ELEMENTS):
        element.decompose()
    return fragment_contents(soup).strip()


def remove_duplicate_title_blocks(markup: str) -> str:
    """Keep only the first title block header."""
    soup = parse_html(markup)
    headers = soup.select(TITLE_BLOCK_SELECTOR)
    if len(headers) < 2:
        return markup
    for header in headers[1:]:
        header.decompose()
    logger.debug("Removed %d duplicate title block(s)", len(headers) - 1)
    return fragment_contents(soup)


def _is_empty_anchor(element: Tag) -> bool:
    return element.name == "span" and not element.get_text(strip=True) and not element.find(True)


def deduplicate_anchors(markup: str) -> tuple[str, int]:
    """Drop empty anchor spans whose id is already carried by another element."""
    soup = parse_html(markup)
    carriers = soup.find_all(id=True)
    taken = {element["id"] for element in carriers if not _is_empty_anchor(element)}
    removed = 0
    for element in carriers:
        if not _is_empty_anchor(element):
            continue
        anchor_id = element["id"]
        if anchor_id in taken:
            element.decompose()
            removed += 1
        else:
            taken.add(anchor_id)
    if not removed:
        return markup, 0
    return fragment_contents(soup), removed


def number_sections(markup: str) -> str:
    """Apply sequential hierarchical numbers to headings of assembled output."""
    soup = parse_html(markup)
    headings = [
        heading
        for heading in soup.find_all(HEADINGS)
        if heading.find_parent("header", id="title-block-header") is None
        and "unnumbered" not in (heading.get("class") or [])
    ]
    if not headings:
        return markup
    base = min(int(heading.name[1]) for heading in headings)
    counters = [0] * 6
    for heading in headings:
        depth = int(heading.name[1]) - base
        counters[depth] += 1
        for lower in range(depth + 1, 6):
            counters[lower] = 0
        label = ".".join(str(value) for value in counters[: depth + 1])
        existing = heading.find("span", class_=SECTION_NUMBER_CLASS)
        if existing is not None:
            existing.string = label
            continue
        span = soup.new_tag("span", attrs={"class": SECTION_NUMBER_CLASS})
        span.string = label
        heading.insert(0, " ")
        heading.insert(0, span)
    return fragment_contents(soup)


def render_chunk_error(title: str, message: str) -> str:
    """Return inline, accessible markup standing in for a failed chunk."""
    return (
        '<div class="error-message" role="alert">'
        f"<strong>Error processing section &quot;{html_lib.escape(title)}&quot;:</strong> "
        f"{html_lib.escape(message)}</div>"
    )


def render_error(message: str) -> str:
    return f'<div class="error-message" role="alert">{html_lib.escape(message)}</div>'


def assemble(parts: Iterable[str]) -> str:
    return "\n".join(part.strip() for part in parts if part.strip())


__all__ = [
    "assemble",
    "deduplicate_anchors",
    "extract_body",
    "fragment_contents",
    "number_sections",
    "parse_html",
    "remove_duplicate_title_blocks",
    "render_chunk_error",
    "render_error",
]
