"""Render workspace holding converted output and the math typesetter."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from threading import RLock
from typing import Protocol, runtime_checkable

from bs4 import BeautifulSoup
from bs4.element import Tag

from pandocflow.core.conversion.output import parse_html


logger = logging.getLogger(__name__)

PAGE_TEMPLATE = '<html><head></head><body><div id="output"></div></body></html>'
MATH_NODE = "mjx-container"
TEX_ANNOTATION_SELECTOR = 'annotation[encoding="application/x-tex"]'


class RenderWorkspace:
    """Page-like document that receives rendered output.

    Every access goes through :attr:`lock` so the watchdog can sample counts
    while a conversion renders.
    """

    def __init__(self) -> None:
        self.lock = RLock()
        self.soup: BeautifulSoup = parse_html(PAGE_TEMPLATE)

    @property
    def output(self) -> Tag:
        container = self.soup.find(id="output")
        if container is None:
            container = self.soup.new_tag("div", attrs={"id": "output"})
            self.soup.body.append(container)
        return container

    def render(self, markup: str) -> Tag:
        """Replace the output container content with ``markup``."""
        fragment = parse_html(markup)
        source = fragment.body if fragment.body is not None else fragment
        with self.lock:
            container = self.output
            container.clear()
            for child in list(source.contents):
                container.append(child.extract())
        return container

    def append(self, markup: str, *, outside_output: bool = False) -> None:
        """Add markup to the page, by default inside the output container."""
        fragment = parse_html(markup)
        source = fragment.body if fragment.body is not None else fragment
        with self.lock:
            target = self.soup.body if outside_output else self.output
            for child in list(source.contents):
                target.append(child.extract())

    def html(self) -> str:
        with self.lock:
            return self.output.decode_contents()

    def node_count(self) -> int:
        with self.lock:
            return len(self.soup.find_all(True))

    def math_nodes(self) -> list[Tag]:
        with self.lock:
            return self.soup.find_all(MATH_NODE)

    def math_node_count(self) -> int:
        return len(self.math_nodes())

    def unannotated_math_count(self, *, in_output: bool = False) -> int:
        """Count render nodes still lacking their TeX annotation.

        With ``in_output`` only nodes inside the output container are counted,
        which are the ones a typesetter may still be working on.
        """
        with self.lock:
            scope = self.output if in_output else self.soup
            return sum(
                1
                for node in scope.find_all(MATH_NODE)
                if node.select_one(TEX_ANNOTATION_SELECTOR) is None
            )


@dataclass(slots=True)
class TypesetOutcome:
    rendered: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@runtime_checkable
class Typesetter(Protocol):
    def typeset(self, container: Tag) -> TypesetOutcome: ...


class NullTypesetter:
    def typeset(self, container: Tag) -> TypesetOutcome:
        return TypesetOutcome()


def _strip_delimiters(tex: str) -> str:
    text = tex.strip()
    for opener, closer in (("\\[", "\\]"), ("\\(", "\\)"), ("$$", "$$"), ("$", "$")):
        if len(text) < len(opener) + len(closer):
            continue
        if text.startswith(opener) and text.endswith(closer):
            return text[len(opener) : len(text) - len(closer)].strip()
    return text


class TexAnnotationTypesetter:
    """Wrap pandoc math spans into render nodes carrying a TeX annotation."""

    def __init__(self) -> None:
        self._cache: dict[str, int] = {}
        self._factory = BeautifulSoup("", "html.parser")

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> int:
        size = len(self._cache)
        self._cache.clear()
        return size

    def typeset(self, container: Tag) -> TypesetOutcome:
        outcome = TypesetOutcome()
        soup = self._factory
        for span in container.select("span.math"):
            classes = span.get("class") or []
            display = "display" in classes
            tex = _strip_delimiters(span.get_text())
            if not tex:
                outcome.errors.append("empty math expression")
                continue
            self._cache[tex] = self._cache.get(tex, 0) + 1
            node = soup.new_tag(
                MATH_NODE,
                attrs={"class": "MathJax", "display": "true" if display else "false"},
            )
            math = soup.new_tag("math", attrs={"display": "block" if display else "inline"})
            semantics = soup.new_tag("semantics")
            annotation = soup.new_tag("annotation", attrs={"encoding": "application/x-tex"})
            annotation.string = tex
            semantics.append(annotation)
            math.append(semantics)
            node.append(math)
            span.replace_with(node)
            outcome.rendered += 1
        logger.debug("Typeset %d math expression(s)", outcome.rendered)
        return outcome


__all__ = [
    "MATH_NODE",
    "NullTypesetter",
    "RenderWorkspace",
    "TEX_ANNOTATION_SELECTOR",
    "TexAnnotationTypesetter",
    "TypesetOutcome",
    "Typesetter",
]
