"""Preamble/body model for LaTeX-like sources."""

from __future__ import annotations

from dataclasses import dataclass
import re


MINIMAL_PREAMBLE = (
    "\\documentclass{article}\n\\usepackage{amsmath,amssymb,amsthm}\n\\usepackage{geometry}\n"
)

_BEGIN_DOCUMENT = re.compile(r"\\begin\{document\}")
_END_DOCUMENT = re.compile(r"\\end\{document\}")


@dataclass(slots=True, frozen=True)
class Document:
    """Source text split into a preamble and a body.

    Sources lacking a ``document`` environment keep an empty preamble and are
    re-joined unchanged. Text following ``\\end{document}`` is kept as the
    trailer so well-formed sources survive a split/join round trip.
    """

    source: str
    preamble: str
    body: str
    trailer: str = ""
    has_wrapper: bool = False

    @classmethod
    def from_source(cls, source: str) -> Document:
        begin = _BEGIN_DOCUMENT.search(source)
        if begin is None:
            return cls(source=source, preamble="", body=source)

        end: re.Match[str] | None = None
        for match in _END_DOCUMENT.finditer(source, begin.end()):
            end = match
        if end is None:
            return cls(
                source=source,
                preamble=source[: begin.start()],
                body=source[begin.end() :],
                has_wrapper=True,
            )
        return cls(
            source=source,
            preamble=source[: begin.start()],
            body=source[begin.end() : end.start()],
            trailer=source[end.end() :],
            has_wrapper=True,
        )

    def join(self, body: str | None = None) -> str:
        """Reassemble the document, optionally substituting a new body."""
        content = self.body if body is None else body
        if not self.has_wrapper:
            return content
        return f"{self.preamble}\\begin{{document}}{content}\\end{{document}}{self.trailer}"

    @property
    def effective_preamble(self) -> str:
        """Return the preamble, or a minimal one for bare fragments."""
        return self.preamble if self.preamble.strip() else MINIMAL_PREAMBLE


__all__ = ["MINIMAL_PREAMBLE", "Document"]
