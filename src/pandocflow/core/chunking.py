"""Decompose oversized documents into independently convertible chunks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import re

from .config import DEFAULT_SETTINGS, ChunkSettings, PipelineSettings
from .crossrefs import MATH_ENVIRONMENTS
from .documents import MINIMAL_PREAMBLE, Document


logger = logging.getLogger(__name__)


class ChunkKind(str, Enum):
    INTRODUCTION = "introduction"
    SECTION = "section"
    SUBSECTION = "subsection"
    FRAGMENT = "fragment"
    FALLBACK = "fallback"


@dataclass(slots=True, frozen=True)
class Chunk:
    """Ordered fragment of a document body together with its wrapped form."""

    index: int
    kind: ChunkKind
    title: str
    raw_content: str
    wrapped_content: str

    @property
    def number(self) -> int:
        return self.index + 1


_SECTION = re.compile(r"\\section\*?\s*\{")
_SUBSECTION = re.compile(r"\\subsection\*?\s*\{")
_TITLE_METADATA = re.compile(r"\\(?:title|author|date)\b\*?\s*(?:\[[^\]]*\])?\s*\{")
_MAKETITLE = re.compile(r"\\maketitle\b[ \t]*\n?")
_STRUCTURE = re.compile(
    r"\\documentclass(?:\[[^\]]*\])?\{[^}]*\}[ \t]*\n?"
    r"|\\usepackage(?:\[[^\]]*\])?\{[^}]*\}[ \t]*\n?"
    r"|\\(?:begin|end)\{document\}[ \t]*\n?"
)
_AMSMATH = re.compile(r"\\usepackage(?:\[[^\]]*\])?\{[^}]*\bamsmath\b[^}]*\}")
_MATH_ENV = re.compile(
    r"\\(?P<kind>begin|end)\{(?P<env>(?:" + "|".join(MATH_ENVIRONMENTS) + r")\*?)\}"
)
_COMMENT = re.compile(r"(?<!\\)%")


def _closing_brace(text: str, opening: int) -> int:
    """Return the index just past the brace group starting at ``opening``."""
    depth = 0
    index = opening
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return len(text)


def braced_argument(text: str, opening: int) -> str:
    """Return the content of the brace group starting at ``opening``."""
    return text[opening + 1 : _closing_brace(text, opening) - 1]


def strip_title_metadata(text: str) -> str:
    """Remove ``\\title``, ``\\author``, ``\\date`` and ``\\maketitle`` commands."""
    pieces: list[str] = []
    cursor = 0
    for match in _TITLE_METADATA.finditer(text):
        if match.start() < cursor:
            continue
        pieces.append(text[cursor : match.start()])
        end = _closing_brace(text, match.end() - 1)
        if end < len(text) and text[end] == "\n":
            end += 1
        cursor = end
    pieces.append(text[cursor:])
    return _MAKETITLE.sub("", "".join(pieces))


def _in_comment(text: str, position: int) -> bool:
    line_start = text.rfind("\n", 0, position) + 1
    return _COMMENT.search(text, line_start, position) is not None


def balance_math_environments(content: str) -> str:
    """Drop math-environment markers left orphaned by a split.

    Ends without a preceding begin and begins never closed are removed; other
    environments are left untouched.
    """
    stacks: dict[str, list[re.Match[str]]] = {}
    orphans: list[re.Match[str]] = []
    for match in _MATH_ENV.finditer(content):
        if _in_comment(content, match.start()):
            continue
        env = match.group("env")
        if match.group("kind") == "begin":
            stacks.setdefault(env, []).append(match)
        elif stacks.get(env):
            stacks[env].pop()
        else:
            orphans.append(match)
    for remaining in stacks.values():
        orphans.extend(remaining)
    if not orphans:
        return content

    logger.debug("Removing %d orphaned math environment marker(s)", len(orphans))
    pieces: list[str] = []
    cursor = 0
    for match in sorted(orphans, key=lambda item: item.start()):
        pieces.append(content[cursor : match.start()])
        cursor = match.end()
    pieces.append(content[cursor:])
    return "".join(pieces)


def clean_preamble(preamble: str, *, keep_metadata: bool) -> str:
    """Return a preamble that is safe to reuse for a standalone fragment."""
    text = preamble
    marker = text.find("\\begin{document}")
    if marker >= 0:
        text = text[:marker]
    if not keep_metadata:
        text = strip_title_metadata(text)
    if "\\documentclass" not in text:
        text = "\\documentclass{article}\n" + text
    if not _AMSMATH.search(text):
        text = text.rstrip("\n") + "\n\\usepackage{amsmath,amssymb,amsthm}\n"
    return text


def clean_content(content: str, *, keep_metadata: bool) -> str:
    text = _STRUCTURE.sub("", content)
    if not keep_metadata:
        text = strip_title_metadata(text)
    return balance_math_environments(text)


def wrap_chunk(preamble: str, content: str, *, first: bool) -> str:
    """Wrap ``content`` into a complete document reusing ``preamble``."""
    head = clean_preamble(preamble, keep_metadata=first).rstrip("\n")
    body = clean_content(content, keep_metadata=first).strip("\n")
    return f"{head}\n\\begin{{document}}\n{body}\n\\end{{document}}\n"


def _title_at(text: str, match: re.Match[str], limit: int) -> str:
    title = " ".join(braced_argument(text, match.end() - 1).split())
    if len(title) > limit:
        title = title[:limit].rstrip() + "..."
    return title or "Untitled"


def _split_on(
    body: str, pattern: re.Pattern[str], kind: ChunkKind, settings: ChunkSettings
) -> list[tuple[ChunkKind, str, str]]:
    matches = list(pattern.finditer(body))
    if not matches:
        return []
    pieces: list[tuple[ChunkKind, str, str]] = []
    introduction = body[: matches[0].start()]
    carry = ""
    if introduction.strip():
        pieces.append((ChunkKind.INTRODUCTION, "Introduction", introduction))
    else:
        carry = introduction
    bounds = [match.start() for match in matches] + [len(body)]
    for position, match in enumerate(matches):
        raw = body[match.start() : bounds[position + 1]]
        if position == 0:
            raw = carry + raw
        pieces.append((kind, _title_at(body, match, settings.title_length), raw))
    return pieces


def snap_boundary(text: str, start: int, target: int, window: int) -> int:
    """Pick a cut position near ``target`` that is strictly after ``start``.

    The nearest paragraph break within ``window`` characters wins; otherwise
    the last line break before ``target``; otherwise ``target`` itself.
    """
    low = max(start + 1, target - window)
    high = min(len(text), target + window)
    best: int | None = None
    position = text.find("\n\n", low, high)
    while position != -1:
        cut = position + 2
        if best is None or abs(cut - target) < abs(best - target):
            best = cut
        position = text.find("\n\n", position + 1, high)
    if best is not None and best > start:
        return best
    newline = text.rfind("\n", start + 1, target)
    if newline != -1:
        return newline + 1
    return target


def split_windows(text: str, settings: ChunkSettings) -> list[str]:
    """Split ``text`` into windows of at most ``max_size`` characters, snapped to breaks."""
    windows: list[str] = []
    start = 0
    while start < len(text):
        target = start + settings.max_size
        if target >= len(text):
            windows.append(text[start:])
            break
        cut = snap_boundary(text, start, target, settings.snap_window)
        windows.append(text[start:cut])
        start = cut
    return windows


def plan_body(body: str, settings: ChunkSettings) -> list[tuple[ChunkKind, str, str]]:
    """Return ``(kind, title, raw)`` triples whose raw parts partition ``body``."""
    pieces = _split_on(body, _SECTION, ChunkKind.SECTION, settings)
    if pieces:
        return pieces
    pieces = _split_on(body, _SUBSECTION, ChunkKind.SUBSECTION, settings)
    if pieces:
        return pieces
    windows = split_windows(body, settings) or [body]
    return [
        (ChunkKind.FRAGMENT, f"Part {position + 1}", window)
        for position, window in enumerate(windows)
    ]


def fallback_chunk(source: str) -> Chunk:
    content = _STRUCTURE.sub("", source)
    wrapped = f"{MINIMAL_PREAMBLE}\\begin{{document}}\n{content.strip()}\n\\end{{document}}\n"
    return Chunk(
        index=0,
        kind=ChunkKind.FALLBACK,
        title="Document",
        raw_content=source,
        wrapped_content=wrapped,
    )


def split_document(source: str, settings: PipelineSettings = DEFAULT_SETTINGS) -> list[Chunk]:
    """Split ``source`` into ordered, independently convertible chunks.

    Never raises: any internal failure yields a single fallback chunk under a
    minimal preamble.
    """
    try:
        document = Document.from_source(source)
        preamble = document.effective_preamble
        chunks = [
            Chunk(
                index=index,
                kind=kind,
                title=title,
                raw_content=raw,
                wrapped_content=wrap_chunk(preamble, raw, first=index == 0),
            )
            for index, (kind, title, raw) in enumerate(plan_body(document.body, settings.chunking))
        ]
    except Exception as exc:  # noqa: BLE001 - decomposition must always yield a chunk
        logger.warning("Chunk decomposition failed, using a single chunk: %s", exc, exc_info=exc)
        return [fallback_chunk(source)]
    if not chunks:
        return [fallback_chunk(source)]
    logger.debug("Split document into %d chunk(s)", len(chunks))
    return chunks


__all__ = [
    "Chunk",
    "ChunkKind",
    "balance_math_environments",
    "braced_argument",
    "clean_content",
    "clean_preamble",
    "fallback_chunk",
    "plan_body",
    "snap_boundary",
    "split_document",
    "split_windows",
    "strip_title_metadata",
    "wrap_chunk",
]
