"""Cross-reference extraction, equation numbering and anchor injection.

Pandoc resolves ``\\ref`` only for a subset of environments. To keep every
reference navigable the preprocessor records each ``\\label`` with an inferred
target type, computes equation numbers the way LaTeX would, and injects
``\\hypertarget`` anchors right after non-equation labels. Equation labels are
left untouched here: several labels can collapse onto a single rendered math
block, so :mod:`pandocflow.core.conversion.xrefs` anchors them after
conversion.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from enum import Enum
import logging
import re
from typing import Any

from .conversion.debug import ensure_emitter, record_event
from .diagnostics import DiagnosticEmitter


logger = logging.getLogger(__name__)

TYPE_WINDOW = 200

MATH_ENVIRONMENTS = ("equation", "align", "gather", "multline", "alignat", "split", "flalign")
NUMBERED_ENVIRONMENTS = ("equation", "align", "gather", "multline", "alignat", "flalign")
MULTIROW_ENVIRONMENTS = frozenset({"align", "gather", "alignat", "flalign"})
THEOREM_ENVIRONMENTS = (
    "theorem",
    "lemma",
    "proposition",
    "corollary",
    "definition",
    "example",
    "remark",
    "proof",
)

_LABEL = re.compile(r"\\label\{([^}]+)\}")
_REFERENCE = re.compile(r"\\(ref|eqref|pageref)\{([^}]+)\}")
_MATH_TOKEN = re.compile(
    r"\\(?P<kind>begin|end)\{(?P<env>" + "|".join(MATH_ENVIRONMENTS) + r")(?P<star>\*?)\}"
    r"|(?<!\\)\\(?P<bracket>[\[\]])"
    r"|(?<!\\)(?P<dollars>\$\$)"
)
_LINE_BREAK = re.compile(r"\\\\(?:\[[^\]]*\])?")
_CONTEXT = re.compile(
    r"\\(?P<kind>begin|end)\{(?P<env>"
    + "|".join(THEOREM_ENVIRONMENTS)
    + r"|figure|table)\*?\}"
    r"|\\(?P<section>chapter|(?:sub)*section|paragraph)\*?\{"
)


class LabelType(str, Enum):
    THEOREM = "theorem"
    EQUATION = "equation"
    FIGURE = "figure"
    TABLE = "table"
    SECTION = "section"
    GENERIC = "generic"


class ReferenceKind(str, Enum):
    REF = "ref"
    EQREF = "eqref"
    PAGEREF = "pageref"


@dataclass(slots=True)
class Label:
    """Named cross-reference target found in the source."""

    name: str
    position: int
    end: int
    type: LabelType = LabelType.GENERIC
    equation_number: int | None = None
    injected: bool = False


@dataclass(slots=True, frozen=True)
class Reference:
    """A citation of a label by one of the reference commands."""

    label: str
    kind: ReferenceKind
    position: int


@dataclass(slots=True)
class CrossReferenceStatistics:
    labels_found: int = 0
    anchors_injected: int = 0
    references_found: int = 0
    equation_labels_with_numbers: int = 0
    orphaned_references: list[str] = field(default_factory=list)
    duplicate_labels: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class PreprocessResult:
    """Outcome of a preprocessing run."""

    success: bool
    source: str
    statistics: CrossReferenceStatistics
    error: str | None = None


class CrossReferenceRegistry:
    """Owned store of the labels and references of the current document.

    The registry is rebuilt from scratch on every :meth:`build` call and can be
    emptied by a full cleanup through :meth:`clear`.
    """

    def __init__(self) -> None:
        self.labels: dict[str, Label] = {}
        self.references: list[Reference] = []
        self.statistics = CrossReferenceStatistics()

    def __len__(self) -> int:
        return len(self.labels)

    def clear(self) -> None:
        self.labels = {}
        self.references = []
        self.statistics = CrossReferenceStatistics()

    def build(self, source: str) -> CrossReferenceRegistry:
        """Scan ``source`` and repopulate the registry."""
        self.clear()
        math_depths = _math_depths(source)
        numbers = _equation_numbers(source)

        for match in _LABEL.finditer(source):
            name = match.group(1).strip()
            if not name:
                continue
            if name in self.labels:
                logger.warning("Duplicate label '%s' ignored at offset %d", name, match.start())
                self.statistics.duplicate_labels.append(name)
                continue
            if math_depths.get(match.start(), 0) > 0:
                label_type = LabelType.EQUATION
            else:
                label_type = infer_label_type(source, match.start())
            label = Label(name=name, position=match.start(), end=match.end(), type=label_type)
            if label_type is LabelType.EQUATION:
                label.equation_number = numbers.get(match.start())
            self.labels[name] = label

        for match in _REFERENCE.finditer(source):
            self.references.append(
                Reference(
                    label=match.group(2).strip(),
                    kind=ReferenceKind(match.group(1)),
                    position=match.start(),
                )
            )

        stats = self.statistics
        stats.labels_found = len(self.labels)
        stats.references_found = len(self.references)
        stats.equation_labels_with_numbers = sum(
            1 for label in self.labels.values() if label.equation_number is not None
        )
        orphaned: list[str] = []
        for reference in self.references:
            if reference.label not in self.labels and reference.label not in orphaned:
                orphaned.append(reference.label)
        stats.orphaned_references = orphaned
        if orphaned:
            logger.info("Orphaned references: %s", ", ".join(orphaned))
        return self

    @property
    def orphaned(self) -> list[str]:
        return list(self.statistics.orphaned_references)

    def equation_labels(self) -> list[Label]:
        return [label for label in self.labels.values() if label.type is LabelType.EQUATION]

    def status(self) -> dict[str, Any]:
        """Return a diagnostic snapshot of the registry."""
        by_type: dict[str, int] = {}
        for label in self.labels.values():
            by_type[label.type.value] = by_type.get(label.type.value, 0) + 1
        return {
            "labels": len(self.labels),
            "references": len(self.references),
            "by_type": by_type,
            "statistics": self.statistics.as_dict(),
        }


def _math_depths(source: str) -> dict[int, int]:
    """Map every label offset to the display-math nesting depth at that offset."""
    events: list[tuple[int, int]] = []
    in_dollars = False
    for match in _MATH_TOKEN.finditer(source):
        if match.group("dollars"):
            # $$ both opens and closes, so pairs alternate.
            delta = -1 if in_dollars else 1
            in_dollars = not in_dollars
        elif match.group("bracket"):
            delta = 1 if match.group("bracket") == "[" else -1
        else:
            delta = 1 if match.group("kind") == "begin" else -1
        events.append((match.start(), delta))
    for match in _LABEL.finditer(source):
        events.append((match.start(), 0))
    events.sort(key=lambda item: item[0])

    depths: dict[int, int] = {}
    depth = 0
    for position, delta in events:
        if delta == 0:
            depths[position] = depth
        else:
            depth = max(0, depth + delta)
    return depths


def _environment_spans(source: str) -> list[tuple[str, int, int, int]]:
    """Pair numbered environment markers as ``(env, begin, body_start, end)``."""
    stack: list[tuple[str, int, int]] = []
    spans: list[tuple[str, int, int, int]] = []
    for match in _MATH_TOKEN.finditer(source):
        env = match.group("env")
        if env not in NUMBERED_ENVIRONMENTS or match.group("star"):
            continue
        if match.group("kind") == "begin":
            stack.append((env, match.start(), match.end()))
            continue
        for index in range(len(stack) - 1, -1, -1):
            if stack[index][0] == env:
                opened = stack.pop(index)
                spans.append((env, opened[1], opened[2], match.start()))
                break
    return spans


def _equation_numbers(source: str) -> dict[int, int]:
    """Return the equation number of every label offset inside a numbered environment."""
    spans = _environment_spans(source)
    # Priority orders simultaneous events: begin, line break, label, end.
    events: list[tuple[int, int, str, Any]] = []
    for span in spans:
        events.append((span[1], 0, "begin", span))
        events.append((span[3], 3, "end", span))
    for match in _LINE_BREAK.finditer(source):
        events.append((match.start(), 1, "break", match.end()))
    for match in _LABEL.finditer(source):
        events.append((match.start(), 2, "label", None))
    events.sort(key=lambda item: (item[0], item[1]))

    numbers: dict[int, int] = {}
    counter = 0
    open_spans: list[tuple[str, int, int, int]] = []
    for position, _priority, kind, payload in events:
        if kind == "begin":
            counter += 1
            open_spans.append(payload)
        elif kind == "end":
            if payload in open_spans:
                open_spans.remove(payload)
        elif kind == "break":
            if not open_spans:
                continue
            env, _start, _body, end = open_spans[-1]
            if env in MULTIROW_ENVIRONMENTS and source[payload:end].strip():
                counter += 1
        elif open_spans:
            numbers[position] = counter
    return numbers


def infer_label_type(source: str, position: int, window: int = TYPE_WINDOW) -> LabelType:
    """Infer a label type from the nearest still-open construct before ``position``."""
    start = max(0, position - window)
    context = source[start:position]
    closed: dict[str, int] = {}
    for match in reversed(list(_CONTEXT.finditer(context))):
        if match.group("section"):
            return LabelType.SECTION
        env = match.group("env")
        if match.group("kind") == "end":
            closed[env] = closed.get(env, 0) + 1
            continue
        if closed.get(env):
            closed[env] -= 1
            continue
        if env == "figure":
            return LabelType.FIGURE
        if env == "table":
            return LabelType.TABLE
        return LabelType.THEOREM
    return LabelType.GENERIC


def anchor_marker(name: str) -> str:
    return f"\\hypertarget{{{name}}}{{}}"


def inject_anchors(source: str, labels: Iterable[Label]) -> tuple[str, int]:
    """Insert an anchor after every non-equation label in a single left-to-right pass."""
    targets = sorted(
        (label for label in labels if label.type is not LabelType.EQUATION),
        key=lambda label: label.end,
    )
    pieces: list[str] = []
    cursor = 0
    injected = 0
    for label in targets:
        pieces.append(source[cursor : label.end])
        pieces.append(anchor_marker(label.name))
        cursor = label.end
        label.injected = True
        injected += 1
    pieces.append(source[cursor:])
    return "".join(pieces), injected


class CrossReferencePreprocessor:
    """Rewrite a source so every non-equation label carries an anchor."""

    def __init__(
        self,
        registry: CrossReferenceRegistry | None = None,
        *,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.registry = registry if registry is not None else CrossReferenceRegistry()
        self.emitter = ensure_emitter(emitter)

    def preprocess(self, source: str) -> PreprocessResult:
        """Return the rewritten source, or the original one flagged as failed."""
        try:
            self.registry.build(source)
            rewritten, injected = inject_anchors(source, self.registry.labels.values())
        except Exception as exc:  # noqa: BLE001 - conversion proceeds with the original source
            logger.warning("Cross-reference preprocessing failed: %s", exc, exc_info=exc)
            self.emitter.warning(
                "Cross-reference preprocessing failed; using original source.", exc
            )
            return PreprocessResult(
                success=False,
                source=source,
                statistics=self.registry.statistics,
                error=str(exc),
            )

        statistics = self.registry.statistics
        statistics.anchors_injected = injected
        record_event(self.emitter, "crossrefs", statistics.as_dict())
        logger.debug(
            "Preprocessed cross-references: %d labels, %d anchors, %d orphaned",
            statistics.labels_found,
            injected,
            len(statistics.orphaned_references),
        )
        return PreprocessResult(success=True, source=rewritten, statistics=statistics)


__all__ = [
    "CrossReferencePreprocessor",
    "CrossReferenceRegistry",
    "CrossReferenceStatistics",
    "Label",
    "LabelType",
    "PreprocessResult",
    "Reference",
    "ReferenceKind",
    "anchor_marker",
    "infer_label_type",
    "inject_anchors",
]
