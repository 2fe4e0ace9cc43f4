"""Post-conversion repair of cross-references.

Equation anchors are placed on the rendered math blocks here, since only the
engine output reveals which labels share a block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from bs4.element import Tag

from ..crossrefs import CrossReferenceRegistry, LabelType, ReferenceKind
from .output import fragment_contents, parse_html


logger = logging.getLogger(__name__)

EQUATION_ANCHOR_CLASS = "equation-anchor"
ORPHAN_CLASS = "cross-ref-orphan"
DISPLAY_MATH_SELECTOR = 'span.math.display, math[display="block"]'


@dataclass(slots=True)
class FixReport:
    anchors_placed: int = 0
    references_updated: int = 0
    orphans_marked: int = 0
    unplaced: list[str] = field(default_factory=list)


def _block_for(blocks: list[Tag], name: str) -> Tag | None:
    marker = f"\\label{{{name}}}"
    for block in blocks:
        if marker in block.get_text():
            return block
    return None


def fix_cross_references(markup: str, registry: CrossReferenceRegistry) -> tuple[str, FixReport]:
    """Anchor equation labels and update reference links in converted HTML."""
    report = FixReport()
    if not registry.labels and not registry.references:
        return markup, report

    soup = parse_html(markup)
    existing_ids = {element["id"] for element in soup.find_all(id=True)}
    blocks = soup.select(DISPLAY_MATH_SELECTOR)

    for label in registry.equation_labels():
        if label.name in existing_ids:
            continue
        block = _block_for(blocks, label.name)
        if block is None:
            report.unplaced.append(label.name)
            continue
        attrs = {"id": label.name, "class": EQUATION_ANCHOR_CLASS}
        if label.equation_number is not None:
            attrs["data-equation-number"] = str(label.equation_number)
        block.insert_before(soup.new_tag("span", attrs=attrs))
        existing_ids.add(label.name)
        report.anchors_placed += 1

    for link in soup.select("a[data-reference]"):
        name = link.get("data-reference", "")
        label = registry.labels.get(name)
        if label is None:
            classes = list(link.get("class") or [])
            if ORPHAN_CLASS not in classes:
                link["class"] = [*classes, ORPHAN_CLASS]
                report.orphans_marked += 1
            continue
        if label.type is not LabelType.EQUATION or label.equation_number is None:
            continue
        if link.get("data-reference-type") == ReferenceKind.EQREF.value:
            link.string = f"({label.equation_number})"
        else:
            link.string = str(label.equation_number)
        report.references_updated += 1

    if report.unplaced:
        logger.debug("Equation labels without a rendered block: %s", ", ".join(report.unplaced))
    return fragment_contents(soup), report


__all__ = ["FixReport", "fix_cross_references"]
