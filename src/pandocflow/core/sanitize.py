"""Input sanitisation and advisory structural validation."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re


logger = logging.getLogger(__name__)

_INDEX = re.compile(r"\\index\{(?:[^{}]|\{[^{}]*\})*\}")
_QEDHERE = re.compile(r"\\qedhere\b")
_DOLLAR = re.compile(r"(?<!\\)\$\$|(?<!\\)\$")
_BEGIN_END = re.compile(r"\\(begin|end)\{([^}]+)\}")


@dataclass(slots=True)
class SanitizeResult:
    source: str
    removed: dict[str, int] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return any(self.removed.values())


@dataclass(slots=True)
class ValidationReport:
    """Structural problems found in a source; advisory only."""

    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


def sanitize_source(text: str) -> SanitizeResult:
    """Remove commands that pandoc rejects or renders as noise."""
    removed: dict[str, int] = {}
    cleaned, removed["index"] = _INDEX.subn("", text)
    cleaned, removed["qedhere"] = _QEDHERE.subn("", cleaned)
    if any(removed.values()):
        logger.debug("Sanitised source: %s", removed)
    return SanitizeResult(source=cleaned, removed=removed)


def _strip_comments(text: str) -> str:
    return "\n".join(re.split(r"(?<!\\)%", line, maxsplit=1)[0] for line in text.split("\n"))


def validate_latex(text: str) -> ValidationReport:
    """Check delimiter and environment balance without modifying ``text``."""
    report = ValidationReport()
    content = _strip_comments(text)

    depth = 0
    escaped = False
    for char in content:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                report.issues.append("Unexpected closing brace '}'.")
                depth = 0
    if depth > 0:
        report.issues.append(f"{depth} unclosed brace(s) '{{'.")

    display = inline = 0
    for match in _DOLLAR.finditer(content):
        if match.group() == "$$":
            display += 1
        else:
            inline += 1
    if display % 2:
        report.issues.append("Unbalanced display math delimiters '$$'.")
    if inline % 2:
        report.issues.append("Unbalanced inline math delimiters '$'.")

    for opener, closer in (("\\[", "\\]"), ("\\(", "\\)")):
        opened = len(re.findall(r"(?<!\\)" + re.escape(opener), content))
        closed = len(re.findall(r"(?<!\\)" + re.escape(closer), content))
        if opened != closed:
            report.issues.append(f"Unbalanced math delimiters '{opener}' / '{closer}'.")

    stack: list[str] = []
    for match in _BEGIN_END.finditer(content):
        kind, env = match.groups()
        if kind == "begin":
            stack.append(env)
            continue
        if stack and stack[-1] == env:
            stack.pop()
        elif env in stack:
            while stack and stack[-1] != env:
                report.warnings.append(f"Environment '{stack.pop()}' closed implicitly.")
            stack.pop()
        else:
            report.issues.append(f"Unexpected \\end{{{env}}}.")
    for env in stack:
        report.issues.append(f"Environment '{env}' is never closed.")

    if "\\begin{document}" in content and "\\documentclass" not in content:
        report.warnings.append("Document environment found without \\documentclass.")
    return report


__all__ = ["SanitizeResult", "ValidationReport", "sanitize_source", "validate_latex"]
