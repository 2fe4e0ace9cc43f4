"""Classification of engine faults and their recovery actions."""

from __future__ import annotations

from enum import Enum
import re

from .exceptions import EngineTimeoutError, exception_messages


class FailureKind(str, Enum):
    MEMORY = "memory"
    ENGINE_TRAP = "engine_trap"
    TIMEOUT = "timeout"
    SYNTAX = "syntax"
    UNDEFINED_COMMAND = "undefined_command"
    UNKNOWN = "unknown"


class RecoveryAction(str, Enum):
    CHUNKED_RETRY = "chunked_retry"
    SIMPLIFIED_RETRY = "simplified_retry"
    SURFACE = "surface"


_SIGNATURES: tuple[tuple[FailureKind, re.Pattern[str]], ...] = (
    (
        FailureKind.MEMORY,
        re.compile(
            r"out of memory|stack space overflow|maximum call stack|heap exhausted"
            r"|cannot allocate memory",
            re.IGNORECASE,
        ),
    ),
    (
        FailureKind.ENGINE_TRAP,
        re.compile(r"wasm|webassembly|\btrap\b|unreachable|segmentation fault", re.IGNORECASE),
    ),
    (FailureKind.TIMEOUT, re.compile(r"\btime(?:d)? ?out\b", re.IGNORECASE)),
    (
        FailureKind.UNDEFINED_COMMAND,
        re.compile(r"unknown (?:latex )?command|undefined control sequence", re.IGNORECASE),
    ),
    (FailureKind.SYNTAX, re.compile(r"syntax|parse error|unexpected", re.IGNORECASE)),
)

_USER_MESSAGES = {
    FailureKind.MEMORY: (
        "Document too complex for processing. Try reducing mathematical content "
        "or splitting into smaller sections."
    ),
    FailureKind.ENGINE_TRAP: (
        "Mathematical processing engine error. Please check LaTeX syntax and try again."
    ),
    FailureKind.TIMEOUT: "Document processing timed out. Document may be too large or complex.",
    FailureKind.SYNTAX: (
        "LaTeX syntax error detected. Please check mathematical expressions and commands."
    ),
    FailureKind.UNDEFINED_COMMAND: (
        "Unknown LaTeX command found. Please check mathematical expressions "
        "and package requirements."
    ),
    FailureKind.UNKNOWN: "Conversion failed. Please check LaTeX syntax and try again.",
}

_CHUNK_MESSAGES = {
    FailureKind.MEMORY: "This section is too complex to process on its own.",
    FailureKind.ENGINE_TRAP: "The processing engine failed on this section.",
    FailureKind.TIMEOUT: "This section took too long to process.",
    FailureKind.SYNTAX: "This section contains a LaTeX syntax error.",
    FailureKind.UNDEFINED_COMMAND: "This section uses an unknown LaTeX command.",
    FailureKind.UNKNOWN: "This section could not be converted.",
}


def classify_failure(exc: BaseException) -> FailureKind:
    """Return the failure kind matching the exception or any of its causes."""
    if isinstance(exc, EngineTimeoutError):
        return FailureKind.TIMEOUT
    if isinstance(exc, (MemoryError, RecursionError)):
        return FailureKind.MEMORY
    text = "\n".join(exception_messages(exc))
    for kind, pattern in _SIGNATURES:
        if pattern.search(text):
            return kind
    return FailureKind.UNKNOWN


def recovery_for(kind: FailureKind, attempt: int) -> RecoveryAction:
    """Map a failure on the given (1-based) attempt to the recovery to apply."""
    if attempt == 1 and kind is FailureKind.MEMORY:
        return RecoveryAction.CHUNKED_RETRY
    if attempt == 1 and kind is FailureKind.ENGINE_TRAP:
        return RecoveryAction.SIMPLIFIED_RETRY
    return RecoveryAction.SURFACE


def user_message(kind: FailureKind) -> str:
    return _USER_MESSAGES[kind]


def chunk_failure_message(kind: FailureKind, number: int) -> str:
    return f"Section {number}: {_CHUNK_MESSAGES[kind]}"


__all__ = [
    "FailureKind",
    "RecoveryAction",
    "chunk_failure_message",
    "classify_failure",
    "recovery_for",
    "user_message",
]
