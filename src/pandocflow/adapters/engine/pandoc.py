"""Pandoc-backed conversion engine."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from typing import Protocol, runtime_checkable

from pandocflow.core.exceptions import EngineFault, EngineUnavailableError


logger = logging.getLogger(__name__)


@runtime_checkable
class ConversionEngine(Protocol):
    """Callable turning a LaTeX-like source into HTML using engine arguments."""

    def __call__(self, arguments: str, source: str) -> str: ...


def remove_argument(arguments: str, flag: str) -> str:
    """Return ``arguments`` without any occurrence of ``flag``."""
    return shlex.join(token for token in shlex.split(arguments) if token != flag)


class PandocEngine:
    """Run the pandoc executable with the source on stdin."""

    def __init__(self, executable: str = "pandoc") -> None:
        self.executable = executable

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def __call__(self, arguments: str, source: str) -> str:
        command = [self.executable, *shlex.split(arguments)]
        logger.debug("Running %s", shlex.join(command))
        try:
            result = subprocess.run(
                command,
                input=source,
                check=False,
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except FileNotFoundError as exc:
            raise EngineUnavailableError(
                f"Pandoc executable '{self.executable}' could not be located."
            ) from exc
        except OSError as exc:
            raise EngineFault(f"Failed to execute pandoc: {exc}") from exc

        if result.returncode < 0:
            raise EngineFault(f"pandoc trap: terminated by signal {-result.returncode}")
        if result.returncode != 0:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip()
            message = f"pandoc exited with status {result.returncode}"
            if detail:
                message = f"{message}: {detail}"
            raise EngineFault(message)
        if result.stderr:
            for line in result.stderr.strip().splitlines():
                logger.debug("pandoc: %s", line)
        return result.stdout


__all__ = ["ConversionEngine", "PandocEngine", "remove_argument"]
