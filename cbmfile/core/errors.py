"""Exception hierarchy for cbmfile.

Every stage raises a subclass of CbmFileError so callers can decide whether
to abort or recover. Nothing in the library exits the process.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cbmfile.core.types import ValidationError


class CbmFileError(Exception):
    """Base class for all cbmfile errors."""


class DslIOError(CbmFileError):
    """Raised when an input file cannot be opened or decoded."""

    def __init__(self, message: str, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class FormatError(CbmFileError):
    """Raised when a file is not the expected kind of document at all."""

    def __init__(self, message: str, line: int = 0) -> None:
        self.message = message
        self.line = line
        if line:
            message = f"Format error at L{line}: {message}"
        super().__init__(message)


class GrammarError(CbmFileError):
    """Raised when tokens inside a region violate the expected patterns.

    Carries every diagnostic collected up to the point of failure.
    """

    def __init__(self, diagnostics: list[ValidationError]) -> None:
        self.diagnostics = list(diagnostics)
        errors = [d for d in self.diagnostics if d.is_error]
        shown = errors or self.diagnostics
        summary = "; ".join(str(d) for d in shown[:3])
        if len(shown) > 3:
            summary += f" (and {len(shown) - 3} more)"
        super().__init__(f"Grammar error: {summary}")


class ResolutionError(FormatError):
    """Raised when the trial hierarchy cannot be resolved into a trial table."""


class HierarchyCycleError(ResolutionError):
    """Raised when block/session references form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Cyclic hierarchy reference: {' -> '.join(self.cycle)}")
