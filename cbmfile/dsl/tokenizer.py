"""Whitespace tokenizer for cbmfile documents.

Splits source text into lines of raw string tokens. Blank lines are dropped;
each surviving line remembers its 1-based position in the source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from cbmfile.core.config import get_config
from cbmfile.core.errors import DslIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawLine:
    """The whitespace-delimited tokens of one non-blank source line."""

    tokens: tuple[str, ...]
    line: int = 0

    def __iter__(self):
        return iter(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


def tokenize_text(source: str) -> list[RawLine]:
    """Split source text into RawLines, dropping blank lines.

    Lines end at '\\n' only (a trailing '\\r' is dropped), so other Unicode
    line breaks do not shift line numbers.
    """
    lines: list[RawLine] = []
    for number, text in enumerate(source.split("\n"), start=1):
        tokens = tuple(text.removesuffix("\r").split())
        if not tokens:
            continue
        lines.append(RawLine(tokens=tokens, line=number))
    return lines


def tokenize_file(path: str | Path, encoding: str | None = None) -> list[RawLine]:
    """Read a file and tokenize it.

    Raises:
        DslIOError: if the file cannot be opened or decoded. No partial
            result is returned.
    """
    file_path = Path(path)
    encoding = encoding or get_config().encoding
    try:
        source = file_path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise DslIOError(f"Could not open file ({exc.__class__.__name__})", file_path) from exc

    lines = tokenize_text(source)
    logger.debug("Tokenized %s: %d non-blank lines", file_path, len(lines))
    return lines
