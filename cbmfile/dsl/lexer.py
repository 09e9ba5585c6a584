"""Lexer for cbmfile documents.

Classifies each raw token by exact keyword lookup first, then by the
identifier and value patterns, and appends a synthetic NEW_LINE token
after every source line.
"""

from __future__ import annotations

import logging
from typing import Iterable

from cbmfile.dsl.tokenizer import RawLine
from cbmfile.dsl.tokens import (
    IDENTIFIER_PATTERN,
    KEYWORDS,
    NEW_LINE_TEXT,
    VALUE_PATTERN,
    LexedToken,
    Lexeme,
)

logger = logging.getLogger(__name__)


def classify(raw_token: str) -> Lexeme:
    """Return the lexeme for a single raw token.

    Tokens that match neither pattern get Lexeme.NONE; whether that is an
    error is decided by the parser.
    """
    keyword = KEYWORDS.get(raw_token)
    if keyword is not None:
        return keyword
    if IDENTIFIER_PATTERN.fullmatch(raw_token):
        return Lexeme.VAR_IDENTIFIER
    if VALUE_PATTERN.fullmatch(raw_token):
        return Lexeme.VAR_VALUE
    return Lexeme.NONE


class Lexer:
    """Lex tokenized lines into a flat LexedToken sequence.

    Usage:
        lexer = Lexer(tokenize_file(path))
        tokens = lexer.lex()
    """

    def __init__(self, lines: Iterable[RawLine]) -> None:
        self._lines = list(lines)

    def lex(self) -> list[LexedToken]:
        tokens: list[LexedToken] = []
        unknown = 0

        for raw_line in self._lines:
            for column, raw_token in enumerate(raw_line.tokens, start=1):
                lexeme = classify(raw_token)
                if lexeme is Lexeme.NONE:
                    unknown += 1
                tokens.append(LexedToken(lexeme, raw_token, raw_line.line, column))
            tokens.append(
                LexedToken(
                    Lexeme.NEW_LINE, NEW_LINE_TEXT, raw_line.line, len(raw_line.tokens) + 1
                )
            )

        logger.debug(
            "Lexed %d lines into %d tokens (%d unclassified)",
            len(self._lines),
            len(tokens),
            unknown,
        )
        return tokens
