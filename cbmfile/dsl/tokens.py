"""Lexeme tags and keyword tables for the cbmfile DSL.

Defines the closed lexeme set, the region/def kind enums, and the
LexedToken dataclass shared by the lexer and parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from types import MappingProxyType
from typing import Any, Mapping


class Lexeme(Enum):
    """All lexeme tags the lexer can assign to a raw token."""

    NONE = auto()  # matched nothing
    BEGIN_MARKER = auto()  # begin
    END_MARKER = auto()  # end
    REGION = auto()  # filetype, section
    REGION_TYPE = auto()  # run, build, mf_input, ...
    TYPE_NAME = auto()  # int, float
    VAR_IDENTIFIER = auto()  # rate, use_cs, t1, ...
    VAR_VALUE = auto()  # 40, -1.5e3, ...
    DEF = auto()  # def
    DEF_TYPE = auto()  # trial, block, session, experiment
    SINGLE_COMMENT = auto()  # //
    DOUBLE_COMMENT_BEGIN = auto()  # /*
    DOUBLE_COMMENT_END = auto()  # */

    # Special
    NEW_LINE = auto()  # synthetic, one per source line


class RegionKind(str, Enum):
    """Region types that may follow `begin <region>`."""

    RUN = "run"
    BUILD = "build"
    MF_INPUT = "mf_input"
    ACTIVITY = "activity"
    TRIAL_SPEC = "trial_spec"
    CONNECTIVITY = "connectivity"
    TRIAL_DEF = "trial_def"


class DefKind(str, Enum):
    """Kinds of `def` blocks inside a trial_def region."""

    TRIAL = "trial"
    BLOCK = "block"
    SESSION = "session"
    EXPERIMENT = "experiment"


class DocumentKind(str, Enum):
    """The two document kinds, named by their filetype region type."""

    EXPERIMENT = "run"
    BUILD = "build"


# Map keyword strings to lexemes
KEYWORDS: Mapping[str, Lexeme] = MappingProxyType(
    {
        "begin": Lexeme.BEGIN_MARKER,
        "end": Lexeme.END_MARKER,
        "filetype": Lexeme.REGION,
        "section": Lexeme.REGION,
        **{kind.value: Lexeme.REGION_TYPE for kind in RegionKind},
        "int": Lexeme.TYPE_NAME,
        "float": Lexeme.TYPE_NAME,
        "def": Lexeme.DEF,
        **{kind.value: Lexeme.DEF_TYPE for kind in DefKind},
        "//": Lexeme.SINGLE_COMMENT,
        "/*": Lexeme.DOUBLE_COMMENT_BEGIN,
        "*/": Lexeme.DOUBLE_COMMENT_END,
    }
)

# Fallback patterns, tried only when exact keyword lookup fails
IDENTIFIER_PATTERN = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
VALUE_PATTERN = re.compile(r"[+-]?([0-9]*[.])?[0-9]*([e][+-]?[0-9]+)?")

# Region types each document kind parses as flat variable sections
VARIABLE_SECTIONS: Mapping[DocumentKind, frozenset[RegionKind]] = MappingProxyType(
    {
        DocumentKind.EXPERIMENT: frozenset(
            {RegionKind.MF_INPUT, RegionKind.ACTIVITY, RegionKind.TRIAL_SPEC}
        ),
        DocumentKind.BUILD: frozenset({RegionKind.CONNECTIVITY, RegionKind.ACTIVITY}),
    }
)

NEW_LINE_TEXT = "\n"


@dataclass(frozen=True)
class LexedToken:
    """A raw token paired with its lexeme tag."""

    lexeme: Lexeme
    raw_text: str
    line: int = 0
    column: int = 0

    @property
    def is_new_line(self) -> bool:
        return self.lexeme is Lexeme.NEW_LINE

    def to_dict(self) -> dict[str, Any]:
        return {
            "lexeme": self.lexeme.name,
            "raw_text": self.raw_text,
            "line": self.line,
            "column": self.column,
        }

    def __repr__(self) -> str:
        return f"LexedToken({self.lexeme.name}, {self.raw_text!r}, L{self.line}:{self.column})"
