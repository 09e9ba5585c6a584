"""Serializers for cbmfile pipeline results.

Reproduces the plain-text debug dumps of the tokenizer and lexer, and
converts parsed documents and trial tables to/from JSON for persistence
and inspection.
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from cbmfile.core.types import TrialTable
from cbmfile.dsl.ast_nodes import ParsedBuildDocument, ParsedDocument, ParsedExperimentDocument
from cbmfile.dsl.tokenizer import RawLine
from cbmfile.dsl.tokens import DocumentKind, LexedToken

_DOCUMENT_TYPES: dict[str, type[ParsedExperimentDocument] | type[ParsedBuildDocument]] = {
    DocumentKind.EXPERIMENT.value: ParsedExperimentDocument,
    DocumentKind.BUILD.value: ParsedBuildDocument,
}


# ---------------------------------------------------------------------------
# Debug dumps
# ---------------------------------------------------------------------------


def format_raw_lines(lines: Iterable[RawLine]) -> str:
    """One `['token'],` entry per raw token, wrapped in brackets."""
    parts = ["[\n"]
    for line in lines:
        parts.extend(f"['{token}'],\n" for token in line)
    parts.append("]\n")
    return "".join(parts)


def format_lexed_tokens(tokens: Iterable[LexedToken]) -> str:
    """One `['LEXEME', 'raw'],` entry per lexed token, wrapped in brackets."""
    parts = ["[\n"]
    parts.extend(f"['{t.lexeme.name}', '{t.raw_text}'],\n" for t in tokens)
    parts.append("]\n")
    return "".join(parts)


# ---------------------------------------------------------------------------
# Parsed documents
# ---------------------------------------------------------------------------


def document_to_dict(document: ParsedDocument) -> dict[str, Any]:
    """Convert a parsed document of either kind to a plain dictionary."""
    return document.to_dict()


def document_from_dict(data: dict[str, Any]) -> ParsedDocument:
    """Reconstruct a parsed document, choosing its type from the "kind" key."""
    kind = data.get("kind")
    document_type = _DOCUMENT_TYPES.get(kind)
    if document_type is None:
        raise ValueError(f"Unknown document kind: {kind!r}")
    return document_type.from_dict(data)


def document_to_json(document: ParsedDocument, indent: int = 2) -> str:
    return json.dumps(document_to_dict(document), indent=indent)


def document_from_json(json_str: str) -> ParsedDocument:
    return document_from_dict(json.loads(json_str))


# ---------------------------------------------------------------------------
# Trial tables
# ---------------------------------------------------------------------------


def trial_table_to_dict(table: TrialTable) -> dict[str, Any]:
    """Convert a TrialTable to a dictionary of plain lists."""
    return table.to_dict()


def trial_table_to_json(table: TrialTable, indent: int = 2) -> str:
    """Serialize a TrialTable to a JSON string."""
    return json.dumps(trial_table_to_dict(table), indent=indent)


def trial_table_from_json(json_str: str) -> TrialTable:
    """Deserialize a TrialTable from a JSON string."""
    return TrialTable.from_dict(json.loads(json_str))
