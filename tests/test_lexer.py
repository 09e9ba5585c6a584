from __future__ import annotations

import pytest

from cbmfile.dsl.lexer import Lexer, classify
from cbmfile.dsl.tokenizer import tokenize_text
from cbmfile.dsl.tokens import Lexeme


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("begin", Lexeme.BEGIN_MARKER),
        ("end", Lexeme.END_MARKER),
        ("filetype", Lexeme.REGION),
        ("section", Lexeme.REGION),
        ("run", Lexeme.REGION_TYPE),
        ("build", Lexeme.REGION_TYPE),
        ("mf_input", Lexeme.REGION_TYPE),
        ("trial_def", Lexeme.REGION_TYPE),
        ("connectivity", Lexeme.REGION_TYPE),
        ("int", Lexeme.TYPE_NAME),
        ("float", Lexeme.TYPE_NAME),
        ("def", Lexeme.DEF),
        ("trial", Lexeme.DEF_TYPE),
        ("experiment", Lexeme.DEF_TYPE),
        ("//", Lexeme.SINGLE_COMMENT),
        ("/*", Lexeme.DOUBLE_COMMENT_BEGIN),
        ("*/", Lexeme.DOUBLE_COMMENT_END),
    ],
)
def test_keywords_are_looked_up_exactly(raw: str, expected: Lexeme) -> None:
    assert classify(raw) is expected


@pytest.mark.parametrize("raw", ["rate", "use_cs", "_hidden", "t1", "Begin", "runs"])
def test_identifiers(raw: str) -> None:
    assert classify(raw) is Lexeme.VAR_IDENTIFIER


@pytest.mark.parametrize("raw", ["40", "-1", "+3", "0.5", ".5", "-1.5e3", "1e5", "2e-4"])
def test_values(raw: str) -> None:
    assert classify(raw) is Lexeme.VAR_VALUE


@pytest.mark.parametrize("raw", ["@", "1abc", "4.5.6", "1E5", "rate=40", "#"])
def test_unclassifiable_tokens_are_none(raw: str) -> None:
    assert classify(raw) is Lexeme.NONE


def test_new_line_sentinel_follows_every_line() -> None:
    tokens = Lexer(tokenize_text("begin filetype run\n\nend\n")).lex()

    assert [t.lexeme for t in tokens] == [
        Lexeme.BEGIN_MARKER,
        Lexeme.REGION,
        Lexeme.REGION_TYPE,
        Lexeme.NEW_LINE,
        Lexeme.END_MARKER,
        Lexeme.NEW_LINE,
    ]
    assert tokens[3].raw_text == "\n"
    assert tokens[3].is_new_line


def test_tokens_carry_line_and_column() -> None:
    tokens = Lexer(tokenize_text("// header\n\n  int rate 40\n")).lex()
    rate = next(t for t in tokens if t.raw_text == "rate")

    assert (rate.line, rate.column) == (3, 2)


def test_raw_text_is_preserved_in_order() -> None:
    source = "begin filetype run\n  begin section mf_input\n int rate 40 // hz\n end\nend"
    lines = tokenize_text(source)

    tokens = Lexer(lines).lex()

    raw = [t.raw_text for t in tokens if not t.is_new_line]
    assert raw == [token for line in lines for token in line]
    assert sum(t.is_new_line for t in tokens) == len(lines)


def test_lexed_token_to_dict() -> None:
    token = Lexer(tokenize_text("rate")).lex()[0]
    assert token.to_dict() == {
        "lexeme": "VAR_IDENTIFIER",
        "raw_text": "rate",
        "line": 1,
        "column": 1,
    }
