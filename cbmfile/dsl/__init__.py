"""cbmfile DSL — tokenizer, lexer, and parser for experiment and build files.

Usage:
    from cbmfile.dsl import Lexer, Parser, tokenize_file

    tokens = Lexer(tokenize_file(path)).lex()
    document = Parser(tokens).parse()
"""

from cbmfile.dsl.ast_nodes import (
    Pair,
    ParsedBuildDocument,
    ParsedExperimentDocument,
    TrialHierarchy,
    Variable,
    VariableSection,
)
from cbmfile.dsl.lexer import Lexer, classify
from cbmfile.dsl.parser import (
    Parser,
    parse_build_file,
    parse_build_text,
    parse_experiment_file,
    parse_experiment_text,
    parse_file,
    parse_text,
)
from cbmfile.dsl.tokenizer import RawLine, tokenize_file, tokenize_text
from cbmfile.dsl.tokens import DefKind, DocumentKind, LexedToken, Lexeme, RegionKind

__all__ = [
    "DefKind",
    "DocumentKind",
    "LexedToken",
    "Lexeme",
    "Lexer",
    "Pair",
    "ParsedBuildDocument",
    "ParsedExperimentDocument",
    "Parser",
    "RawLine",
    "RegionKind",
    "TrialHierarchy",
    "Variable",
    "VariableSection",
    "classify",
    "parse_build_file",
    "parse_build_text",
    "parse_experiment_file",
    "parse_experiment_text",
    "parse_file",
    "parse_text",
    "tokenize_file",
    "tokenize_text",
]
