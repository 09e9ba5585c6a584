"""Hand-written recursive descent parser for cbmfile documents.

Consumes the LexedToken sequence from the lexer and produces a
ParsedExperimentDocument (`filetype run`) or a ParsedBuildDocument
(`filetype build`). The token sequence is never modified; all parser state
lives in the cursor position and in locals of the parse methods.

Header problems (no filetype region, wrong document kind) raise FormatError
immediately. Grammar problems inside regions are collected as diagnostics
and, in strict mode, raised together as a GrammarError once the whole
document has been read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, NoReturn

from cbmfile.core.config import CbmFileConfig, get_config
from cbmfile.core.errors import FormatError, GrammarError
from cbmfile.core.types import Severity, ValidationError
from cbmfile.dsl.ast_nodes import (
    DEFAULT_COUNT,
    Pair,
    ParsedBuildDocument,
    ParsedDocument,
    ParsedExperimentDocument,
    TrialHierarchy,
    Variable,
    VariableSection,
)
from cbmfile.dsl.lexer import Lexer
from cbmfile.dsl.tokenizer import tokenize_file, tokenize_text
from cbmfile.dsl.tokens import (
    VARIABLE_SECTIONS,
    DefKind,
    DocumentKind,
    LexedToken,
    Lexeme,
    RegionKind,
)

logger = logging.getLogger(__name__)

_COMMENT_LEXEMES = (Lexeme.SINGLE_COMMENT, Lexeme.DOUBLE_COMMENT_BEGIN)

# Tokens at which error recovery stops skipping
_SYNC_LEXEMES = frozenset(
    {
        Lexeme.END_MARKER,
        Lexeme.BEGIN_MARKER,
        Lexeme.NEW_LINE,
        Lexeme.SINGLE_COMMENT,
        Lexeme.DOUBLE_COMMENT_BEGIN,
    }
)

_DOCUMENT_NAMES = {
    DocumentKind.EXPERIMENT: "an experiment",
    DocumentKind.BUILD: "a build",
}


class Parser:
    """Parse a lexed token sequence into a parsed document.

    Usage:
        parser = Parser(tokens, DocumentKind.EXPERIMENT)
        document = parser.parse()

    With kind=None the document kind is taken from the filetype header.
    """

    def __init__(
        self,
        tokens: Iterable[LexedToken],
        kind: DocumentKind | None = None,
        config: CbmFileConfig | None = None,
    ) -> None:
        self._tokens: tuple[LexedToken, ...] = tuple(tokens)
        self._pos = 0
        self._kind = kind
        self._config = config or get_config()
        self._diagnostics: list[ValidationError] = []

    @property
    def diagnostics(self) -> list[ValidationError]:
        return list(self._diagnostics)

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def parse(self) -> ParsedDocument:
        """Parse the full token sequence into a document."""
        opener = self._parse_header()
        document: ParsedDocument
        if self._kind is DocumentKind.EXPERIMENT:
            document = ParsedExperimentDocument()
        else:
            document = ParsedBuildDocument()

        self._parse_container(document, opener)
        self._parse_trailing()

        document.diagnostics = list(self._diagnostics)
        self._report()
        return document

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    def _parse_header(self) -> LexedToken:
        """Find `begin filetype <run|build>` and position the cursor after it."""
        while True:
            token = self._current()
            if token is None:
                raise FormatError("No 'begin filetype' region found")
            if token.lexeme is Lexeme.BEGIN_MARKER:
                break
            if self._skip_comment():
                continue
            if token.is_new_line:
                self._advance()
                continue
            raise FormatError(f"Unidentified token {token.raw_text!r}", token.line)

        region = self._peek(1)
        region_type = self._peek(2)
        if region is None or region.lexeme is not Lexeme.REGION:
            raise FormatError(f"Unidentified token after {token.raw_text!r}", token.line)
        if region.raw_text != "filetype":
            raise FormatError("First interpretable line does not specify filetype", token.line)

        found = region_type.raw_text if region_type is not None else ""
        try:
            kind = DocumentKind(found)
        except ValueError:
            raise FormatError(
                f"{found!r} does not indicate a document kind (expected 'run' or 'build')",
                token.line,
            ) from None
        if self._kind is not None and kind is not self._kind:
            raise FormatError(
                f"{found!r} does not indicate {_DOCUMENT_NAMES[self._kind]} file",
                token.line,
            )

        self._kind = kind
        self._pos += 3
        logger.debug("Parsing %s file (header at L%d)", kind.value, token.line)
        return token

    def _parse_region(
        self, document: ParsedDocument, region_kind: RegionKind, opener: LexedToken
    ) -> None:
        """Dispatch a nested region to the parser for its kind."""
        assert self._kind is not None
        if region_kind in VARIABLE_SECTIONS[self._kind]:
            if region_kind.value in document.var_sections:
                self._warn(f"Section '{region_kind.value}' redefined; later section wins", opener)
            document.var_sections[region_kind.value] = self._parse_var_section(
                region_kind, opener
            )
        elif region_kind is RegionKind.TRIAL_DEF and isinstance(
            document, ParsedExperimentDocument
        ):
            self._parse_trial_section(document.trial_hierarchy, opener)
        elif region_kind.value == self._kind.value:
            self._parse_container(document, opener)
        else:
            self._error(
                f"Region type '{region_kind.value}' is not valid in "
                f"{_DOCUMENT_NAMES[self._kind]} file",
                opener,
            )
            self._scan_invalid_region(document, opener)

    def _parse_container(self, document: ParsedDocument, opener: LexedToken) -> None:
        """Scan a container region for nested `begin ... end` regions."""
        while True:
            token = self._current()
            if token is None:
                self._unterminated("region", opener)
            if token.lexeme is Lexeme.END_MARKER:
                self._advance()
                return
            if token.lexeme is Lexeme.BEGIN_MARKER:
                self._parse_nested_begin(document, token)
                continue
            if self._skip_comment():
                continue
            if token.is_new_line:
                self._advance()
                continue
            self._skip_unexpected(token, "container region")

    def _parse_nested_begin(self, document: ParsedDocument, token: LexedToken) -> None:
        region = self._peek(1)
        region_type = self._peek(2)
        if (
            region is None
            or region_type is None
            or region.lexeme is not Lexeme.REGION
            or region_type.lexeme is not Lexeme.REGION_TYPE
        ):
            self._error("Malformed region header; expected 'begin <region> <type>'", token)
            self._advance()
            self._skip_region(token)
            return

        if region.raw_text == "filetype":
            self._error("Nested 'filetype' region; use 'section'", region)
        self._pos += 3
        logger.debug("Entering region %s at L%d", region_type.raw_text, token.line)
        self._parse_region(document, RegionKind(region_type.raw_text), token)

    def _parse_trailing(self) -> None:
        """Only comments may follow the end of the filetype region."""
        while True:
            token = self._current()
            if token is None:
                return
            if self._skip_comment():
                continue
            if token.is_new_line:
                self._advance()
                continue
            self._error(
                f"Unexpected token {token.raw_text!r} after the end of the filetype region",
                token,
            )
            self._advance()

    # ------------------------------------------------------------------
    # Variable sections
    # ------------------------------------------------------------------

    def _parse_var_section(self, region_kind: RegionKind, opener: LexedToken) -> VariableSection:
        """Parse `<type> <identifier> <value>` triples up to the section's end."""
        section = VariableSection(region_type=region_kind.value, line=opener.line)
        where = f"section '{region_kind.value}'"

        while True:
            token = self._current()
            if token is None:
                self._unterminated(where, opener)
            if token.lexeme is Lexeme.END_MARKER:
                self._advance()
                return section
            if self._skip_comment():
                continue
            if token.is_new_line:
                self._advance()
                continue

            if token.lexeme is Lexeme.TYPE_NAME:
                identifier = self._peek(1)
                value = self._peek(2)
                if (
                    identifier is not None
                    and value is not None
                    and identifier.lexeme is Lexeme.VAR_IDENTIFIER
                    and value.lexeme is Lexeme.VAR_VALUE
                ):
                    if identifier.raw_text in section.param_map:
                        self._warn(
                            f"Variable '{identifier.raw_text}' redefined in {where}",
                            identifier,
                        )
                    section.param_map[identifier.raw_text] = Variable(
                        type_name=token.raw_text,
                        identifier=identifier.raw_text,
                        value=value.raw_text,
                        line=token.line,
                    )
                    self._pos += 3
                    continue
                self._error(
                    f"Expected '<identifier> <value>' after type name {token.raw_text!r} "
                    f"in {where}",
                    token,
                )
                self._synchronize({Lexeme.TYPE_NAME})
                continue

            self._skip_unexpected(token, where, {Lexeme.TYPE_NAME})

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def _parse_trial_section(self, hierarchy: TrialHierarchy, opener: LexedToken) -> None:
        """Parse a trial_def region: a sequence of `def <kind> <label> ... end`."""
        while True:
            token = self._current()
            if token is None:
                self._unterminated("section 'trial_def'", opener)
            if token.lexeme is Lexeme.END_MARKER:
                self._advance()
                return
            if token.lexeme is Lexeme.DEF:
                self._parse_def(hierarchy, token)
                continue
            if self._skip_comment():
                continue
            if token.is_new_line:
                self._advance()
                continue
            self._skip_unexpected(token, "section 'trial_def'", {Lexeme.DEF})

    def _parse_def(self, hierarchy: TrialHierarchy, def_token: LexedToken) -> None:
        kind_token = self._peek(1)
        if kind_token is None or kind_token.lexeme is not Lexeme.DEF_TYPE:
            self._error(
                "Expected 'trial', 'block', 'session' or 'experiment' after 'def'", def_token
            )
            self._advance()
            self._skip_region(def_token)
            return

        kind = DefKind(kind_token.raw_text)
        self._pos += 2

        label = self._parse_def_label(kind, def_token)
        if label is None:
            self._skip_region(def_token)
            return

        if kind is DefKind.TRIAL:
            fields = self._parse_trial_body(label, def_token)
            if label in hierarchy.trial_map:
                self._warn(f"Trial '{label}' redefined; later definition wins", def_token)
            hierarchy.trial_map[label] = fields
            return

        pairs = self._parse_reference_body(kind, label, def_token)
        if kind is DefKind.BLOCK:
            if label in hierarchy.block_map:
                self._warn(f"Block '{label}' redefined; later definition wins", def_token)
            hierarchy.block_map[label] = pairs
        elif kind is DefKind.SESSION:
            if label in hierarchy.session_map:
                self._warn(f"Session '{label}' redefined; later definition wins", def_token)
            hierarchy.session_map[label] = pairs
        else:
            if hierarchy.experiment:
                self._warn("Multiple experiment definitions; references are appended", def_token)
            if label and not hierarchy.experiment_label:
                hierarchy.experiment_label = label
            hierarchy.experiment.extend(pairs)

    def _parse_def_label(self, kind: DefKind, def_token: LexedToken) -> str | None:
        """Consume the def label. Returns "" for an unlabeled experiment, None on error."""
        token = self._current()
        if kind is DefKind.EXPERIMENT:
            # `def experiment main` names the experiment only when the label ends its line
            following = self._peek(1)
            if (
                token is not None
                and token.lexeme is Lexeme.VAR_IDENTIFIER
                and following is not None
                and (following.is_new_line or following.lexeme in _COMMENT_LEXEMES)
            ):
                self._advance()
                return token.raw_text
            return ""

        if token is None or token.lexeme is not Lexeme.VAR_IDENTIFIER:
            self._error(f"'def {kind.value}' requires a label", def_token)
            return None
        self._advance()
        return token.raw_text

    def _parse_trial_body(self, label: str, def_token: LexedToken) -> dict[str, Variable]:
        """Parse `<type> <identifier> <value>` triples inside a trial def."""
        where = f"trial '{label}'"
        fields: dict[str, Variable] = {}
        type_token: LexedToken | None = None
        identifier_token: LexedToken | None = None

        while True:
            token = self._current()
            if token is None:
                self._unterminated(f"definition of {where}", def_token)
            lexeme = token.lexeme

            if lexeme is Lexeme.END_MARKER:
                if type_token is not None:
                    self._error(f"Incomplete declaration at end of {where}", type_token)
                self._advance()
                return fields
            if self._skip_comment():
                continue
            if lexeme is Lexeme.NEW_LINE:
                self._advance()
                continue

            if lexeme is Lexeme.TYPE_NAME:
                if type_token is not None:
                    self._error(f"Incomplete declaration in {where}", type_token)
                type_token, identifier_token = token, None
            elif lexeme is Lexeme.VAR_IDENTIFIER:
                if type_token is None or identifier_token is not None:
                    self._error(
                        f"Identifier {token.raw_text!r} must follow a type name in {where}",
                        token,
                    )
                    type_token, identifier_token = None, None
                else:
                    identifier_token = token
            elif lexeme is Lexeme.VAR_VALUE:
                if type_token is None or identifier_token is None:
                    self._error(
                        f"Value {token.raw_text!r} must follow an identifier in {where}",
                        token,
                    )
                else:
                    if identifier_token.raw_text in fields:
                        self._warn(
                            f"Field '{identifier_token.raw_text}' redefined in {where}",
                            identifier_token,
                        )
                    fields[identifier_token.raw_text] = Variable(
                        type_name=type_token.raw_text,
                        identifier=identifier_token.raw_text,
                        value=token.raw_text,
                        line=type_token.line,
                    )
                type_token, identifier_token = None, None
            elif self._unexpected(token, where):
                type_token, identifier_token = None, None
            self._advance()

    def _parse_reference_body(
        self, kind: DefKind, label: str, def_token: LexedToken
    ) -> list[Pair]:
        """Parse `<label> [<count>]` references inside a block/session/experiment def.

        A label not directly followed by a count gets DEFAULT_COUNT.
        """
        where = f"{kind.value} '{label}'" if label else kind.value
        pairs: list[Pair] = []
        pending: LexedToken | None = None

        while True:
            token = self._current()
            if token is None:
                self._unterminated(f"definition of {where}", def_token)
            lexeme = token.lexeme

            if lexeme is Lexeme.END_MARKER:
                if pending is not None:
                    pairs.append(Pair(pending.raw_text, DEFAULT_COUNT, pending.line))
                self._advance()
                return pairs
            if self._skip_comment():
                continue
            if lexeme is Lexeme.NEW_LINE:
                self._advance()
                continue

            if lexeme is Lexeme.VAR_IDENTIFIER:
                if pending is not None:
                    pairs.append(Pair(pending.raw_text, DEFAULT_COUNT, pending.line))
                pending = token
            elif lexeme is Lexeme.VAR_VALUE:
                if pending is None:
                    self._error(
                        f"Count {token.raw_text!r} has no preceding label in {where}", token
                    )
                else:
                    pairs.append(Pair(pending.raw_text, token.raw_text, pending.line))
                    pending = None
            elif lexeme is Lexeme.TYPE_NAME:
                self._error(
                    f"Type name {token.raw_text!r} is not allowed in {where}", token
                )
            else:
                self._unexpected(token, where)
            self._advance()

    # ------------------------------------------------------------------
    # Comments and recovery
    # ------------------------------------------------------------------

    def _skip_comment(self) -> bool:
        """Skip a comment at the cursor. Returns False if there is none."""
        token = self._current()
        if token is None:
            return False

        if token.lexeme is Lexeme.SINGLE_COMMENT:
            # Stop at the NEW_LINE sentinel so line-sensitive callers still see it
            while (current := self._current()) is not None and not current.is_new_line:
                self._advance()
            return True

        if token.lexeme is Lexeme.DOUBLE_COMMENT_BEGIN:
            self._advance()
            while (current := self._current()) is not None:
                self._advance()
                if current.lexeme is Lexeme.DOUBLE_COMMENT_END:
                    return True
            self._unterminated("block comment", token)

        if token.lexeme is Lexeme.DOUBLE_COMMENT_END:
            self._error("'*/' without a matching '/*'", token)
            self._advance()
            return True

        return False

    def _skip_region(self, opener: LexedToken) -> None:
        """Skip to just past the `end` matching an already-consumed opener."""
        depth = 1
        while True:
            token = self._current()
            if token is None:
                self._unterminated("region", opener)
            if self._skip_comment():
                continue
            if token.lexeme in (Lexeme.BEGIN_MARKER, Lexeme.DEF):
                depth += 1
            elif token.lexeme is Lexeme.END_MARKER:
                depth -= 1
            self._advance()
            if depth == 0:
                return

    def _scan_invalid_region(self, document: ParsedDocument, opener: LexedToken) -> None:
        """Skip a rejected region's own content but still parse regions nested in it."""
        depth = 1
        while True:
            token = self._current()
            if token is None:
                self._unterminated("region", opener)
            if self._skip_comment():
                continue
            if token.lexeme is Lexeme.BEGIN_MARKER and depth == 1:
                self._parse_nested_begin(document, token)
                continue
            if token.lexeme in (Lexeme.BEGIN_MARKER, Lexeme.DEF):
                depth += 1
            elif token.lexeme is Lexeme.END_MARKER:
                depth -= 1
            self._advance()
            if depth == 0:
                return

    def _synchronize(self, stop_at: Iterable[Lexeme] = ()) -> None:
        """Skip the offending token and anything up to the next safe point."""
        stops = _SYNC_LEXEMES | frozenset(stop_at)
        self._advance()
        while (token := self._current()) is not None and token.lexeme not in stops:
            self._advance()

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _error(self, message: str, token: LexedToken) -> None:
        self._diagnostics.append(
            ValidationError(message=message, line=token.line, column=token.column)
        )

    def _warn(self, message: str, token: LexedToken) -> None:
        self._diagnostics.append(
            ValidationError(
                message=message,
                line=token.line,
                column=token.column,
                severity=Severity.WARNING,
            )
        )

    def _unexpected(self, token: LexedToken, where: str) -> bool:
        """Record a stray token. Returns False if the unknown-token policy skips it."""
        if token.lexeme is Lexeme.NONE:
            policy = self._config.unknown_token_policy
            if policy == "ignore":
                return False
            if policy == "warn":
                logger.warning(
                    "Ignoring unrecognized token %r in %s at L%d",
                    token.raw_text,
                    where,
                    token.line,
                )
                return False
            self._error(f"Unrecognized token {token.raw_text!r} in {where}", token)
            return True
        self._error(f"Unexpected {token.lexeme.name} {token.raw_text!r} in {where}", token)
        return True

    def _skip_unexpected(
        self, token: LexedToken, where: str, stop_at: Iterable[Lexeme] = ()
    ) -> None:
        if self._unexpected(token, where):
            self._synchronize(stop_at)
        else:
            self._advance()

    def _unterminated(self, what: str, opener: LexedToken) -> NoReturn:
        self._diagnostics.append(
            ValidationError(
                message=f"Unterminated {what} opened at L{opener.line}: "
                "reached end of input before 'end'",
                line=opener.line,
                column=opener.column,
            )
        )
        raise GrammarError(self._diagnostics)

    def _report(self) -> None:
        if self._config.strict and any(d.is_error for d in self._diagnostics):
            raise GrammarError(self._diagnostics)
        for diagnostic in self._diagnostics:
            logger.warning("%s", diagnostic)

    # ------------------------------------------------------------------
    # Token stream helpers
    # ------------------------------------------------------------------

    def _current(self) -> LexedToken | None:
        return self._peek(0)

    def _peek(self, offset: int) -> LexedToken | None:
        index = self._pos + offset
        if index >= len(self._tokens):
            return None
        return self._tokens[index]

    def _advance(self) -> LexedToken | None:
        token = self._current()
        if token is not None:
            self._pos += 1
        return token


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def parse_tokens(
    tokens: Iterable[LexedToken],
    kind: DocumentKind | None = None,
    config: CbmFileConfig | None = None,
) -> ParsedDocument:
    """Parse an already-lexed token sequence."""
    return Parser(tokens, kind, config).parse()


def parse_text(
    source: str,
    kind: DocumentKind | None = None,
    config: CbmFileConfig | None = None,
    source_name: str = "<string>",
) -> ParsedDocument:
    """Tokenize, lex, and parse source text."""
    tokens = Lexer(tokenize_text(source)).lex()
    document = parse_tokens(tokens, kind, config)
    document.source = source_name
    return document


def parse_file(
    path: str | Path,
    kind: DocumentKind | None = None,
    config: CbmFileConfig | None = None,
) -> ParsedDocument:
    """Tokenize, lex, and parse a file; kind=None accepts either document kind."""
    config = config or get_config()
    tokens = Lexer(tokenize_file(path, encoding=config.encoding)).lex()
    document = parse_tokens(tokens, kind, config)
    document.source = str(path)
    logger.info(
        "Parsed %s file %s (%d sections, %d diagnostics)",
        document.kind,
        path,
        len(document.var_sections),
        len(document.diagnostics),
    )
    return document


def parse_experiment_text(
    source: str, config: CbmFileConfig | None = None
) -> ParsedExperimentDocument:
    document = parse_text(source, DocumentKind.EXPERIMENT, config)
    assert isinstance(document, ParsedExperimentDocument)
    return document


def parse_build_text(source: str, config: CbmFileConfig | None = None) -> ParsedBuildDocument:
    document = parse_text(source, DocumentKind.BUILD, config)
    assert isinstance(document, ParsedBuildDocument)
    return document


def parse_experiment_file(
    path: str | Path, config: CbmFileConfig | None = None
) -> ParsedExperimentDocument:
    """Parse a `filetype run` experiment file.

    Raises:
        DslIOError: the file cannot be read.
        FormatError: the file is not an experiment file.
        GrammarError: malformed regions (strict mode).
    """
    document = parse_file(path, DocumentKind.EXPERIMENT, config)
    assert isinstance(document, ParsedExperimentDocument)
    return document


def parse_build_file(
    path: str | Path, config: CbmFileConfig | None = None
) -> ParsedBuildDocument:
    """Parse a `filetype build` file; same errors as parse_experiment_file."""
    document = parse_file(path, DocumentKind.BUILD, config)
    assert isinstance(document, ParsedBuildDocument)
    return document
