from __future__ import annotations

import logging
import textwrap

import pytest

from cbmfile.core.config import CbmFileConfig
from cbmfile.core.errors import FormatError, GrammarError
from cbmfile.core.types import Severity
from cbmfile.dsl.ast_nodes import ParsedBuildDocument, ParsedExperimentDocument
from cbmfile.dsl.lexer import Lexer
from cbmfile.dsl.parser import (
    Parser,
    parse_build_text,
    parse_experiment_file,
    parse_experiment_text,
    parse_file,
    parse_text,
)
from cbmfile.dsl.tokenizer import tokenize_text
from cbmfile.dsl.tokens import DocumentKind


def _pairs(pairs):
    return [(p.label, p.count) for p in pairs]


def _messages(document):
    return [d.message for d in document.diagnostics]


# ---------------------------------------------------------------------------
# Variable sections
# ---------------------------------------------------------------------------


def test_variable_section_maps_identifiers(sample_experiment: str) -> None:
    document = parse_experiment_text(sample_experiment)

    section = document.var_sections["mf_input"]
    assert section.region_type == "mf_input"
    assert section["rate"].type_name == "int"
    assert section["rate"].value == "40"
    assert section["rate"].line == 4
    assert section["noise"].value == "0.5"
    assert "missing" not in section


def test_build_file_sections(sample_build: str) -> None:
    document = parse_build_text(sample_build)

    assert isinstance(document, ParsedBuildDocument)
    assert set(document.var_sections) == {"connectivity", "activity"}
    assert document.var_sections["connectivity"]["num_gr"].value == "1024"
    assert document.var_sections["activity"]["gain"].type_name == "float"
    assert document.diagnostics == []


def test_kind_is_read_from_header(sample_build: str, sample_experiment: str) -> None:
    assert isinstance(parse_text(sample_build), ParsedBuildDocument)
    assert isinstance(parse_text(sample_experiment), ParsedExperimentDocument)


def test_nested_container_regions_are_scanned() -> None:
    source = textwrap.dedent(
        """\
        begin filetype build
          begin section build
            begin section activity
              float gain 0.5
            end
          end
        end
        """
    )
    document = parse_build_text(source)
    assert document.var_sections["activity"]["gain"].value == "0.5"


def test_duplicate_identifier_warns_and_later_wins() -> None:
    source = "begin filetype build\nbegin section activity\nint x 1\nint x 2\nend\nend\n"

    document = parse_build_text(source)

    assert document.var_sections["activity"]["x"].value == "2"
    assert [d.severity for d in document.diagnostics] == [Severity.WARNING]


# ---------------------------------------------------------------------------
# Trial definitions
# ---------------------------------------------------------------------------


def test_trial_hierarchy_maps(sample_experiment: str) -> None:
    hierarchy = parse_experiment_text(sample_experiment).trial_hierarchy

    assert list(hierarchy.trial_map) == ["A", "C"]
    assert hierarchy.trial_map["C"]["cs_onset"].value == "200"
    assert hierarchy.trial_map["A"]["cs_percent"].type_name == "float"
    assert _pairs(hierarchy.block_map["B"]) == [("C", "4")]
    assert hierarchy.session_map == {}
    assert _pairs(hierarchy.experiment) == [("A", "2"), ("B", "3")]
    assert hierarchy.experiment_label == "main"


def test_one_line_experiment(experiment_source, trial_source) -> None:
    source = experiment_source(trial_source("t1") + "\ndef experiment t1 5 end")

    hierarchy = parse_experiment_text(source).trial_hierarchy

    assert _pairs(hierarchy.experiment) == [("t1", "5")]
    assert hierarchy.experiment_label == ""


def test_missing_count_defaults_to_one(experiment_source) -> None:
    source = experiment_source(
        textwrap.dedent(
            """
            def session S
              X
              Y 2
              Z
            end
            def experiment S end
            """
        )
    )

    hierarchy = parse_experiment_text(source).trial_hierarchy

    assert _pairs(hierarchy.session_map["S"]) == [("X", "1"), ("Y", "2"), ("Z", "1")]
    assert _pairs(hierarchy.experiment) == [("S", "1")]


def test_trial_fields_may_span_lines(experiment_source) -> None:
    source = experiment_source("def trial t1 int cs_onset\n  100\n  int cs_len 5 end")

    fields = parse_experiment_text(source).trial_hierarchy.trial_map["t1"]

    assert fields["cs_onset"].value == "100"
    assert fields["cs_len"].value == "5"


def test_multiple_experiment_defs_are_appended(experiment_source, lenient_config) -> None:
    source = experiment_source("def experiment a 1 end\ndef experiment b 2 end")

    document = parse_experiment_text(source, lenient_config)

    assert _pairs(document.trial_hierarchy.experiment) == [("a", "1"), ("b", "2")]
    assert [d.severity for d in document.diagnostics] == [Severity.WARNING]


def test_redefined_trial_warns_and_later_wins(experiment_source, trial_source) -> None:
    source = experiment_source(
        trial_source("t1") + "\n" + trial_source("t1", cs_onset="7") + "\ndef experiment t1 end"
    )

    document = parse_experiment_text(source)

    assert document.trial_hierarchy.trial_map["t1"]["cs_onset"].value == "7"
    assert any("redefined" in m for m in _messages(document))
    assert not any(d.is_error for d in document.diagnostics)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def test_line_comments_are_skipped() -> None:
    source = textwrap.dedent(
        """\
        // leading comment
        begin filetype build // the header
          begin section activity
            // whole-line comment
            float gain 0.5 // trailing comment
          end
        end
        // closing comment
        """
    )

    document = parse_build_text(source)

    assert list(document.var_sections["activity"].param_map) == ["gain"]
    assert document.diagnostics == []


def test_block_comments_span_lines() -> None:
    source = textwrap.dedent(
        """\
        begin filetype build
          begin section activity
            /* disabled:
               float gain 0.5
            */
            float bias 2
          end
        end
        """
    )

    document = parse_build_text(source)

    assert list(document.var_sections["activity"].param_map) == ["bias"]


def test_unterminated_block_comment_is_fatal(lenient_config) -> None:
    source = "begin filetype build\nbegin section activity\n/* never closed\nend\nend\n"

    with pytest.raises(GrammarError) as exc_info:
        parse_build_text(source, lenient_config)

    assert "block comment" in exc_info.value.diagnostics[-1].message


def test_stray_block_comment_end_is_reported(lenient_config) -> None:
    source = "begin filetype build\nbegin section activity\n*/\nend\nend\n"

    document = parse_build_text(source, lenient_config)

    assert any("'*/'" in m for m in _messages(document))


# ---------------------------------------------------------------------------
# Format errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "source, fragment",
    [
        ("", "No 'begin filetype'"),
        ("// only a comment\n", "No 'begin filetype'"),
        ("hello\nbegin filetype run\nend\n", "Unidentified token"),
        ("begin section run\nend\n", "does not specify filetype"),
        ("begin filetype foo\nend\n", "does not indicate a document kind"),
        ("begin filetype mf_input\nend\n", "does not indicate a document kind"),
    ],
)
def test_bad_header_raises_format_error(source: str, fragment: str) -> None:
    with pytest.raises(FormatError, match=fragment):
        parse_text(source)


def test_wrong_document_kind(sample_build: str, sample_experiment: str) -> None:
    with pytest.raises(FormatError, match="an experiment file"):
        parse_experiment_text(sample_build)
    with pytest.raises(FormatError, match="a build file"):
        parse_build_text(sample_experiment)


def test_format_error_carries_line() -> None:
    with pytest.raises(FormatError) as exc_info:
        parse_text("\n\nbogus\n")
    assert exc_info.value.line == 3


# ---------------------------------------------------------------------------
# Grammar errors
# ---------------------------------------------------------------------------


def test_malformed_triple_is_reported() -> None:
    source = "begin filetype build\nbegin section activity\nint rate\nfloat gain 1\nend\nend\n"

    with pytest.raises(GrammarError) as exc_info:
        parse_build_text(source)

    errors = [d for d in exc_info.value.diagnostics if d.is_error]
    assert len(errors) == 1
    assert errors[0].line == 3


def test_lenient_mode_keeps_diagnostics(lenient_config) -> None:
    source = "begin filetype build\nbegin section activity\nint rate\nfloat gain 1\nend\nend\n"

    document = parse_build_text(source, lenient_config)

    assert "rate" not in document.var_sections["activity"]
    assert document.var_sections["activity"]["gain"].value == "1"
    assert len(document.diagnostics) == 1
    assert document.diagnostics[0].is_error


def test_unterminated_region_is_fatal_even_when_lenient(lenient_config) -> None:
    source = "begin filetype build\nbegin section activity\nint rate 40\n"

    with pytest.raises(GrammarError, match="Unterminated"):
        parse_build_text(source, lenient_config)


def test_unterminated_def_is_fatal() -> None:
    source = "begin filetype run\nbegin section trial_def\ndef block B\n  t1 2\n"

    with pytest.raises(GrammarError, match="block 'B'"):
        parse_experiment_text(source)


@pytest.mark.parametrize(
    "body, fragment",
    [
        ("def block B\n  4\nend", "no preceding label"),
        ("def block B\n  int t1 2\nend", "Type name 'int'"),
        ("def trial t1\n  int use_cs\nend", "Incomplete declaration"),
        ("def trial t1\n  use_cs 1\nend", "must follow a type name"),
        ("def trial t1\n  int 1\nend", "must follow an identifier"),
        ("def trial\n  int use_cs 1\nend", "requires a label"),
        ("def bogus x\nend", "Expected 'trial'"),
    ],
)
def test_definition_grammar_errors(experiment_source, lenient_config, body, fragment) -> None:
    document = parse_experiment_text(experiment_source(body), lenient_config)

    assert any(fragment in m for m in _messages(document))


def test_region_invalid_for_kind_is_skipped(lenient_config) -> None:
    source = textwrap.dedent(
        """\
        begin filetype run
          begin section connectivity
            int num_gr 1024
          end
          begin section activity
            float gain 1
          end
        end
        """
    )

    document = parse_experiment_text(source, lenient_config)

    assert set(document.var_sections) == {"activity"}
    assert any("connectivity" in m for m in _messages(document))


def test_sections_nested_in_an_invalid_region_are_kept(lenient_config) -> None:
    source = textwrap.dedent(
        """\
        begin filetype run
          begin section connectivity
            int num_gr 1024
            begin section mf_input
              int rate 40
            end
          end
        end
        """
    )

    document = parse_experiment_text(source, lenient_config)

    assert document.var_sections["mf_input"]["rate"].value == "40"
    assert "connectivity" not in document.var_sections
    assert sum("connectivity" in m for m in _messages(document)) == 1


def test_trial_def_is_not_valid_in_build_files(lenient_config) -> None:
    source = "begin filetype build\nbegin section trial_def\ndef experiment a end\nend\nend\n"

    document = parse_build_text(source, lenient_config)

    assert any("trial_def" in m for m in _messages(document))


def test_nested_filetype_is_reported(lenient_config) -> None:
    source = "begin filetype build\nbegin filetype activity\nend\nend\n"

    document = parse_build_text(source, lenient_config)

    assert any("Nested 'filetype'" in m for m in _messages(document))


def test_tokens_after_file_region_are_reported(lenient_config) -> None:
    document = parse_build_text("begin filetype build\nend\nextra\n", lenient_config)

    assert any("after the end" in m for m in _messages(document))


# ---------------------------------------------------------------------------
# Unknown tokens
# ---------------------------------------------------------------------------


UNKNOWN_TOKEN_SOURCE = "begin filetype build\nbegin section activity\nint rate 40 @@\nend\nend\n"


def test_unknown_token_is_an_error_by_default() -> None:
    with pytest.raises(GrammarError, match="Unrecognized token '@@'"):
        parse_build_text(UNKNOWN_TOKEN_SOURCE)


def test_unknown_token_can_be_ignored() -> None:
    config = CbmFileConfig(unknown_token_policy="ignore")

    document = parse_build_text(UNKNOWN_TOKEN_SOURCE, config)

    assert document.var_sections["activity"]["rate"].value == "40"
    assert document.diagnostics == []


def test_unknown_token_can_be_logged(caplog: pytest.LogCaptureFixture) -> None:
    config = CbmFileConfig(unknown_token_policy="warn")

    with caplog.at_level(logging.WARNING, logger="cbmfile.dsl.parser"):
        document = parse_build_text(UNKNOWN_TOKEN_SOURCE, config)

    assert document.diagnostics == []
    assert "'@@'" in caplog.text


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def test_parser_does_not_modify_tokens(sample_experiment: str) -> None:
    tokens = Lexer(tokenize_text(sample_experiment)).lex()
    snapshot = list(tokens)

    parser = Parser(tokens, DocumentKind.EXPERIMENT)
    parser.parse()

    assert tokens == snapshot
    assert parser.diagnostics == []


def test_parse_experiment_file(write_file, sample_experiment: str) -> None:
    path = write_file("exp.sess", sample_experiment)

    document = parse_experiment_file(path)

    assert document.source == str(path)
    assert len(document.trial_hierarchy.trial_map) == 2


def test_parse_file_detects_build(write_file, sample_build: str) -> None:
    path = write_file("net.bld", sample_build)
    assert parse_file(path).kind == "build"
