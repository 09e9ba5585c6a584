from __future__ import annotations

import json

import pytest

from cbmfile.core.types import TrialTable
from cbmfile.dsl.ast_nodes import ParsedBuildDocument, ParsedExperimentDocument
from cbmfile.dsl.lexer import Lexer
from cbmfile.dsl.parser import parse_build_text, parse_experiment_text
from cbmfile.dsl.tokenizer import tokenize_text
from cbmfile.trials.serializer import (
    document_from_dict,
    document_from_json,
    document_to_json,
    format_lexed_tokens,
    format_raw_lines,
    trial_table_from_json,
    trial_table_to_json,
)
from cbmfile.trials.translator import translate_parsed_trials

SOURCE = "begin filetype run\n\nend\n"


def test_format_raw_lines() -> None:
    assert format_raw_lines(tokenize_text(SOURCE)) == (
        "[\n['begin'],\n['filetype'],\n['run'],\n['end'],\n]\n"
    )


def test_format_lexed_tokens() -> None:
    tokens = Lexer(tokenize_text(SOURCE)).lex()

    assert format_lexed_tokens(tokens) == (
        "[\n"
        "['BEGIN_MARKER', 'begin'],\n"
        "['REGION', 'filetype'],\n"
        "['REGION_TYPE', 'run'],\n"
        "['NEW_LINE', '\n'],\n"
        "['END_MARKER', 'end'],\n"
        "['NEW_LINE', '\n'],\n"
        "]\n"
    )


def test_empty_dumps() -> None:
    assert format_raw_lines([]) == "[\n]\n"
    assert format_lexed_tokens([]) == "[\n]\n"


def test_experiment_document_json(sample_experiment: str) -> None:
    document = parse_experiment_text(sample_experiment)

    payload = json.loads(document_to_json(document))
    restored = document_from_json(document_to_json(document))

    assert payload["kind"] == "run"
    assert payload["var_sections"]["mf_input"]["param_map"]["rate"]["value"] == "40"
    assert payload["trial_hierarchy"]["experiment_label"] == "main"
    assert isinstance(restored, ParsedExperimentDocument)
    assert restored.to_dict() == document.to_dict()


def test_build_document_dict(sample_build: str) -> None:
    document = parse_build_text(sample_build)

    restored = document_from_dict(document.to_dict())

    assert isinstance(restored, ParsedBuildDocument)
    assert restored.var_sections["connectivity"]["num_go"].value == "64"


def test_unknown_document_kind() -> None:
    with pytest.raises(ValueError, match="Unknown document kind"):
        document_from_dict({"kind": "plot"})


def test_trial_table_json(sample_experiment: str) -> None:
    table = translate_parsed_trials(parse_experiment_text(sample_experiment))

    text = trial_table_to_json(table)
    restored = trial_table_from_json(text)

    assert json.loads(text)["num_trials"] == 14
    assert restored.equals(table)
    assert restored.cs_percents.dtype == table.cs_percents.dtype


def test_trial_table_count_mismatch() -> None:
    data = TrialTable.empty().to_dict()
    data["num_trials"] = 3

    with pytest.raises(ValueError, match="num_trials"):
        TrialTable.from_dict(data)
