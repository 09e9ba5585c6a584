"""cbmfile — parser and trial translator for cerebellar simulation input files.

Reads `filetype run` experiment files and `filetype build` files, and turns an
experiment's trial hierarchy into the flat per-trial table the simulation
consumes.

Usage:
    import cbmfile

    document = cbmfile.parse_experiment_file("session.sess")
    table = cbmfile.translate_parsed_trials(document)
    print(table.num_trials, table.cs_onsets)
"""

from cbmfile.core.config import CbmFileConfig, get_config, set_config
from cbmfile.core.errors import (
    CbmFileError,
    DslIOError,
    FormatError,
    GrammarError,
    HierarchyCycleError,
    ResolutionError,
)
from cbmfile.core.types import TrialTable, ValidationError
from cbmfile.dsl.ast_nodes import ParsedBuildDocument, ParsedExperimentDocument
from cbmfile.dsl.parser import parse_build_file, parse_experiment_file, parse_file
from cbmfile.trials.translator import translate_parsed_trials
from cbmfile.trials.validator import validate_experiment

__version__ = "0.1.0"

__all__ = [
    "CbmFileConfig",
    "CbmFileError",
    "DslIOError",
    "FormatError",
    "GrammarError",
    "HierarchyCycleError",
    "ParsedBuildDocument",
    "ParsedExperimentDocument",
    "ResolutionError",
    "TrialTable",
    "ValidationError",
    "get_config",
    "parse_build_file",
    "parse_experiment_file",
    "parse_file",
    "set_config",
    "translate_parsed_trials",
    "validate_experiment",
]
