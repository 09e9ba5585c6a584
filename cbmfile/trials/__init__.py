"""cbmfile trials — hierarchy resolution, validation, and trial-table translation.

Usage:
    from cbmfile.trials import translate_parsed_trials, validate_experiment

    problems = validate_experiment(document)
    table = translate_parsed_trials(document)
"""

from cbmfile.trials.resolver import (
    HierarchyGraph,
    HierarchyNode,
    HierarchyResolver,
    NodeKind,
    build_graph,
    calculate_num_trials,
    expand_trial_names,
)
from cbmfile.trials.serializer import (
    document_from_dict,
    document_from_json,
    document_to_dict,
    document_to_json,
    format_lexed_tokens,
    format_raw_lines,
    trial_table_from_json,
    trial_table_to_dict,
    trial_table_to_json,
)
from cbmfile.trials.translator import TrialTranslator, translate_parsed_trials
from cbmfile.trials.validator import validate_experiment

__all__ = [
    "HierarchyGraph",
    "HierarchyNode",
    "HierarchyResolver",
    "NodeKind",
    "TrialTranslator",
    "build_graph",
    "calculate_num_trials",
    "document_from_dict",
    "document_from_json",
    "document_to_dict",
    "document_to_json",
    "expand_trial_names",
    "format_lexed_tokens",
    "format_raw_lines",
    "translate_parsed_trials",
    "trial_table_from_json",
    "trial_table_to_dict",
    "trial_table_to_json",
    "validate_experiment",
]
