"""Turn a parsed experiment into a TrialTable.

Resolves the trial hierarchy, expands it into ordered trial names, and
copies each trial's eight typed fields into parallel NumPy arrays.
"""

from __future__ import annotations

import logging

import numpy as np

from cbmfile.core.config import CbmFileConfig, get_config
from cbmfile.core.errors import ResolutionError
from cbmfile.core.types import TRIAL_FIELDS, FieldKind, TrialField, TrialTable
from cbmfile.dsl.ast_nodes import ParsedExperimentDocument, TrialHierarchy, Variable
from cbmfile.trials.resolver import HierarchyResolver

logger = logging.getLogger(__name__)

_INT32 = np.iinfo(np.int32)
_UINT32 = np.iinfo(np.uint32)


def parse_field_value(trial_field: TrialField, variable: Variable, trial: str) -> int | float:
    """Interpret a trial field's raw value according to its kind.

    Raises:
        ResolutionError: the value does not parse or is out of range.
    """
    raw = variable.value
    try:
        value: int | float = float(raw) if trial_field.kind is FieldKind.PERCENT else int(raw)
    except ValueError:
        expected = "a number" if trial_field.kind is FieldKind.PERCENT else "an integer"
        raise ResolutionError(
            f"Field '{trial_field.name}' of trial '{trial}' must be {expected}, got {raw!r}",
            variable.line,
        ) from None

    if trial_field.kind is FieldKind.FLAG and not 0 <= value <= _UINT32.max:
        raise ResolutionError(
            f"Flag '{trial_field.name}' of trial '{trial}' must be non-negative, got {raw!r}",
            variable.line,
        )
    if trial_field.kind is FieldKind.INT and not _INT32.min <= value <= _INT32.max:
        raise ResolutionError(
            f"Field '{trial_field.name}' of trial '{trial}' is out of range: {raw!r}",
            variable.line,
        )
    return value


def trial_values(label: str, fields: dict[str, Variable]) -> tuple[int | float, ...]:
    """Parse the required fields of one trial definition, in TRIAL_FIELDS order."""
    values: list[int | float] = []
    for trial_field in TRIAL_FIELDS:
        variable = fields.get(trial_field.name)
        if variable is None:
            line = min((v.line for v in fields.values()), default=0)
            raise ResolutionError(
                f"Trial '{label}' is missing required field '{trial_field.name}'", line
            )
        if variable.type_name != trial_field.declared_type:
            logger.warning(
                "Trial '%s' declares %s as %s; reading it as %s",
                label,
                trial_field.name,
                variable.type_name,
                trial_field.declared_type,
            )
        values.append(parse_field_value(trial_field, variable, label))
    return tuple(values)


class TrialTranslator:
    """Translate trial hierarchies into TrialTables.

    Usage:
        translator = TrialTranslator()
        table = translator.translate(document)
    """

    def __init__(self, config: CbmFileConfig | None = None) -> None:
        self._config = config or get_config()

    def translate(self, document: ParsedExperimentDocument | TrialHierarchy) -> TrialTable:
        hierarchy = (
            document.trial_hierarchy
            if isinstance(document, ParsedExperimentDocument)
            else document
        )
        resolver = HierarchyResolver(hierarchy)

        num_trials = resolver.num_trials
        if num_trials > self._config.max_trials:
            raise ResolutionError(
                f"Experiment expands to {num_trials} trials, "
                f"more than max_trials={self._config.max_trials}"
            )
        if num_trials == 0:
            logger.warning("Experiment expands to zero trials")
            return TrialTable.empty()

        names = resolver.trial_names()
        rows = {
            label: trial_values(label, hierarchy.trial_map[label])
            for label in dict.fromkeys(names)
        }
        order = {label: i for i, label in enumerate(rows)}
        index = np.fromiter((order[name] for name in names), dtype=np.intp, count=len(names))

        columns: dict[str, np.ndarray] = {}
        for position, trial_field in enumerate(TRIAL_FIELDS):
            per_trial = np.array([row[position] for row in rows.values()], dtype=trial_field.dtype)
            columns[trial_field.column] = per_trial[index]

        table = TrialTable(trial_names=tuple(names), **columns)
        logger.info(
            "Translated %d trials from %d trial definitions", table.num_trials, len(rows)
        )
        return table


def translate_parsed_trials(
    document: ParsedExperimentDocument | TrialHierarchy,
    config: CbmFileConfig | None = None,
) -> TrialTable:
    """Build the flat trial table for a parsed experiment document.

    Raises:
        ResolutionError: unresolved labels, bad counts, missing or malformed
            trial fields, or too many trials.
        HierarchyCycleError: cyclic block/session references.
    """
    return TrialTranslator(config).translate(document)
